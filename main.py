"""ALF - Deep Research Service

Simple CLI for running research queries.
"""

import argparse
import asyncio
import sys

from alf.api.deps import get_orchestrator
from alf.research.presets import DEFAULT_PRESET, PRESETS, get_preset


async def run_research(query: str, preset_name: str = DEFAULT_PRESET) -> int:
    """Run research on the given query, printing progress and the streamed brief."""
    preset = get_preset(preset_name)
    print(f"Research query: {query}")
    print(f"Preset: {preset.name} ({preset.mode})")
    print("-" * 50)

    orchestrator = get_orchestrator(preset)
    exit_code = 0

    async for event in orchestrator.research(query):
        event_type = event.event.value
        data = event.data

        if event_type == "status":
            if data.get("message") == "stage":
                print(f"\n[~] {data.get('stage')}...")
            elif data.get("message") == "search_failed":
                print(f"  [!] Search failed: {data.get('error')}")

        elif event_type == "tool":
            if data.get("phase") == "call":
                print(f"  [>] {data.get('name')} {data.get('args', '')}")

        elif event_type == "text":
            print(data.get("delta", ""), end="", flush=True)

        elif event_type == "done":
            print(f"\n\n[*] Research Complete!")
            print(f"   Runtime: {data.get('runtime_ms')}ms")
            print(f"   Tokens: {data.get('tokens_used')}")
            for source in data.get("source_list", []):
                print(f"   [{source['index']}] {source['title']} - {source['url']}")

        elif event_type == "error":
            print(f"\n[!] Error: {data.get('message', 'Unknown error')}")
            exit_code = 1

    return exit_code


def main():
    parser = argparse.ArgumentParser(description="ALF Deep Research Service")
    parser.add_argument("query", help="Research query")
    parser.add_argument(
        "--preset",
        "-p",
        default=DEFAULT_PRESET,
        choices=sorted(PRESETS),
        help=f"Research preset (default: {DEFAULT_PRESET})",
    )

    args = parser.parse_args()

    sys.exit(asyncio.run(run_research(args.query, args.preset)))


if __name__ == "__main__":
    main()
