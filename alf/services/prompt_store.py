"""Prompt catalog shipped as `alf/prompts/prompts.json` package data.

Entries are `string.Template` strings addressed by dotted key
(`"rerank.prompt"`). A list of strings is a multi-line prompt.
"""
from __future__ import annotations

import json
from functools import lru_cache
from importlib import resources
from string import Template
from typing import Any

CATALOG_PACKAGE = "alf.prompts"
CATALOG_FILE = "prompts.json"


class PromptCatalog:
    def __init__(self, entries: dict[str, Any]):
        if not isinstance(entries, dict):
            raise ValueError("Prompt catalog must be a JSON object.")
        self._entries = entries
        self._templates: dict[str, Template] = {}

    @classmethod
    def from_json(cls, text: str) -> "PromptCatalog":
        return cls(json.loads(text))

    @classmethod
    def from_package(cls) -> "PromptCatalog":
        source = resources.files(CATALOG_PACKAGE).joinpath(CATALOG_FILE)
        return cls.from_json(source.read_text(encoding="utf-8"))

    def template(self, key: str) -> Template:
        if key not in self._templates:
            self._templates[key] = Template(self._lookup(key))
        return self._templates[key]

    def _lookup(self, key: str) -> str:
        node: Any = self._entries
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                raise KeyError(f"Prompt key not found: {key}")
            node = node[part]
        if isinstance(node, list) and all(isinstance(line, str) for line in node):
            return "\n".join(node)
        if not isinstance(node, str):
            raise TypeError(f"Prompt key must map to a string or list of strings: {key}")
        return node

    def render(self, key: str, **values: Any) -> str:
        template = self.template(key)
        try:
            return template.substitute(**values)
        except KeyError as exc:
            raise KeyError(f"Missing template value '{exc.args[0]}' for prompt '{key}'") from exc


@lru_cache(maxsize=1)
def default_catalog() -> PromptCatalog:
    return PromptCatalog.from_package()


def render_prompt(key: str, **values: Any) -> str:
    return default_catalog().render(key, **values)
