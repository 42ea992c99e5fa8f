from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # OpenAI (or any OpenAI-compatible gateway)
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    research_model: str = "gpt-4o-mini"
    rerank_model: str = "gpt-4o-mini"
    synthesis_max_tokens: int = 4096

    # Search
    search_provider: str = "firecrawl"  # firecrawl | tavily
    search_max_candidates: int = 30
    tavily_api_key: str = ""
    langsearch_api_key: str = ""

    # Keyless public sources (Wikipedia, DuckDuckGo, arXiv, RSS) as agent tools
    public_tools_enabled: bool = True

    # Firecrawl (self-hosted by default)
    firecrawl_base_url: str = "http://localhost:8010"
    firecrawl_api_key: str = ""
    firecrawl_timeout_seconds: float = 60.0

    # Scrape / rerank budgets
    scrape_provider: str = "firecrawl"  # firecrawl | http
    scrape_max_chars: int = 4000
    scrape_max_parallel: int = 6
    rerank_top_n: int = 8
    synthesis_source_char_budget: int = 4000

    # Retry
    retry_max_attempts: int = 3
    retry_base_delay_ms: int = 400

    # Streaming / agent limits
    research_deadline_seconds: float = 300.0
    tool_output_char_budget: int = 300
    agent_step_budget: int = 8

    # App
    cors_origins: str = "http://localhost:3000"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]


settings = Settings()
