"""Application configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite:///./pundits.db"

    LOG_LEVEL: str = "INFO"

    # Used in the analyst persona of the system prompt
    TOURNAMENT_NAME: str = "T20 World Cup 2026"

    # ═══════════════════════════════════════════════════════════════
    # Call policy (per agent, per match)
    # ═══════════════════════════════════════════════════════════════
    PREDICTION_TIMEOUT_SECONDS: float = 60.0
    PREDICTION_RETRY_DELAY_SECONDS: float = 5.0
    PREDICTION_MAX_ATTEMPTS: int = 2  # first call + one retry

    # Sweep: only matches starting within this many hours are predicted
    PREDICTION_LOOKAHEAD_HOURS: int = 48

    # Scoring
    SETTLEMENT_STAKE: float = 100.0
    STARTING_BANKROLL: float = 10000.0

    # ═══════════════════════════════════════════════════════════════
    # Providers
    # ═══════════════════════════════════════════════════════════════

    # Anthropic (Messages API)
    ANTHROPIC_API_KEY: str = ""
    ANTHROPIC_MODEL: str = "claude-opus-4-6"
    ANTHROPIC_BASE_URL: str = "https://api.anthropic.com"
    ANTHROPIC_API_VERSION: str = "2023-06-01"
    ANTHROPIC_MAX_TOKENS: int = 16000
    ANTHROPIC_THINKING_BUDGET: int = 5000
    ANTHROPIC_MAX_SEARCHES: int = 5

    # OpenAI (Responses API)
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-5.2"
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    OPENAI_REASONING_EFFORT: str = "medium"

    # xAI (OpenAI-compatible Responses API)
    XAI_API_KEY: str = ""
    XAI_MODEL: str = "grok-4"
    XAI_BASE_URL: str = "https://api.x.ai/v1"

    # Google Gemini (generateContent)
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-3.0-pro"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta/models"
    GEMINI_THINKING_BUDGET: int = 5000
    GEMINI_GATEWAY_MAX_TOKENS: int = 8000

    # Optional LLM gateway. When the key is set, every adapter routes through it.
    LLM_GATEWAY_API_KEY: str = ""
    LLM_GATEWAY_BASE_URL: str = "https://api.getunbound.ai"
    LLM_GATEWAY_ANTHROPIC_MODEL: str = "anthropic/claude-opus-4-6"
    LLM_GATEWAY_OPENAI_MODEL: str = "openai/gpt-5.2"
    LLM_GATEWAY_XAI_MODEL: str = "x-ai/grok-4"
    LLM_GATEWAY_GEMINI_MODEL: str = "google/gemini-3-pro-preview"

    # Pricing per 1M tokens (USD), keyed by bare model id
    LLM_PRICING: dict = {
        "claude-opus-4-6": {"input": 15.00, "output": 75.00},
        "gpt-5.2": {"input": 1.25, "output": 10.00},
        "grok-4": {"input": 3.00, "output": 15.00},
        "gemini-3.0-pro": {"input": 2.00, "output": 12.00},
        "gemini-3-pro-preview": {"input": 2.00, "output": 12.00},
    }

    @property
    def gateway_enabled(self) -> bool:
        return bool(self.LLM_GATEWAY_API_KEY.strip())

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def estimate_cost_usd(model: str, tokens_in: int, tokens_out: int) -> float:
    """Estimate request cost from LLM_PRICING. Unknown models cost 0."""
    model_key = model.split("/", 1)[-1]
    pricing = get_settings().LLM_PRICING.get(model_key)
    if not pricing:
        return 0.0
    cost = (tokens_in * pricing["input"] + tokens_out * pricing["output"]) / 1_000_000
    return round(cost, 6)
