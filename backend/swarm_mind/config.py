"""Runtime configuration loaded from environment variables.

This module centralizes swarm settings such as population size, token
budgets, channel thresholds, reasoning provider mode, GitHub discovery
options, and dashboard API behavior defaults.
"""

import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_optional_int(name: str) -> int | None:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else None


class Settings:
    """Typed settings object used across the backend."""

    env: str = os.getenv("ENV", "dev")
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./data/swarm.db")
    ai_mode: str = os.getenv("AI_MODE", "rule").lower()
    openai_api_key: str = os.getenv("OPENAI_API_KEY", "")
    openai_model: str = os.getenv("OPENAI_MODEL", "gpt-4.1-mini")
    openai_max_output_tokens: int = int(os.getenv("OPENAI_MAX_OUTPUT_TOKENS", "800"))
    openai_timeout_ms: int = int(os.getenv("OPENAI_TIMEOUT_MS", "30000"))
    openai_max_retries: int = int(os.getenv("OPENAI_MAX_RETRIES", "3"))
    openai_concurrency: int = int(os.getenv("OPENAI_CONCURRENCY", "3"))
    github_api_url: str = os.getenv("GITHUB_API_URL", "https://api.github.com")
    github_token: str = os.getenv("GITHUB_TOKEN", "")
    github_timeout_ms: int = int(os.getenv("GITHUB_TIMEOUT_MS", "15000"))
    github_discovery_topics: list[str] = [
        x.strip() for x in os.getenv("GITHUB_DISCOVERY_TOPICS", "typescript,rust,ai").split(",") if x.strip()
    ]
    agent_count: int = int(os.getenv("AGENT_COUNT", "3"))
    token_budget_per_agent: int = int(os.getenv("TOKEN_BUDGET_PER_AGENT", "50000"))
    critical_threshold: float = float(os.getenv("CRITICAL_THRESHOLD", "0.6"))
    density_saturation: float = float(os.getenv("DENSITY_SATURATION", "20"))
    pheromone_decay: float = float(os.getenv("PHEROMONE_DECAY", "0.005"))
    decision_temperature: float = float(os.getenv("DECISION_TEMPERATURE", "0.3"))
    engineering_enabled: bool = _env_bool("ENGINEERING_ENABLED", "true")
    execution_timeout_ms: int = int(os.getenv("EXECUTION_TIMEOUT_MS", "60000"))
    collaboration_interval: int = int(os.getenv("COLLABORATION_INTERVAL", "5"))
    collective_interval: int = int(os.getenv("COLLECTIVE_INTERVAL", "10"))
    max_steps_default: int = int(os.getenv("MAX_STEPS_DEFAULT", "200"))
    tick_interval_ms: int = int(os.getenv("TICK_INTERVAL_MS", "800"))
    stream_limit: int = int(os.getenv("STREAM_LIMIT", "500"))
    swarm_seed: int | None = _env_optional_int("SWARM_SEED")
    cors_origins: list[str] = [x.strip() for x in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if x.strip()]


settings = Settings()
