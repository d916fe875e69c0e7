"""
Runtime settings for the plan finder, read from the environment.

A local .env file is honoured through python-dotenv so the catalog URL,
cache windows and OpenAI credentials can be set without exporting them.
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv

DEFAULT_CATALOG_URL = "https://raw.githubusercontent.com/nh652/TelcoPlans/main/telecom_plans_improved.json"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class Settings:
    catalog_url: str = DEFAULT_CATALOG_URL
    catalog_ttl_seconds: int = 3600
    catalog_stale_seconds: int = 24 * 60 * 60
    catalog_timeout_seconds: int = 10
    catalog_max_retries: int = 3

    max_plans_to_show: int = 8
    similar_plans_limit: int = 3

    cors_origins: List[str] = field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:5173"]
    )
    log_level: str = "INFO"

    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    ai_model: str = "gpt-4o-mini"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        defaults = cls()
        return cls(
            catalog_url=os.getenv("PLANBOT_CATALOG_URL", defaults.catalog_url),
            catalog_ttl_seconds=_env_int("PLANBOT_CATALOG_TTL_SECONDS", defaults.catalog_ttl_seconds),
            catalog_stale_seconds=_env_int("PLANBOT_CATALOG_STALE_SECONDS", defaults.catalog_stale_seconds),
            catalog_timeout_seconds=_env_int("PLANBOT_CATALOG_TIMEOUT_SECONDS", defaults.catalog_timeout_seconds),
            catalog_max_retries=_env_int("PLANBOT_CATALOG_MAX_RETRIES", defaults.catalog_max_retries),
            max_plans_to_show=_env_int("PLANBOT_MAX_PLANS_TO_SHOW", defaults.max_plans_to_show),
            similar_plans_limit=_env_int("PLANBOT_SIMILAR_PLANS_LIMIT", defaults.similar_plans_limit),
            cors_origins=_env_list("PLANBOT_CORS_ORIGINS", defaults.cors_origins),
            log_level=os.getenv("PLANBOT_LOG_LEVEL", defaults.log_level).upper(),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_base_url=os.getenv("OPENAI_BASE_URL") or None,
            ai_model=os.getenv("PLANBOT_AI_MODEL", defaults.ai_model),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
