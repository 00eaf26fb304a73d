from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional


class Settings(BaseSettings):
    server_port: int = 8000
    debug_logging: bool = False

    # Upstream chat-completion provider (Zhipu GLM, OpenAI-compatible framing)
    zhipu_api_key: Optional[str] = None
    zhipu_api_url: str = "https://open.bigmodel.cn/api/paas/v4/chat/completions"
    zhipu_model: str = "glm-4.5-flash"
    zhipu_temperature: float = 0.85
    zhipu_top_p: float = 0.9
    zhipu_max_tokens: int = 8192
    upstream_connect_timeout: float = 10.0
    upstream_read_timeout: float = 120.0

    # Public studio facts rendered into the system prompt
    studio_name: str = "Dimension Space Interior Design Studio"
    studio_summary: str = "focused on high-end private residence design and commercial space planning"
    studio_services: List[str] = [
        "Full-service private residence design",
        "Commercial space planning",
        "Soft furnishing and display customization",
    ]
    studio_phone: Optional[str] = None
    studio_email: Optional[str] = None
    studio_address: Optional[str] = None
    reply_language: str = "Chinese"

    # Per-client limit on POST /api/chat; 0 disables it
    chat_rate_limit: int = 0
    chat_rate_window_seconds: int = 60
    # Peers allowed to set X-Forwarded-For (JSON list in env)
    trusted_proxies: List[str] = []

    # pydantic-settings v2 style config: load env from both ../.env (repo root) and .env
    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        env_file=("../.env", ".env"),
        extra="ignore",  # ignore env vars not defined as fields
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
