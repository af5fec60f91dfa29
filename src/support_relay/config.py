"""Configuration loader with YAML parsing, env-var interpolation, and Pydantic validation."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_SYSTEM_PROMPT = """Sen HayDay oyununun uzmanı ve HayDay Malzemeleri sitesinin müşteri destek asistanısın.

Görevin:
- HayDay oyunu ile ilgili soruları yanıtlamak
- Müşterileri doğru sayfalara yönlendirmek
- Türkçe, kibar ve kısa yanıtlar vermek

Site sayfaları:
- Altın/para konuları: "Sorular & İletişim" sayfası
- Ürün fiyatları: "Ürün Listenizi Oluşturun" sayfası
- Depolama hesaplama: "Depolama Hesaplayıcısı" sayfası
- Makine bilgileri: "Makineler" sayfası

HayDay dışı konularda yardım etme, kibarca reddet."""

DEFAULT_FALLBACK_REPLY = (
    "Üzgünüm, şu anda teknik bir sorun yaşıyorum. Lütfen biraz sonra tekrar deneyin "
    "veya Sorular & İletişim sayfamızdan bize ulaşın."
)


class RateLimitConfig(BaseModel):
    """Fixed-window request budget per client IP on the chat and admin API."""

    enabled: bool = True
    window_seconds: int = Field(default=60, ge=1)
    max_requests: int = Field(default=30, ge=1)


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000
    public_url: str = "http://localhost:3000"
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)


class StorageConfig(BaseModel):
    db_path: str = "./data/support_relay.db"


class MatcherConfig(BaseModel):
    threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    reinforce_on_match: bool = True
    seed_defaults: bool = True


class AIConfig(BaseModel):
    backend: str = "openai"  # "openai" | "anthropic"
    model: str = "gpt-3.5-turbo"
    max_tokens: int = 150
    temperature: float = 0.7
    timeout: float = 20.0
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    fallback_reply: str = DEFAULT_FALLBACK_REPLY


class OpenAIConfig(BaseModel):
    api_key: str
    base_url: Optional[str] = None
    max_retries: int = 2


class AnthropicConfig(BaseModel):
    api_key: str
    base_url: Optional[str] = None
    max_retries: int = 2


class TelegramConfig(BaseModel):
    token: str = ""
    admin_id: str = ""
    mode: str = "polling"  # "polling" | "webhook" | "disabled"
    webhook_url: Optional[str] = None
    timeout: float = 10.0


class AuthConfig(BaseModel):
    code_ttl_seconds: int = 300
    session_ttl_hours: int = 24


class HousekeepingConfig(BaseModel):
    enabled: bool = True
    purge_interval_minutes: int = 30
    digest_cron: Optional[str] = "0 21 * * *"
    timezone: str = "Europe/Istanbul"


class AppConfig(BaseModel):
    log_level: str = "INFO"
    log_format: str = "console"  # "console" | "json"
    data_dir: str = "./data"
    server: ServerConfig = Field(default_factory=ServerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    matcher: MatcherConfig = Field(default_factory=MatcherConfig)
    ai: AIConfig = Field(default_factory=AIConfig)
    openai: Optional[OpenAIConfig] = None
    anthropic: Optional[AnthropicConfig] = None
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    housekeeping: HousekeepingConfig = Field(default_factory=HousekeepingConfig)


_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)\}")


def _interpolate_env_vars(text: str, extra: dict[str, str] | None = None) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        if extra and var_name in extra:
            return extra[var_name]
        value = os.environ.get(var_name)
        if value is None:
            return match.group(0)
        return value

    return _ENV_VAR_PATTERN.sub(_replace, text)


def load_config(config_path: str | Path = "config.yaml", env_path: str | Path = ".env") -> AppConfig:
    """Load and validate configuration from YAML file with env-var interpolation."""
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(env_file)

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    raw_text = config_file.read_text(encoding="utf-8")

    # data_dir may be referenced by other keys, resolve it first
    raw_data = yaml.safe_load(raw_text) or {}
    data_dir = _interpolate_env_vars(raw_data.get("data_dir", "./data"))

    interpolated = _interpolate_env_vars(raw_text, extra={"data_dir": data_dir})
    data = yaml.safe_load(interpolated) or {}

    return AppConfig(**data)
