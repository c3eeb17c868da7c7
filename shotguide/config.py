import os
from dataclasses import dataclass
from typing import Dict

from openai import OpenAI

from shotguide.errors import ConfigurationError

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
TRANSPORTS = ("sdk", "http")


def _get_secret_or_env(key: str, default: str = "") -> str:
    return str(os.getenv(key, default))


def _get_int(key: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}", field=key) from None
    if value <= 0:
        raise ConfigurationError(f"{key} must be positive, got {value}", field=key)
    return value


@dataclass(frozen=True)
class AppConfig:
    openrouter_api_key: str
    plan_model: str
    image_model: str
    request_timeout_sec: int
    transport: str
    http_referer: str
    app_title: str

    @property
    def default_headers(self) -> Dict[str, str]:
        # OpenRouter recommends sending HTTP-Referer and X-Title
        return {"HTTP-Referer": self.http_referer, "X-Title": self.app_title}


def load_config() -> AppConfig:
    api_key = _get_secret_or_env("OPENROUTER_API_KEY", "")
    plan_model = _get_secret_or_env("SHOTGUIDE_PLAN_MODEL", "google/gemini-2.5-flash")
    image_model = _get_secret_or_env("SHOTGUIDE_IMAGE_MODEL") or _get_secret_or_env("OPENROUTER_IMAGE_MODEL", "google/gemini-2.5-flash-image-preview")
    timeout_raw = _get_secret_or_env("SHOTGUIDE_REQUEST_TIMEOUT_SEC") or _get_secret_or_env("REQUEST_TIMEOUT_SECONDS", "120")
    transport = _get_secret_or_env("SHOTGUIDE_TRANSPORT", "sdk").strip().lower()
    if transport not in TRANSPORTS:
        raise ConfigurationError(f"SHOTGUIDE_TRANSPORT must be one of {TRANSPORTS}, got {transport!r}", field="SHOTGUIDE_TRANSPORT")

    return AppConfig(
        openrouter_api_key=api_key,
        plan_model=plan_model,
        image_model=image_model,
        request_timeout_sec=_get_int("SHOTGUIDE_REQUEST_TIMEOUT_SEC", timeout_raw),
        transport=transport,
        http_referer=_get_secret_or_env("SHOTGUIDE_HTTP_REFERER", "http://localhost"),
        app_title=_get_secret_or_env("SHOTGUIDE_APP_TITLE", "Product Shot Guide"),
    )


def create_openrouter_client(cfg: AppConfig) -> OpenAI:
    return OpenAI(
        api_key=cfg.openrouter_api_key,
        base_url=OPENROUTER_BASE_URL,
        default_headers=cfg.default_headers,
    )
