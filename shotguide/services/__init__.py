from typing import Any, Callable, Dict, List, Optional

import requests
from openai import OpenAI

from shotguide.config import OPENROUTER_BASE_URL, AppConfig
from shotguide.services.openrouter_http import chat_completions


def connectivity_probe(url: str = OPENROUTER_BASE_URL, timeout_sec: int = 5) -> tuple[bool, str]:
    try:
        resp = requests.get(url, timeout=timeout_sec)
        return (resp.ok, f"HTTP {resp.status_code}")
    except Exception as e:  # noqa: BLE001
        return (False, str(e))


def call_chat(
    client: Optional[OpenAI],
    cfg: AppConfig,
    *,
    model: str,
    messages: List[dict],
    extra_body: Dict[str, Any],
    on_log: Optional[Callable[[str], None]] = None,
):
    """Send one chat completion through the configured transport.

    Returns either an OpenAI SDK response object or the raw JSON dict.
    """
    if cfg.transport == "http" or client is None:
        if on_log:
            on_log(f"HTTP: POST chat/completions model={model}")
        return chat_completions(
            api_key=cfg.openrouter_api_key,
            model=model,
            messages=messages,
            timeout_sec=cfg.request_timeout_sec,
            extra_body=extra_body,
            extra_headers=cfg.default_headers,
        )
    return client.chat.completions.create(
        model=model,
        messages=messages,
        extra_headers=cfg.default_headers,
        extra_body=extra_body,
        timeout=cfg.request_timeout_sec,
    )


def response_text(resp) -> str:
    # Support both OpenAI client object and HTTP JSON dict
    text = ""
    if resp is not None:
        if hasattr(resp, "choices"):
            text = (resp.choices[0].message.content or "") if resp.choices else ""
        elif isinstance(resp, dict):
            choices = resp.get("choices", [])
            if choices:
                msg = choices[0].get("message", {})
                text = msg.get("content", "") or ""
    return text if isinstance(text, str) else ""
