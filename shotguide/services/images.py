from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Union

from openai import OpenAI

from shotguide.config import AppConfig
from shotguide.errors import ImageGenerationError
from shotguide.services import call_chat
from shotguide.services.storage import bytes_to_data_url, fetch_image_bytes
from shotguide.types import AspectRatio

IMAGE_FAILED_MESSAGE = "Failed to generate an image. The model may have refused the prompt."
NO_IMAGE_MESSAGE = "No image was generated."

IMAGE_SYSTEM_PROMPT = (
    "Render a single photorealistic product photograph that follows the instruction exactly. "
    "Return the image only."
)


def aspect_ratio_for(shot_type: str) -> AspectRatio:
    # Lifestyle shots get the wider frame
    return AspectRatio.WIDE if "lifestyle" in (shot_type or "").lower() else AspectRatio.SQUARE


def build_image_messages(prompt: str) -> List[dict]:
    content = [{"type": "text", "text": f"{IMAGE_SYSTEM_PROMPT}\n\nInstruction: {prompt}"}]
    return [{"role": "user", "content": content}]


def image_request_body(aspect_ratio: AspectRatio) -> Dict[str, Any]:
    return {
        "modalities": ["image", "text"],
        "image_config": {"aspect_ratio": aspect_ratio.value},
        "stream": False,
    }


def _find_image_url(obj) -> Optional[str]:
    if isinstance(obj, str):
        if obj.startswith("data:image") or obj.startswith("http://") or obj.startswith("https://"):
            return obj
        if "data:image/" in obj:
            s = obj.find("data:image/")
            e = len(obj)
            for sep in ["\n", " ", ")", "]", '"', "'"]:
                ix = obj.find(sep, s)
                if ix != -1:
                    e = min(e, ix)
            return obj[s:e]
        return None
    if isinstance(obj, dict):
        if obj.get("type") == "image_url" or "image_url" in obj:
            url = obj.get("image_url")
            if isinstance(url, dict):
                url = url.get("url")
            if isinstance(url, str):
                found = _find_image_url(url)
                if found:
                    return found
        url = obj.get("url")
        if isinstance(url, str) and url.startswith("data:image/"):
            return url
        for v in obj.values():
            found = _find_image_url(v)
            if found:
                return found
    if isinstance(obj, list):
        for it in obj:
            found = _find_image_url(it)
            if found:
                return found
    return None


def extract_image_url_from_response(resp: Union[dict, object]) -> Optional[str]:
    """Locate the first image in either an OpenAI SDK object or an HTTP JSON dict.

    Looks at the OpenRouter `images` extension first, then at the message content.
    """
    if hasattr(resp, "model_dump"):
        resp = resp.model_dump()  # type: ignore[attr-defined]
    if not isinstance(resp, dict):
        return None
    choices = resp.get("choices") or []
    if not choices:
        return None
    msg = choices[0].get("message") or {}
    images = msg.get("images")
    if isinstance(images, list) and images:
        found = _find_image_url(images)
        if found:
            return found
    return _find_image_url(msg.get("content"))


def generate_image(
    client: Optional[OpenAI],
    cfg: AppConfig,
    prompt: str,
    shot_type: str,
    on_log: Optional[Callable[[str], None]] = None,
) -> str:
    """Render one shot and return it as a data URL."""
    ratio = aspect_ratio_for(shot_type)
    if on_log:
        on_log(f"Images: calling {cfg.image_model} for '{shot_type}' (aspect {ratio.value})…")
    try:
        resp = call_chat(
            client,
            cfg,
            model=cfg.image_model,
            messages=build_image_messages(prompt),
            extra_body=image_request_body(ratio),
            on_log=on_log,
        )
    except Exception as e:  # noqa: BLE001
        if on_log:
            on_log(f"Images: request failed: {e}")
        raise ImageGenerationError(IMAGE_FAILED_MESSAGE, shot_type=shot_type) from e

    url = extract_image_url_from_response(resp)
    if not url:
        raise ImageGenerationError(NO_IMAGE_MESSAGE, shot_type=shot_type)
    if url.startswith("http://") or url.startswith("https://"):
        try:
            data, mime = fetch_image_bytes(url, timeout_sec=cfg.request_timeout_sec)
        except ValueError as e:
            # A plain link in a text reply, not a rendered image
            if on_log:
                on_log(f"Images: {e}")
            raise ImageGenerationError(NO_IMAGE_MESSAGE, shot_type=shot_type) from e
        except Exception as e:  # noqa: BLE001
            raise ImageGenerationError(IMAGE_FAILED_MESSAGE, shot_type=shot_type) from e
        url = bytes_to_data_url(data, mime=mime)
    if on_log:
        on_log(f"Images: received image data url length={len(url)}")
    return url
