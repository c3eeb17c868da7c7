import base64
import io
from typing import Tuple

import requests
from PIL import Image, UnidentifiedImageError

from shotguide.types import UploadedImage

# Pillow format name -> media type accepted by the plan endpoint
ACCEPTED_FORMATS = {"PNG": "image/png", "JPEG": "image/jpeg"}


def bytes_to_data_url(data: bytes, mime: str = "image/png") -> str:
    b64 = base64.b64encode(data).decode("ascii")
    return f"data:{mime};base64,{b64}"


def data_url_to_bytes_and_mime(data_url: str) -> Tuple[bytes, str]:
    """
    Convert a data URL (data:<mime>;base64,...) to raw bytes and mime type.
    """
    if not isinstance(data_url, str) or "," not in data_url:
        raise ValueError("Invalid data URL")
    header, b64 = data_url.split(",", 1)
    mime = "image/png"
    if header.startswith("data:") and ";" in header:
        mime = header[5: header.index(";")] or mime
    return base64.b64decode(b64), mime


def fetch_image_bytes(url: str, timeout_sec: int = 30) -> Tuple[bytes, str]:
    """Return (bytes, mime) for a data URL or an http(s) image URL.

    Raises ValueError when an http(s) URL does not serve an image/* content type.
    """
    if url.startswith("http://") or url.startswith("https://"):
        resp = requests.get(url, timeout=timeout_sec)
        resp.raise_for_status()
        mime = resp.headers.get("content-type", "").split(";", 1)[0].strip().lower()
        if not mime.startswith("image/"):
            raise ValueError(f"{url} is not an image (content-type {mime or 'missing'})")
        return resp.content, mime
    return data_url_to_bytes_and_mime(url)


def encode_image_bytes(data: bytes, name: str = "") -> UploadedImage:
    """
    Validate raw bytes as a PNG or JPEG image and wrap them as an UploadedImage.

    The media type comes from the decoded format rather than the file name.
    Raises ValueError for anything Pillow cannot read or for other formats.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise ValueError(f"not a readable image ({e})") from e
    mime = ACCEPTED_FORMATS.get(fmt or "")
    if mime is None:
        raise ValueError(f"unsupported image format {fmt!r}; use PNG or JPEG")
    return UploadedImage(
        encoded_bytes=base64.b64encode(data).decode("ascii"),
        media_type=mime,
        name=name,
    )
