from __future__ import annotations

from typing import Callable, Iterable, List, Optional, Tuple

from shotguide.errors import IntakeError
from shotguide.services.storage import encode_image_bytes
from shotguide.types import FormState, UploadedImage


def _read_file(file, index: int) -> Tuple[bytes, str]:
    if isinstance(file, (bytes, bytearray)):
        return bytes(file), f"image_{index + 1}"
    name = getattr(file, "name", "") or f"image_{index + 1}"
    try:
        file.seek(0)
    except Exception:  # noqa: BLE001
        pass
    return file.read(), name


class ImageIntake:
    """Ordered list of encoded product images selected by the user."""

    def __init__(self, on_log: Optional[Callable[[str], None]] = None) -> None:
        self.on_log: Callable[[str], None] = on_log or (lambda _msg: None)
        self._images: List[UploadedImage] = []

    def __len__(self) -> int:
        return len(self._images)

    @property
    def images(self) -> Tuple[UploadedImage, ...]:
        return tuple(self._images)

    def add_files(self, files: Iterable) -> List[IntakeError]:
        """Encode and append each file in selection order.

        Files that are not readable PNG/JPEG images are skipped and reported in
        the returned list.
        """
        rejected: List[IntakeError] = []
        for i, file in enumerate(files):
            try:
                data, name = _read_file(file, i)
            except Exception as e:  # noqa: BLE001
                name = getattr(file, "name", f"image_{i + 1}")
                self.on_log(f"❌ Could not read {name}: {e}")
                rejected.append(IntakeError(name, f"Could not read {name}: {e}"))
                continue
            try:
                image = encode_image_bytes(data, name=name)
            except ValueError as e:
                self.on_log(f"❌ Rejected {name}: {e}")
                rejected.append(IntakeError(name, f"{name}: {e}"))
                continue
            self._images.append(image)
            self.on_log(f"🖼️  Added {name} ({image.media_type}, {len(data) / 1024:.1f} KB)")
        return rejected

    def remove_image(self, index: int) -> UploadedImage:
        if index < 0 or index >= len(self._images):
            raise IndexError(f"No image at position {index}")
        removed = self._images.pop(index)
        self.on_log(f"🗑️  Removed {removed.name or f'image {index + 1}'}")
        return removed

    def clear(self) -> None:
        self._images = []

    def to_form(self, product_category: str, style: str) -> FormState:
        return FormState(product_category=product_category, style=style, images=self.images)
