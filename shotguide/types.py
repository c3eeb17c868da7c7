from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Tuple


PRODUCT_CATEGORIES: Tuple[str, ...] = (
    "Alcove Tubs/Inset Tubs",
    "Backwall Kit",
    "Bathroom Sink",
    "Bathtub Kit",
    "Bathtubs",
    "Base",
    "Exposed Shower System",
    "Faucets",
    "Kitchen Sink Faucet",
    "Mirror/Cabinet",
    "Shower Curtain Rod",
    "Shower Door/Tub Door",
    "Shower Enclosures",
    "Shower Faucet",
    "Shower Kit",
    "Toilets",
    "Utility Sink",
    "Vanity",
    "Vanity Knob/Handles",
    "Vessel Sink",
)

DEFAULT_CATEGORY = "Bathtubs"
DEFAULT_STYLE = "Modern Minimalist with natural wood accents"


class AspectRatio(str, Enum):
    SQUARE = "1:1"
    WIDE = "4:3"


@dataclass(frozen=True)
class UploadedImage:
    encoded_bytes: str
    media_type: str
    name: str = ""

    def to_data_url(self) -> str:
        return f"data:{self.media_type};base64,{self.encoded_bytes}"


@dataclass(frozen=True)
class FormState:
    product_category: str = DEFAULT_CATEGORY
    style: str = DEFAULT_STYLE
    images: Tuple[UploadedImage, ...] = ()


@dataclass(frozen=True)
class Shot:
    shot_number: int
    shot_type: str
    prompt: str
    image_data_url: Optional[str] = None

    @property
    def is_rendered(self) -> bool:
        return self.image_data_url is not None


@dataclass(frozen=True)
class SceneData:
    scene_id: str
    master_scene_description: str
    master_product_description: str
    shots: Tuple[Shot, ...] = field(default_factory=tuple)

    @property
    def rendered_count(self) -> int:
        return sum(1 for s in self.shots if s.is_rendered)

    def without_images(self) -> "SceneData":
        return replace(self, shots=tuple(replace(s, image_data_url=None) for s in self.shots))

    def with_image(self, index: int, image_data_url: str) -> "SceneData":
        """Return a copy with shot `index` rendered; other shots are shared, not copied."""
        current = self.shots[index]
        if current.is_rendered:
            raise ValueError(f"Shot {current.shot_number} already has an image")
        shots = list(self.shots)
        shots[index] = replace(current, image_data_url=image_data_url)
        return replace(self, shots=tuple(shots))
