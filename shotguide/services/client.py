from __future__ import annotations

from typing import Callable, Optional, Sequence

from openai import OpenAI

from shotguide.config import AppConfig, create_openrouter_client
from shotguide.errors import ConfigurationError
from shotguide.services.images import generate_image
from shotguide.services.planner import fetch_scene_plan
from shotguide.types import SceneData, UploadedImage


class AIServiceClient:
    """The two remote operations behind one object.

    Each call is a single stateless round trip: no retry, caching or throttling.
    """

    def __init__(
        self,
        cfg: AppConfig,
        client: Optional[OpenAI] = None,
        on_log: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.cfg = cfg
        self.on_log: Callable[[str], None] = on_log or (lambda _msg: None)
        if client is None and cfg.transport == "sdk" and cfg.openrouter_api_key:
            client = create_openrouter_client(cfg)
        self.client = client

    def _require_key(self) -> None:
        if not self.cfg.openrouter_api_key:
            raise ConfigurationError("OPENROUTER_API_KEY is missing. Add it to your environment or .env.", field="OPENROUTER_API_KEY")

    def request_scene_plan(self, category: str, style: str, images: Sequence[UploadedImage]) -> SceneData:
        self._require_key()
        return fetch_scene_plan(self.client, self.cfg, category, style, images, on_log=self.on_log)

    def request_shot_image(self, prompt: str, shot_type: str) -> str:
        self._require_key()
        return generate_image(self.client, self.cfg, prompt, shot_type, on_log=self.on_log)
