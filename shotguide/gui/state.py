from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from shotguide.types import SceneData


class Phase(str, Enum):
    IDLE = "idle"
    PLANNING = "planning"
    RENDERING = "rendering"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class PipelineState:
    """One published snapshot of a generation run.

    `current_shot` is the index being rendered while in RENDERING; `epoch`
    identifies the run the snapshot belongs to.
    """

    phase: Phase = Phase.IDLE
    scene: Optional[SceneData] = None
    error: Optional[str] = None
    progress: str = ""
    current_shot: Optional[int] = None
    epoch: int = 0

    @property
    def is_busy(self) -> bool:
        return self.phase in (Phase.PLANNING, Phase.RENDERING)
