"""
Exceptions raised by the intake, generation and packaging services.
"""

from __future__ import annotations

from typing import Optional


class ShotGuideError(Exception):
    """Base class for all application errors."""


class ConfigurationError(ShotGuideError):
    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class IntakeError(ShotGuideError):
    """A selected file could not be decoded as a PNG or JPEG image."""

    def __init__(self, file_name: str, message: Optional[str] = None):
        self.file_name = file_name
        super().__init__(message or f"Could not read image: {file_name}")


class GenerationError(ShotGuideError):
    """A remote generation call failed."""


class PlanGenerationError(GenerationError):
    pass


class ImageGenerationError(GenerationError):
    def __init__(self, message: str, shot_type: Optional[str] = None):
        self.shot_type = shot_type
        super().__init__(message)


class PackagingError(ShotGuideError):
    pass
