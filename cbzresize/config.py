"""Job description and conversion settings."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .errors import ConfigurationError


# Defaults
DEFAULT_GEOMETRY = "800x1200^"   # fit the larger side, the tool keeps aspect ratio
DEFAULT_QUALITY = 85
DEFAULT_EXTENSION = "jpg"

# Lower-cased extensions routed to the raster tool; everything else is copied as-is
IMAGE_EXTENSIONS = ("jpg", "png", "webp", "avif", "gif")


@dataclass(frozen=True)
class ConversionSettings:
    """Parameters applied uniformly to every image of a job."""

    geometry: str = DEFAULT_GEOMETRY
    quality: int = DEFAULT_QUALITY
    define: Optional[str] = None
    extension: str = DEFAULT_EXTENSION
    workers: int = 1
    timeout: Optional[float] = None

    def __post_init__(self):
        if not self.geometry:
            raise ConfigurationError("geometry must not be empty")
        if not 1 <= self.quality <= 100:
            raise ConfigurationError(f"quality must be between 1 and 100, got {self.quality}")
        ext = self.extension.lstrip(".")
        if not ext:
            raise ConfigurationError("output extension must not be empty")
        # frozen: normalize through object.__setattr__
        object.__setattr__(self, "extension", ext)
        if self.workers < 1:
            raise ConfigurationError(f"workers must be at least 1, got {self.workers}")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError(f"timeout must be positive, got {self.timeout}")


@dataclass(frozen=True)
class Job:
    """One source archive to target archive conversion."""

    source: Path
    target: Path
    settings: ConversionSettings = field(default_factory=ConversionSettings)

    def __post_init__(self):
        object.__setattr__(self, "source", Path(self.source))
        object.__setattr__(self, "target", Path(self.target))

    def __str__(self):
        return f"{self.source} -> {self.target}"
