"""Data model: probed media, timeline segments, render requests and results."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path


MIN_SEGMENT_DURATION = 0.05

VALID_FORMATS = {"mp4", "mov", "webm", "avi"}

# Output quality names offered to clients, mapped to target boxes.
QUALITY_PRESETS = {
    "4K": (3840, 2160),
    "1080p": (1920, 1080),
    "720p": (1280, 720),
    "480p": (854, 480),
}
DEFAULT_QUALITY = "1080p"


def resolution_for_quality(quality: str | None) -> tuple[int, int]:
    """Map a quality name to (width, height). Unknown names get 1080p."""
    return QUALITY_PRESETS.get(quality or "", QUALITY_PRESETS[DEFAULT_QUALITY])


@dataclass(frozen=True)
class MediaInfo:
    """Metadata from the first video and first audio stream of a file."""

    duration: float
    width: int
    height: int
    codec: str
    bitrate: int
    size: int
    has_audio: bool

    @classmethod
    def empty(cls) -> "MediaInfo":
        """Zeroed record used when a probe failure is tolerated."""
        return cls(
            duration=0.0, width=0, height=0, codec="unknown",
            bitrate=0, size=0, has_audio=False,
        )

    @property
    def has_video(self) -> bool:
        return self.width > 0 and self.height > 0

    def as_dict(self) -> dict:
        return {
            "duration": self.duration,
            "width": self.width,
            "height": self.height,
            "codec": self.codec,
            "bitrate": self.bitrate,
            "size": self.size,
            "hasAudio": self.has_audio,
        }


@dataclass(frozen=True)
class SourceClip:
    """An uploaded file plus its probed metadata."""

    id: str
    path: Path
    filename: str
    info: MediaInfo


@dataclass(frozen=True)
class TimelineSegment:
    """A trimmed sub-range of a source file at a position in render order.

    source_end of None means "to the end of the source".
    """

    path: Path
    source_start: float = 0.0
    source_end: float | None = None
    position: int = 0
    id: str = ""

    @property
    def duration(self) -> float | None:
        if self.source_end is None:
            return None
        return self.source_end - self.source_start

    def clamped(
        self, source_duration: float, floor: float = MIN_SEGMENT_DURATION,
    ) -> tuple[float, float]:
        """Resolve trim bounds against the probed source duration.

        Returns (start, duration) with start >= 0, end >= start, and the
        duration floored at ``floor``.
        """
        start = max(0.0, float(self.source_start or 0.0))
        end = self.source_end if self.source_end is not None else source_duration
        end = max(start, float(end or 0.0))
        return start, max(floor, end - start)


@dataclass(frozen=True)
class RenderRequest:
    segments: list[TimelineSegment]
    transition: str = "fade"
    transition_duration: float = 0.5
    format: str = "mp4"
    width: int = 1920
    height: int = 1080
    fps: int = 30


@dataclass(frozen=True)
class NormalizedClip:
    """A re-encoded intermediate and its re-probed duration."""

    path: Path
    duration: float


@dataclass(frozen=True)
class RenderResult:
    path: Path
    expires_at: datetime
    duration: float = 0.0
    strategy: str = ""
    render_id: str = field(default="", compare=False)
