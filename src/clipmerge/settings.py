"""Process-wide settings: loaded once from an optional YAML file.

Config file schema (every key optional):
  storage_root: "/var/lib/clipmerge"
  retention_minutes: 30
  sweep_interval_minutes: 10
  max_parallel_normalize: 2
  ffmpeg_bin: null            # null = bundled imageio-ffmpeg binary
  ffprobe_bin: "ffprobe"
  min_segment_duration: 0.05
  transition_margin: 0.05     # kept between a transition and the shortest clip
  offset_margin: 0.0          # subtracted from every transition offset
  min_transition: 0.01        # below this, transitions are disabled
  default_transition: "fade"
  audio_sample_rate: 44100
  video_preset: "fast"
  audio_bitrate: "192k"
  max_upload_mb: 500
"""

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path

import yaml


CONFIG_ENV_VAR = "CLIPMERGE_CONFIG"


@dataclass(frozen=True)
class Settings:
    storage_root: str = "./clipmerge-data"
    retention_minutes: float = 30
    sweep_interval_minutes: float = 10
    max_parallel_normalize: int = 2
    ffmpeg_bin: str | None = None
    ffprobe_bin: str = "ffprobe"
    min_segment_duration: float = 0.05
    transition_margin: float = 0.05
    offset_margin: float = 0.0
    min_transition: float = 0.01
    default_transition: str = "fade"
    audio_sample_rate: int = 44100
    video_preset: str = "fast"
    audio_bitrate: str = "192k"
    max_upload_mb: float = 500

    @property
    def retention_seconds(self) -> float:
        return self.retention_minutes * 60

    @property
    def sweep_interval_seconds(self) -> float:
        return self.sweep_interval_minutes * 60

    def with_overrides(self, **changes) -> "Settings":
        return replace(self, **changes)


# Keys that must be strictly positive / non-negative numbers.
_POSITIVE = {
    "retention_minutes", "sweep_interval_minutes", "max_parallel_normalize",
    "min_segment_duration", "audio_sample_rate", "max_upload_mb",
}
_NON_NEGATIVE = {"transition_margin", "offset_margin", "min_transition"}


def _validate(values: dict) -> None:
    known = {f.name for f in fields(Settings)}
    unknown = set(values) - known
    if unknown:
        raise ValueError(f"Config: unknown key(s) {sorted(unknown)}")

    for key in _POSITIVE & set(values):
        v = values[key]
        if isinstance(v, bool) or not isinstance(v, (int, float)) or v <= 0:
            raise ValueError(f"Config: {key} must be > 0, got {v!r}")
    for key in _NON_NEGATIVE & set(values):
        v = values[key]
        if isinstance(v, bool) or not isinstance(v, (int, float)) or v < 0:
            raise ValueError(f"Config: {key} must be >= 0, got {v!r}")

    if "max_parallel_normalize" in values and not isinstance(
        values["max_parallel_normalize"], int
    ):
        raise ValueError("Config: max_parallel_normalize must be an integer")
    if "audio_sample_rate" in values and not isinstance(
        values["audio_sample_rate"], int
    ):
        raise ValueError("Config: audio_sample_rate must be an integer")


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from YAML, falling back to defaults.

    Resolution order for the file: explicit ``path``, then the
    CLIPMERGE_CONFIG environment variable, then no file (all defaults).

    Raises:
        ValueError: Unknown keys or out-of-range values.
        FileNotFoundError: An explicitly named config file is missing.
    """
    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR)
    if not path:
        return Settings()

    with open(path) as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config: expected a mapping at top level in {path}")

    _validate(raw)
    return Settings(**raw)
