"""Media probe: duration, resolution, codec, bitrate and audio presence via ffprobe."""

import json
import logging
from pathlib import Path

from .errors import ProbeError
from .models import MediaInfo
from .process import ffprobe_exe, run_ffmpeg

logger = logging.getLogger(__name__)


def _num(value, cast=float, default=0):
    try:
        return cast(float(value))
    except (TypeError, ValueError):
        return default


def parse_probe_output(payload: dict) -> MediaInfo:
    """Build a MediaInfo from ffprobe's JSON (-show_format -show_streams).

    Uses the first video stream and the first audio stream found;
    anything missing comes back as 0 / "unknown".
    """
    streams = payload.get("streams") or []
    fmt = payload.get("format") or {}

    video = next((s for s in streams if s.get("codec_type") == "video"), None)
    audio = next((s for s in streams if s.get("codec_type") == "audio"), None)

    duration = _num(fmt.get("duration"))
    if not duration and video is not None:
        # Some containers (raw streams, some webm) only carry stream duration.
        duration = _num(video.get("duration"))

    return MediaInfo(
        duration=duration,
        width=_num(video.get("width"), int) if video else 0,
        height=_num(video.get("height"), int) if video else 0,
        codec=(video.get("codec_name") if video else None) or "unknown",
        bitrate=_num(fmt.get("bit_rate"), int),
        size=_num(fmt.get("size"), int),
        has_audio=audio is not None,
    )


async def probe_media(path: str | Path, settings=None) -> MediaInfo:
    """Probe a file.

    Raises:
        ProbeError: File missing, or ffprobe cannot parse it.
    """
    path = Path(path)
    if not path.exists():
        raise ProbeError(path, "file not found")

    cmd = [
        ffprobe_exe(settings),
        "-v", "error",
        "-print_format", "json",
        "-show_format", "-show_streams",
        str(path),
    ]
    try:
        out = await run_ffmpeg(cmd, error_cls=RuntimeError)
    except RuntimeError as exc:
        raise ProbeError(path, str(exc)) from exc
    except OSError as exc:
        raise ProbeError(path, f"cannot run ffprobe: {exc}") from exc

    try:
        payload = json.loads(out or "{}")
    except json.JSONDecodeError as exc:
        raise ProbeError(path, f"unreadable ffprobe output: {exc}") from exc
    if not payload.get("format") and not payload.get("streams"):
        raise ProbeError(path, "no streams found")

    return parse_probe_output(payload)


async def probe_media_tolerant(path: str | Path, settings=None) -> MediaInfo:
    """Probe for upload listing: a failed probe yields zeroed metadata."""
    try:
        return await probe_media(path, settings)
    except ProbeError as exc:
        logger.warning("probe failed, listing with empty metadata: %s", exc)
        return MediaInfo.empty()
