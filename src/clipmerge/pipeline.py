"""Render pipeline: probe → normalize (per clip) → composite → expire outputs, consume uploads.

Each render gets its own workspace under work/<render-id>, so concurrent
renders never share intermediate filenames. The workspace is removed
whether the render succeeds or fails.
"""

import asyncio
import logging
import time
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

from .compositor import composite
from .errors import InputError
from .formats import resolve_codec
from .models import RenderRequest, RenderResult, TimelineSegment
from .normalize import normalize_all
from .probe import probe_media
from .storage import StorageManager, discard_file

logger = logging.getLogger(__name__)


def validate_request(request: RenderRequest) -> None:
    """Reject requests that cannot produce any output.

    Raises:
        InputError: No segments, or invalid size/fps.
    """
    if not request.segments:
        raise InputError("No clips provided")
    if request.width <= 0 or request.height <= 0:
        raise InputError(f"Invalid output size {request.width}x{request.height}")
    if request.width % 2 or request.height % 2:
        # yuv420p needs even dimensions.
        raise InputError(f"Output size must be even, got {request.width}x{request.height}")
    if request.fps <= 0:
        raise InputError(f"fps must be > 0, got {request.fps}")
    for i, seg in enumerate(request.segments):
        if seg.source_start is not None and seg.source_start < 0:
            raise InputError(f"Clip {i}: start must be >= 0, got {seg.source_start}")


def request_from_paths(
    items: list[dict],
    transition: str = "fade",
    transition_duration: float = 0.5,
    format: str = "mp4",
    width: int = 1920,
    height: int = 1080,
    fps: int = 30,
) -> RenderRequest:
    """Build a request from ``{"filePath", "trimStart", "trimEnd"}`` items."""
    segments = [
        TimelineSegment(
            path=Path(item["filePath"]),
            source_start=float(item.get("trimStart") or 0.0),
            source_end=None if item.get("trimEnd") is None else float(item["trimEnd"]),
            position=i,
            id=str(item.get("id", i)),
        )
        for i, item in enumerate(items)
    ]
    return RenderRequest(
        segments=segments,
        transition=transition,
        transition_duration=float(transition_duration),
        format=format,
        width=int(width),
        height=int(height),
        fps=int(fps),
    )


async def render(
    request: RenderRequest,
    storage: StorageManager,
    settings,
    output_path: str | Path | None = None,
    consume_sources: bool = True,
) -> RenderResult:
    """Render a request to one finished file.

    Args:
        request: Ordered segments and output parameters.
        storage: Provides the render workspace and output location.
        settings: Process settings.
        output_path: Explicit destination. Default is a fresh file in the
            outputs root, scheduled for deletion after the retention window.
        consume_sources: Delete the session uploads the request used once
            the render succeeds. Paths outside the uploads root are kept.

    Raises:
        InputError: Empty or invalid request, or ``output_path`` is a directory.
        ProbeError: A source cannot be read.
        EncodeError: Normalization failed.
        CompositeError: Compositing failed, including the concat fallback.
    """
    validate_request(request)
    if output_path is not None and Path(output_path).is_dir():
        raise InputError(f"Output path {output_path} is a directory")
    preset = resolve_codec(request.format)
    render_id = uuid.uuid4().hex
    managed = output_path is None
    output = storage.new_output_path(preset.extension) if managed else Path(output_path)
    existed = output.exists()

    logger.info(
        "render %s: %d clip(s), %dx%d@%d, %s, transition=%s/%.2fs",
        render_id, len(request.segments), request.width, request.height,
        request.fps, preset.container, request.transition,
        request.transition_duration,
    )
    t0 = time.monotonic()
    segments = sorted(request.segments, key=lambda s: s.position)

    with storage.render_workspace(render_id) as work_dir:
        try:
            clips = await normalize_all(
                segments, work_dir,
                request.width, request.height, request.fps, settings,
            )
            strategy = await composite(
                clips, output,
                request.transition, request.transition_duration,
                preset, settings, work_dir,
            )
        except BaseException:
            # Only remove what this render wrote; never a file it found there.
            if not existed:
                discard_file(output)
            raise

    duration = (await probe_media(output, settings)).duration
    expires_at = datetime.now(timezone.utc) + timedelta(seconds=storage.retention_seconds)
    if managed:
        storage.schedule_expiry(output)
    if consume_sources:
        storage.consume_uploads(s.path for s in segments)

    logger.info(
        "render %s done: %s, %.2fs output, %.1fs wall (%s)",
        render_id, output, duration, time.monotonic() - t0, strategy,
    )
    return RenderResult(
        path=output, expires_at=expires_at, duration=duration,
        strategy=strategy, render_id=render_id,
    )


def render_sync(
    request, storage, settings, output_path=None, consume_sources=True,
) -> RenderResult:
    """Blocking wrapper around render() for CLI use."""
    return asyncio.run(render(request, storage, settings, output_path, consume_sources))
