"""Compositor: join normalized clips by concatenation or an xfade graph.

Transition timing:
  The effective transition is clamped below the shortest clip so that
  xfade never needs more frames than a clip has:

      effective = min(requested, max(0, min(durations) - margin))

  Below ``min_transition`` the render falls back to plain concat.

  Offsets are computed from the graph's *actual* running duration. After
  blending clip i at ``offset``, the xfade output lasts exactly
  ``offset + duration[i]``; that value (not the naive running sum minus
  the overlap) seeds the next offset, so rounding from offset_margin
  never accumulates across many transitions.

Audio is concatenated end to end regardless of where the video blends.
The output is cut to the blended video length with -shortest.

Strategy policy: try the transition graph first; if ffmpeg rejects it
(TransitionGraphError), retry the whole step with concat. Concat failures
and anything else propagate.
"""

import asyncio
import logging
import shutil
from pathlib import Path

from .capabilities import resolve_transition, supported_transitions
from .errors import CompositeError, TransitionGraphError
from .formats import CodecPreset
from .models import NormalizedClip
from .process import ffmpeg_exe, run_ffmpeg

logger = logging.getLogger(__name__)

# Container every normalized intermediate is written in.
INTERMEDIATE_CONTAINER = "mp4"


def effective_transition_duration(
    durations: list[float], requested: float, margin: float,
) -> float:
    """Clamp the requested transition below the shortest clip. Never negative."""
    if not durations:
        return 0.0
    requested = max(0.0, float(requested or 0.0))
    return min(requested, max(0.0, min(durations) - margin))


def build_transition_graph(
    durations: list[float],
    transition: str,
    effective: float,
    offset_margin: float = 0.0,
) -> tuple[str, float, str, str]:
    """Build the filter_complex for chained xfades plus concatenated audio.

    Returns (filter_graph, expected_video_duration, video_label, audio_label).
    """
    n = len(durations)
    parts = []
    video_label = "[0:v]"
    cumulative = durations[0]

    for i in range(1, n):
        offset = max(0.0, cumulative - effective - offset_margin)
        out = f"[v{i}]"
        parts.append(
            f"{video_label}[{i}:v]xfade=transition={transition}"
            f":duration={effective:.3f}:offset={offset:.3f}{out}"
        )
        video_label = out
        cumulative = offset + durations[i]

    audio_in = "".join(f"[{i}:a]" for i in range(n))
    parts.append(f"{audio_in}concat=n={n}:v=0:a=1[aout]")
    return ";".join(parts), cumulative, video_label, "[aout]"


def concat_list_text(paths: list[str | Path]) -> str:
    """Concat-demuxer list file. Single quotes are escaped as '\\''."""
    lines = []
    for p in paths:
        escaped = str(Path(p).resolve()).replace("\\", "/").replace("'", "'\\''")
        lines.append(f"file '{escaped}'")
    return "\n".join(lines) + "\n"


def _encode_args(preset: CodecPreset, settings) -> list[str]:
    return preset.output_args(settings.video_preset, settings.audio_bitrate)


async def _run_transition(clips, output, transition, effective, preset, settings):
    durations = [c.duration for c in clips]
    graph, expected, v_label, a_label = build_transition_graph(
        durations, transition, effective, settings.offset_margin,
    )
    inputs = []
    for clip in clips:
        inputs += ["-i", str(clip.path)]

    cmd = [
        ffmpeg_exe(settings), "-y", "-hide_banner",
        *inputs,
        "-filter_complex", graph,
        "-map", v_label,
        "-map", a_label,
        *_encode_args(preset, settings),
        "-shortest",
        str(output),
    ]
    logger.info(
        "compositing %d clips with %s transitions (%.3fs each), expected ~%.2fs",
        len(clips), transition, effective, expected,
    )
    await run_ffmpeg(cmd, error_cls=TransitionGraphError)


async def _run_concat(clips, output, preset, settings, work_dir):
    list_path = Path(work_dir) / "concat_list.txt"
    list_path.write_text(concat_list_text([c.path for c in clips]))
    cmd = [
        ffmpeg_exe(settings), "-y", "-hide_banner",
        "-f", "concat", "-safe", "0",
        "-i", str(list_path),
        *_encode_args(preset, settings),
        str(output),
    ]
    logger.info("concatenating %d clips", len(clips))
    try:
        await run_ffmpeg(cmd, error_cls=CompositeError)
    finally:
        list_path.unlink(missing_ok=True)


async def _run_single(clip, output, preset, settings) -> str:
    if preset.container == INTERMEDIATE_CONTAINER:
        await asyncio.to_thread(shutil.copyfile, clip.path, output)
        return "copy"
    cmd = [
        ffmpeg_exe(settings), "-y", "-hide_banner",
        "-i", str(clip.path),
        *_encode_args(preset, settings),
        str(output),
    ]
    await run_ffmpeg(cmd, error_cls=CompositeError)
    return "transcode"


async def composite(
    clips: list[NormalizedClip],
    output: str | Path,
    transition: str,
    requested_duration: float,
    preset: CodecPreset,
    settings,
    work_dir: str | Path,
) -> str:
    """Write the final output and return the strategy used.

    Strategies: "copy" / "transcode" (single clip), "concat", "transition".

    Raises:
        CompositeError: No clips, or the final attempt failed.
    """
    if not clips:
        raise CompositeError("Nothing to composite")

    output = Path(output)
    output.parent.mkdir(parents=True, exist_ok=True)

    try:
        if len(clips) == 1:
            return await _run_single(clips[0], output, preset, settings)

        effective = effective_transition_duration(
            [c.duration for c in clips], requested_duration, settings.transition_margin,
        )
        supported = frozenset()
        if effective >= settings.min_transition:
            supported = await asyncio.to_thread(supported_transitions, settings)
            if not supported:
                logger.warning("ffmpeg has no xfade filter; transitions disabled")

        if effective < settings.min_transition or not supported:
            await _run_concat(clips, output, preset, settings, work_dir)
            return "concat"

        name = resolve_transition(transition, supported, settings.default_transition)
        try:
            await _run_transition(clips, output, name, effective, preset, settings)
            return "transition"
        except TransitionGraphError as exc:
            logger.warning("transition graph rejected, falling back to concat: %s", exc)

        await _run_concat(clips, output, preset, settings, work_dir)
        return "concat"
    except OSError as exc:
        raise CompositeError(f"Cannot write {output}: {exc}") from exc
