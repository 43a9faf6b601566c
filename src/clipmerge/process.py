"""External process runner: ffmpeg and ffprobe as awaitable subprocesses."""

import asyncio
import logging
import shlex

import imageio_ffmpeg

logger = logging.getLogger(__name__)

# Lines of stderr kept in error messages. ffmpeg prints the banner and
# stream layout first; the actual failure is at the end.
STDERR_TAIL_LINES = 12


def ffmpeg_exe(settings=None) -> str:
    """Configured ffmpeg binary, or the one bundled with imageio-ffmpeg."""
    if settings is not None and settings.ffmpeg_bin:
        return settings.ffmpeg_bin
    return imageio_ffmpeg.get_ffmpeg_exe()


def ffprobe_exe(settings=None) -> str:
    """ffprobe binary. imageio-ffmpeg does NOT bundle ffprobe, so this
    comes from configuration or PATH."""
    if settings is not None and settings.ffprobe_bin:
        return settings.ffprobe_bin
    return "ffprobe"


def stderr_tail(stderr: str, lines: int = STDERR_TAIL_LINES) -> str:
    """Return the last few non-empty lines of captured stderr."""
    kept = [ln for ln in stderr.splitlines() if ln.strip()]
    return "\n".join(kept[-lines:])


async def run_ffmpeg(cmd: list[str], error_cls=RuntimeError) -> str:
    """Run a command to completion and return its stdout.

    Args:
        cmd: Full argv, binary first.
        error_cls: Exception class raised on a non-zero exit. Receives a
            message containing the exit code and the stderr tail.

    Raises:
        error_cls: Process exited with a non-zero code.
        OSError: Binary could not be spawned at all.
    """
    logger.debug("exec: %s", shlex.join(str(c) for c in cmd))
    proc = await asyncio.create_subprocess_exec(
        *[str(c) for c in cmd],
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await proc.communicate()
    except asyncio.CancelledError:
        if proc.returncode is None:
            proc.kill()
            await proc.wait()
        raise
    out = stdout.decode("utf-8", errors="replace")
    err = stderr.decode("utf-8", errors="replace")

    if proc.returncode != 0:
        name = str(cmd[0]).rsplit("/", 1)[-1]
        raise error_cls(
            f"{name} exited with code {proc.returncode}:\n{stderr_tail(err)}"
        )
    return out
