"""Capability probe: which xfade transitions the installed ffmpeg supports.

The engine build does not change at runtime, so the answer is computed
once per process and cached. A lock makes the first computation
single-flight: concurrent first callers wait for one probe instead of
each spawning ffmpeg.
"""

import logging
import re
import subprocess
import threading

from .process import ffmpeg_exe

logger = logging.getLogger(__name__)


# Client-facing names → xfade transition names.
TRANSITION_ALIASES = {
    "fade": "fade",
    "dissolve": "dissolve",
    "slide": "slideleft",
}

DEFAULT_TRANSITION = "fade"

# "custom" needs an expression argument, so it is never usable by name.
_EXCLUDED = {"custom"}

_OPTION_LINE = re.compile(r"^\s+(\w+)\s+<\w+>")
_CONSTANT_LINE = re.compile(r"^\s+(\w+)\s+-?\d+\s+[.A-Z]+")

_lock = threading.Lock()
_cached: frozenset[str] | None = None


def parse_xfade_transitions(help_text: str) -> frozenset[str]:
    """Extract the named constants of xfade's ``transition`` option.

    Input is the output of ``ffmpeg -h filter=xfade``. Returns an empty
    set when the filter is unknown to this build.
    """
    names = set()
    in_transition = False
    for line in help_text.splitlines():
        option = _OPTION_LINE.match(line)
        if option:
            in_transition = option.group(1) == "transition"
            continue
        if in_transition:
            const = _CONSTANT_LINE.match(line)
            if const:
                names.add(const.group(1))
    return frozenset(names - _EXCLUDED)


def _query_engine(settings=None) -> frozenset[str]:
    cmd = [ffmpeg_exe(settings), "-hide_banner", "-h", "filter=xfade"]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=False)
    except OSError as exc:
        logger.warning("capability probe could not run ffmpeg: %s", exc)
        return frozenset()
    return parse_xfade_transitions(result.stdout + result.stderr)


def supported_transitions(settings=None) -> frozenset[str]:
    """Return the cached set of supported xfade transitions."""
    global _cached
    if _cached is not None:
        return _cached
    with _lock:
        if _cached is None:
            found = _query_engine(settings)
            logger.info("engine supports %d xfade transitions", len(found))
            _cached = found
    return _cached


def reset_capabilities() -> None:
    """Forget the cached capability set (tests only)."""
    global _cached
    with _lock:
        _cached = None


def resolve_transition(
    kind: str | None,
    supported: frozenset[str],
    default: str = DEFAULT_TRANSITION,
) -> str:
    """Map a requested transition to one the engine supports.

    Aliases are applied first; a raw xfade name is also accepted. Anything
    unknown or unsupported resolves to ``default``. The result never
    depends on the iteration order of ``supported``.
    """
    key = (kind or "").strip().lower()
    name = TRANSITION_ALIASES.get(key, key)
    if name in supported:
        return name
    if kind:
        logger.info("transition %r not supported, using %r", kind, default)
    return default
