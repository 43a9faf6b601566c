"""Error taxonomy for the render pipeline."""


class ClipMergeError(Exception):
    """Base class for all clipmerge failures."""


class InputError(ClipMergeError, ValueError):
    """Request rejected before any work starts (e.g. no clips supplied)."""


class ProbeError(ClipMergeError):
    """ffprobe could not read metadata from a file."""

    def __init__(self, path, detail=""):
        self.path = str(path)
        self.detail = detail
        msg = f"Cannot probe {self.path}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class EncodeError(ClipMergeError):
    """Normalizing a clip failed. Fatal for the render, never retried."""


class CompositeError(ClipMergeError):
    """Joining normalized clips into the final output failed."""


class TransitionGraphError(CompositeError):
    """The engine rejected the transition filter graph.

    The only composite failure that falls back to plain concatenation.
    """


class CleanupError(ClipMergeError):
    """Best-effort deletion failed. Logged by the storage layer, never raised past it."""
