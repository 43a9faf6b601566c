"""Storage lifecycle: session uploads, render outputs, render workspaces, expiry.

Layout under the storage root:
  uploads/<session-id>/<uuid>.<ext>   one subtree per client session
  outputs/clipmerge-<uuid>.<ext>      one file per completed render
  work/<render-id>/                   intermediates of an in-flight render

A sweep deletes every file older than the retention window under all
three roots and prunes directories left empty. Workspaces of renders
still in flight are skipped. Deletion is best effort: failures are
logged, never raised to callers.
"""

import logging
import os
import re
import shutil
import threading
import time
import uuid
from contextlib import contextmanager
from pathlib import Path

from .errors import CleanupError, InputError
from .models import SourceClip
from .probe import probe_media_tolerant

logger = logging.getLogger(__name__)


ALLOWED_UPLOAD_EXTENSIONS = {".mp4", ".mov", ".webm", ".mkv", ".avi"}

_SESSION_ID = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def validate_session_id(session_id: str) -> str:
    """Reject ids that could escape the uploads root."""
    if not isinstance(session_id, str) or not _SESSION_ID.match(session_id):
        raise InputError(f"Invalid session id: {session_id!r}")
    return session_id


def _remove_file(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        raise CleanupError(f"Cannot delete {path}: {exc}") from exc


def _remove_tree(path: Path) -> None:
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        raise CleanupError(f"Cannot delete {path}: {exc}") from exc


def discard(path: str | Path) -> bool:
    """Delete a file or directory tree, logging instead of raising."""
    path = Path(path)
    try:
        if path.is_dir() and not path.is_symlink():
            _remove_tree(path)
        else:
            _remove_file(path)
    except CleanupError as exc:
        logger.warning("%s", exc)
        return False
    return True


def discard_file(path: str | Path) -> bool:
    """Delete a regular file, logging instead of raising.

    Directories and missing paths are left alone and return False.
    """
    path = Path(path)
    if not path.is_file():
        return False
    try:
        _remove_file(path)
    except CleanupError as exc:
        logger.warning("%s", exc)
        return False
    return True


class StorageManager:
    """Owns the uploads/outputs/work directories of one deployment."""

    def __init__(self, root: str | Path, retention_seconds: float, max_upload_mb: float = 500):
        self.root = Path(root)
        self.uploads_root = self.root / "uploads"
        self.outputs_root = self.root / "outputs"
        self.work_root = self.root / "work"
        self.retention_seconds = float(retention_seconds)
        self.max_upload_bytes = int(max_upload_mb * 1024 * 1024)

        self._active = set()
        self._active_lock = threading.Lock()
        self._sweep_lock = threading.Lock()
        self._timers = []
        self._stop = threading.Event()
        self._sweeper = None

    @classmethod
    def from_settings(cls, settings) -> "StorageManager":
        return cls(settings.storage_root, settings.retention_seconds, settings.max_upload_mb)

    @property
    def roots(self) -> list[Path]:
        return [self.uploads_root, self.outputs_root, self.work_root]

    def ensure_dirs(self) -> None:
        for d in self.roots:
            d.mkdir(parents=True, exist_ok=True)

    # ── Uploads ───────────────────────────────────────────────────

    def session_dir(self, session_id: str) -> Path:
        return self.uploads_root / validate_session_id(session_id)

    def import_upload(
        self, session_id: str, source: str | Path, original_name: str | None = None,
    ) -> Path:
        """Copy a client file into the session directory under a fresh name.

        Raises:
            InputError: Unsupported extension, or file over the size limit.
            FileNotFoundError: Source does not exist.
        """
        source = Path(source)
        ext = Path(original_name or source.name).suffix.lower()
        if ext not in ALLOWED_UPLOAD_EXTENSIONS:
            raise InputError(
                f"Unsupported file type '{ext}'. "
                f"Valid: {sorted(ALLOWED_UPLOAD_EXTENSIONS)}"
            )
        size = source.stat().st_size
        if size > self.max_upload_bytes:
            raise InputError(
                f"{source.name} is {size} bytes, limit is {self.max_upload_bytes}"
            )

        dest_dir = self.session_dir(session_id)
        dest_dir.mkdir(parents=True, exist_ok=True)
        dest = dest_dir / f"{uuid.uuid4()}{ext}"
        shutil.copyfile(source, dest)
        return dest

    async def list_session_clips(self, session_id: str, settings=None) -> list[SourceClip]:
        """Describe every upload in a session. Unreadable files get zeroed metadata."""
        d = self.session_dir(session_id)
        if not d.is_dir():
            return []
        clips = []
        for p in sorted(d.iterdir()):
            if not p.is_file():
                continue
            info = await probe_media_tolerant(p, settings)
            clips.append(SourceClip(id=p.stem, path=p, filename=p.name, info=info))
        return clips

    def is_upload(self, path: str | Path) -> bool:
        """True if ``path`` lies inside a session directory of the uploads root."""
        try:
            rel = Path(path).resolve().relative_to(self.uploads_root.resolve())
        except ValueError:
            return False
        return len(rel.parts) >= 2

    def consume_uploads(self, paths) -> list[Path]:
        """Delete the uploads among ``paths`` once a render has used them.

        Paths outside the uploads root are never touched. Returns the files
        removed.
        """
        removed = []
        for p in dict.fromkeys(Path(p) for p in paths):
            if self.is_upload(p) and discard_file(p):
                removed.append(p)
        if removed:
            logger.info("consumed %d upload(s)", len(removed))
        return removed

    def cleanup_session(self, session_id: str) -> list[Path]:
        """Delete one session's uploads, then run a sweep.

        Returns the files removed by the sweep.
        """
        d = self.session_dir(session_id)
        if d.exists():
            discard(d)
            logger.info("removed session %s", session_id)
        return self.sweep()

    # ── Outputs and render workspaces ─────────────────────────────

    def new_output_path(self, extension: str) -> Path:
        self.outputs_root.mkdir(parents=True, exist_ok=True)
        return self.outputs_root / f"clipmerge-{uuid.uuid4()}.{extension.lstrip('.')}"

    @contextmanager
    def render_workspace(self, render_id: str):
        """Yield a private directory for one render's intermediates.

        The directory is protected from sweeps while open and deleted
        unconditionally on exit, whether the render succeeded or not.
        """
        validate_session_id(render_id)
        path = self.work_root / render_id
        with self._active_lock:
            self._active.add(path)
        path.mkdir(parents=True, exist_ok=True)
        try:
            yield path
        finally:
            discard(path)
            with self._active_lock:
                self._active.discard(path)

    def is_active(self, path: Path) -> bool:
        with self._active_lock:
            return path in self._active

    def schedule_expiry(self, path: str | Path, delay: float | None = None) -> threading.Timer:
        """Delete ``path`` once after ``delay`` seconds (default: retention window)."""
        delay = self.retention_seconds if delay is None else delay
        timer = threading.Timer(delay, discard, args=(Path(path),))
        timer.daemon = True
        timer.start()
        self._timers = [t for t in self._timers if t.is_alive()] + [timer]
        return timer

    # ── Sweep ─────────────────────────────────────────────────────

    def sweep(self, now: float | None = None) -> list[Path]:
        """Delete files older than the retention window; prune empty dirs.

        Idempotent: a second run with no intervening writes removes nothing.
        Returns the files removed.
        """
        now = time.time() if now is None else now
        cutoff = now - self.retention_seconds
        removed = []

        with self._sweep_lock:
            for root in self.roots:
                if not root.is_dir():
                    continue
                for dirpath, dirnames, filenames in os.walk(root, topdown=True):
                    current = Path(dirpath)
                    # Skip the workspace of any render still running.
                    dirnames[:] = [
                        d for d in dirnames if not self.is_active(current / d)
                    ]
                    for name in filenames:
                        p = current / name
                        try:
                            mtime = p.stat().st_mtime
                        except FileNotFoundError:
                            continue
                        if mtime < cutoff and discard(p):
                            removed.append(p)
                self._prune_empty(root)

        if removed:
            logger.info("sweep removed %d expired file(s)", len(removed))
        return removed

    def _prune_empty(self, root: Path) -> None:
        for dirpath, _dirnames, _filenames in os.walk(root, topdown=False):
            d = Path(dirpath)
            if d == root or any(self.is_active(p) for p in (d, *d.parents)):
                continue
            try:
                d.rmdir()
            except OSError:
                # Not empty (or vanished): leave it.
                continue

    def start_sweeper(self, interval: float) -> threading.Thread:
        """Sweep now, then every ``interval`` seconds on a daemon thread."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return self._sweeper
        self._stop.clear()

        def _loop():
            while True:
                try:
                    self.sweep()
                except Exception:
                    logger.exception("sweep failed")
                if self._stop.wait(interval):
                    return

        self._sweeper = threading.Thread(target=_loop, name="clipmerge-sweeper", daemon=True)
        self._sweeper.start()
        return self._sweeper

    def stop_sweeper(self) -> None:
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=5)
            self._sweeper = None
        for t in self._timers:
            t.cancel()
        self._timers = []
