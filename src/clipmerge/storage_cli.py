"""CLI for storage maintenance.

Usage:
    clipmerge sweep   [--config clipmerge.yaml]
    clipmerge sweep   --watch [--interval MINUTES]   # sweep now, then every interval
    clipmerge cleanup SESSION_ID [--config clipmerge.yaml]
"""

import argparse

from .errors import InputError
from .settings import load_settings
from .storage import StorageManager


def _storage(config_path):
    settings = load_settings(config_path)
    storage = StorageManager.from_settings(settings)
    storage.ensure_dirs()
    return settings, storage


def _watch(storage, interval):
    print(f"Watching {storage.root}: sweeping every {interval / 60:g} min (Ctrl+C to stop)")
    thread = storage.start_sweeper(interval)
    try:
        while thread.is_alive():
            thread.join(timeout=1.0)
    except KeyboardInterrupt:
        print("Stopping sweeper")
    finally:
        storage.stop_sweeper()


def sweep_main(args=None):
    parser = argparse.ArgumentParser(
        description="Delete files older than the retention window.",
    )
    parser.add_argument("--config", default=None, help="Path to YAML settings file")
    parser.add_argument(
        "--watch", action="store_true",
        help="Keep running: sweep at startup, then every interval until interrupted",
    )
    parser.add_argument(
        "--interval", type=float, default=None,
        help="Minutes between sweeps with --watch (default: sweep_interval_minutes)",
    )
    parsed = parser.parse_args(args)
    if parsed.interval is not None and parsed.interval <= 0:
        parser.error("--interval must be > 0")

    settings, storage = _storage(parsed.config)
    if parsed.watch:
        interval = (
            settings.sweep_interval_seconds if parsed.interval is None
            else parsed.interval * 60
        )
        _watch(storage, interval)
        return

    print(f"Sweeping {storage.root} (retention {settings.retention_minutes:g} min)")
    removed = storage.sweep()
    for p in removed:
        print(f"  DEL    {p}")
    print(f"Done: {len(removed)} file(s) removed")


def cleanup_main(args=None):
    parser = argparse.ArgumentParser(
        description="Delete one session's uploads, then sweep expired files.",
    )
    parser.add_argument("session", help="Session id")
    parser.add_argument("--config", default=None, help="Path to YAML settings file")
    parsed = parser.parse_args(args)

    _, storage = _storage(parsed.config)
    try:
        removed = storage.cleanup_session(parsed.session)
    except InputError as exc:
        parser.error(str(exc))
    print(f"Session {parsed.session} removed; sweep deleted {len(removed)} expired file(s)")


if __name__ == "__main__":
    sweep_main()
