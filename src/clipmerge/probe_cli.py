"""CLI for media inspection.

Usage:
    clipmerge probe clip.mp4 other.mov
    clipmerge probe clip.mp4 --json
    clipmerge transitions
"""

import argparse
import asyncio
import json
import sys

from .capabilities import TRANSITION_ALIASES, supported_transitions
from .errors import ProbeError
from .probe import probe_media
from .settings import load_settings


async def _probe_all(paths, settings):
    results = []
    for p in paths:
        try:
            results.append((p, await probe_media(p, settings), None))
        except ProbeError as exc:
            results.append((p, None, exc))
    return results


def main(args=None):
    parser = argparse.ArgumentParser(description="Print media metadata for files.")
    parser.add_argument("files", nargs="+", help="Media files to probe")
    parser.add_argument("--json", action="store_true", help="Print one JSON object per file")
    parser.add_argument("--config", default=None, help="Path to YAML settings file")
    parsed = parser.parse_args(args)

    settings = load_settings(parsed.config)
    failed = False
    for path, info, err in asyncio.run(_probe_all(parsed.files, settings)):
        if err is not None:
            failed = True
            print(f"  FAIL   {path}: {err}", file=sys.stderr)
            continue
        if parsed.json:
            print(json.dumps({"path": path, **info.as_dict()}))
        else:
            audio = "audio" if info.has_audio else "no audio"
            print(
                f"  {path}  {info.duration:.2f}s  {info.width}x{info.height}  "
                f"{info.codec}  {audio}"
            )
    if failed:
        sys.exit(1)


def transitions_main(args=None):
    parser = argparse.ArgumentParser(
        description="List xfade transitions supported by the installed ffmpeg.",
    )
    parser.add_argument("--config", default=None, help="Path to YAML settings file")
    parsed = parser.parse_args(args)

    settings = load_settings(parsed.config)
    supported = supported_transitions(settings)
    if not supported:
        print("ffmpeg has no xfade filter: renders will use plain concatenation.")
        return

    print(f"{len(supported)} transitions supported:")
    for name in sorted(supported):
        aliases = [a for a, target in TRANSITION_ALIASES.items() if target == name and a != name]
        suffix = f"  (alias: {', '.join(aliases)})" if aliases else ""
        print(f"  {name}{suffix}")
    print(f"Default for unknown names: {settings.default_transition}")


if __name__ == "__main__":
    main()
