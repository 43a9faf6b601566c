"""CLI for rendering: merge the clips of a render manifest into one file.

Usage:
    clipmerge render --manifest render.yaml --output merged.mp4
    clipmerge render --manifest render.yaml            # into storage outputs/
    clipmerge render --manifest render.yaml --keep-sources
    clipmerge render --manifest render.yaml --validate
"""

import argparse
import sys

from .errors import ClipMergeError
from .pipeline import render_sync
from .render_manifest import load_render_manifest, validate_clip_paths
from .settings import load_settings
from .storage import StorageManager


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Render CLI: merge trimmed clips with transitions.",
    )
    parser.add_argument(
        "--manifest", required=True,
        help="Path to YAML render manifest",
    )
    parser.add_argument(
        "--output", default=None,
        help="Output file (default: a new file in the storage outputs directory)",
    )
    parser.add_argument(
        "--config", default=None,
        help="Path to YAML settings file (default: $CLIPMERGE_CONFIG or built-in defaults)",
    )
    parser.add_argument(
        "--keep-sources", action="store_true",
        help="Keep session uploads after a successful render (default: delete them)",
    )
    parser.add_argument(
        "--validate", action="store_true",
        help="Validate manifest only, check paths, don't render",
    )
    parsed = parser.parse_args(args)

    request = load_render_manifest(parsed.manifest)
    validate_clip_paths(request)

    if parsed.validate:
        print(f"Render manifest valid: {len(request.segments)} clips")
        for s in request.segments:
            end = "end" if s.source_end is None else f"{s.source_end:.2f}s"
            print(f"  {s.position}: {s.path}  [{s.source_start:.2f}s - {end}]")
        print(
            f"Output: {request.format}, {request.width}x{request.height}, "
            f"{request.fps}fps, {request.transition} ({request.transition_duration}s)"
        )
        print("All paths verified.")
        return

    settings = load_settings(parsed.config)
    storage = StorageManager.from_settings(settings)
    storage.ensure_dirs()
    swept = storage.sweep()
    if swept:
        print(f"Swept {len(swept)} expired file(s)")

    print(f"Rendering {len(request.segments)} clips...")
    try:
        result = render_sync(
            request, storage, settings,
            output_path=parsed.output, consume_sources=not parsed.keep_sources,
        )
    except ClipMergeError as exc:
        print(f"Render failed: {exc}", file=sys.stderr)
        sys.exit(1)

    print(f"Duration: {result.duration:.2f}s ({result.strategy})")
    if parsed.output is None:
        # The expiry timer dies with this process; the next sweep enforces it.
        print(
            f"Expires: {result.expires_at.isoformat()} "
            "(deleted by the next 'clipmerge sweep' or a running 'sweep --watch')"
        )
    print(f"\nDone: {result.path}")


if __name__ == "__main__":
    main()
