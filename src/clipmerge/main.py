"""Subcommand dispatcher for clipmerge.

Usage:
    clipmerge render      --manifest render.yaml --output merged.mp4
    clipmerge probe       clip.mp4 [clip2.mov ...]
    clipmerge transitions
    clipmerge sweep       [--watch] [--config clipmerge.yaml]
    clipmerge cleanup     SESSION_ID [--config clipmerge.yaml]
"""

import argparse
import logging
import sys


COMMANDS = {"render", "probe", "transitions", "sweep", "cleanup"}


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(args=None):
    parser = argparse.ArgumentParser(
        prog="clipmerge",
        description="Merge trimmed video clips with transitions into one file.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Log debug output, including ffmpeg command lines",
    )
    subparsers = parser.add_subparsers(dest="command")

    # Register subcommands. Each delegates to its own module's main().
    subparsers.add_parser("render", help="Render clips from a YAML render manifest")
    subparsers.add_parser("probe", help="Print media metadata for files")
    subparsers.add_parser("transitions", help="List transitions the installed ffmpeg supports")
    subparsers.add_parser("sweep", help="Delete expired uploads, outputs and work files")
    subparsers.add_parser("cleanup", help="Delete one session's uploads, then sweep")

    # Parse only the subcommand name, pass the rest to the subcommand's parser.
    parsed, remaining = parser.parse_known_args(args)

    if parsed.command is None or parsed.command not in COMMANDS:
        parser.print_help()
        sys.exit(1)

    configure_logging(parsed.verbose)

    if parsed.command == "render":
        from .render_cli import main as render_main
        render_main(remaining)
    elif parsed.command == "probe":
        from .probe_cli import main as probe_main
        probe_main(remaining)
    elif parsed.command == "transitions":
        from .probe_cli import transitions_main
        transitions_main(remaining)
    elif parsed.command == "sweep":
        from .storage_cli import sweep_main
        sweep_main(remaining)
    elif parsed.command == "cleanup":
        from .storage_cli import cleanup_main
        cleanup_main(remaining)


if __name__ == "__main__":
    main()
