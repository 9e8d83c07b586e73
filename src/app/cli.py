"""Command-line interface for scrobble-sync."""

import argparse
from typing import Any


def _add_track_arguments(parser: argparse.ArgumentParser, *, timestamp_required: bool = False) -> None:
    """Add the arguments identifying one play."""
    parser.add_argument(
        "--artist",
        required=True,
        help="Artist name",
    )
    parser.add_argument(
        "--track",
        required=True,
        help="Track name",
    )
    parser.add_argument(
        "--album",
        default="",
        help="Album name",
    )
    parser.add_argument(
        "--timestamp",
        type=int,
        required=timestamp_required,
        help="Play time in epoch seconds" + ("" if timestamp_required else " (defaults to now)"),
    )


def _add_refresh_command(subparsers: Any) -> None:
    """Add refresh command."""
    parser = subparsers.add_parser(
        "refresh",
        help="Fetch, reconcile and repair recent plays (default command)",
        description="Merge recent plays of all enabled services, show their sync status and backfill gaps",
    )
    parser.add_argument(
        "--limit",
        type=int,
        help="Number of plays to fetch from the primary service (defaults to sync.page_size)",
    )
    parser.add_argument(
        "--page",
        type=int,
        default=1,
        help="Page of the primary service history",
    )
    parser.add_argument(
        "--no-wait",
        action="store_true",
        help="Exit without waiting for queued backfills",
    )


def _add_delete_command(subparsers: Any) -> None:
    """Add delete command."""
    parser = subparsers.add_parser(
        "delete",
        help="Delete a play from every enabled service",
        description="Locate the play among recent plays and delete it from all enabled services",
    )
    parser.add_argument(
        "--artist",
        required=True,
        help="Artist name",
    )
    parser.add_argument(
        "--track",
        required=True,
        help="Track name",
    )
    parser.add_argument(
        "--timestamp",
        type=int,
        help="Play time in epoch seconds (most recent matching play if omitted)",
    )
    parser.add_argument(
        "--limit",
        type=int,
        help="Number of recent plays searched for the play",
    )


class CLI:
    """Command-line interface handler."""

    def __init__(self) -> None:
        """Initialize CLI parser."""
        self.parser = self._create_parser()

    @staticmethod
    def _create_parser() -> argparse.ArgumentParser:
        """Create the argument parser."""
        parser = argparse.ArgumentParser(
            prog="python main.py",
            description="scrobble-sync - Keep Last.fm, Libre.fm and ListenBrainz listening histories in sync",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
    # Reconcile the 20 most recent plays and backfill gaps
    %(prog)s refresh --limit 20

    # Delete a play everywhere
    %(prog)s delete --artist "Beck" --track "Profanity Prayers" --timestamp 1700000000

    # Scrobble a play to every enabled service
    %(prog)s scrobble --artist "Beck" --track "Profanity Prayers"

    # Re-submit a deleted play with its original timestamp
    %(prog)s redo --artist "Beck" --track "Profanity Prayers" --timestamp 1700000000
            """,
        )

        parser.add_argument(
            "--config",
            type=str,
            help="Path to configuration file. Defaults to $CONFIG_PATH, then 'config.yaml'.",
        )

        subparsers = parser.add_subparsers(
            dest="command", title="Commands", description="Available commands", help="Use '%(prog)s COMMAND --help' for command-specific help"
        )

        _add_refresh_command(subparsers)
        _add_delete_command(subparsers)
        CLI._add_scrobble_command(subparsers)
        CLI._add_redo_command(subparsers)
        CLI._add_now_playing_command(subparsers)

        return parser

    @staticmethod
    def _add_scrobble_command(subparsers: Any) -> None:
        """Add scrobble command."""
        parser = subparsers.add_parser(
            "scrobble",
            help="Scrobble a play to every enabled service",
            description="Record a play on all enabled services at once",
        )
        _add_track_arguments(parser)

    @staticmethod
    def _add_redo_command(subparsers: Any) -> None:
        """Add redo command."""
        parser = subparsers.add_parser(
            "redo",
            help="Re-submit a deleted play with its original timestamp",
            description="Undo a delete by scrobbling the play again at its original time",
        )
        _add_track_arguments(parser, timestamp_required=True)

    @staticmethod
    def _add_now_playing_command(subparsers: Any) -> None:
        """Add now playing command."""
        parser = subparsers.add_parser(
            "now_playing",
            aliases=["now-playing"],
            help="Announce the track currently playing on every enabled service",
            description="Send a now playing update to all enabled services",
        )
        parser.add_argument("--artist", required=True, help="Artist name")
        parser.add_argument("--track", required=True, help="Track name")
        parser.add_argument("--album", default="", help="Album name")

    def parse_args(self, args: list[str] | None = None) -> argparse.Namespace:
        """Parse command-line arguments.

        Args:
            args: List of arguments (use sys.argv if None)

        Returns:
            Parsed arguments namespace

        """
        return self.parser.parse_args(args)

    def print_help(self) -> None:
        """Print help message."""
        self.parser.print_help()
