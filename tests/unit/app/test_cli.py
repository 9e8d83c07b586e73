"""Tests for the command-line interface."""

from __future__ import annotations

import pytest

from app.cli import CLI


@pytest.fixture
def cli() -> CLI:
    """CLI instance."""
    return CLI()


class TestCLI:
    """Tests for argument parsing."""

    def test_no_command_defaults_to_none(self, cli: CLI) -> None:
        """Without a subcommand the orchestrator falls back to refresh."""
        args = cli.parse_args([])
        assert args.command is None
        assert args.config is None

    def test_refresh_options(self, cli: CLI) -> None:
        """Refresh accepts limit, page and no-wait."""
        args = cli.parse_args(["--config", "my.yaml", "refresh", "--limit", "50", "--page", "2", "--no-wait"])
        assert (args.config, args.command, args.limit, args.page, args.no_wait) == ("my.yaml", "refresh", 50, 2, True)

    def test_refresh_defaults(self, cli: CLI) -> None:
        """Limit falls back to the configuration, page to one."""
        args = cli.parse_args(["refresh"])
        assert (args.limit, args.page, args.no_wait) == (None, 1, False)

    def test_delete(self, cli: CLI) -> None:
        """Delete takes artist, track and an optional timestamp."""
        args = cli.parse_args(["delete", "--artist", "Beck", "--track", "Loser", "--timestamp", "1700000000"])
        assert (args.artist, args.track, args.timestamp, args.limit) == ("Beck", "Loser", 1700000000, None)

    def test_scrobble_timestamp_optional(self, cli: CLI) -> None:
        """Scrobble defaults the timestamp to now."""
        args = cli.parse_args(["scrobble", "--artist", "Beck", "--track", "Loser"])
        assert args.timestamp is None
        assert args.album == ""

    def test_redo_requires_timestamp(self, cli: CLI) -> None:
        """Redo needs the original timestamp."""
        with pytest.raises(SystemExit):
            cli.parse_args(["redo", "--artist", "Beck", "--track", "Loser"])

    def test_now_playing_alias(self, cli: CLI) -> None:
        """Both spellings of now playing are accepted."""
        assert cli.parse_args(["now-playing", "--artist", "Beck", "--track", "Loser"]).command == "now-playing"
        assert cli.parse_args(["now_playing", "--artist", "Beck", "--track", "Loser"]).command == "now_playing"

    def test_missing_required_argument(self, cli: CLI) -> None:
        """Artist and track are mandatory."""
        with pytest.raises(SystemExit):
            cli.parse_args(["delete", "--artist", "Beck"])
