"""Command-line interface for the release reconciler."""

import argparse
from typing import Any

TARGET_PLATFORMS = ["deezer", "spotify"]
SOURCE_PLATFORMS = ["discogs", "deezer", "spotify"]


def _add_reconcile_command(subparsers: Any) -> None:
    """Add reconcile command."""
    parser = subparsers.add_parser(
        "reconcile",
        help="Match Discogs releases on the target catalogs",
        description="Fetch Discogs releases and search Deezer/Spotify for their equivalents",
    )
    parser.add_argument(
        "--release-id",
        action="append",
        required=True,
        help="Discogs release ID (repeat for several releases)",
    )
    parser.add_argument(
        "--platform",
        action="append",
        choices=TARGET_PLATFORMS,
        help="Target platform (repeatable, defaults to matching.target_platforms)",
    )


def _add_collection_command(subparsers: Any) -> None:
    """Add collection command."""
    parser = subparsers.add_parser(
        "collection",
        help="Reconcile a Discogs collection folder",
        description="Reconcile every release of a user's Discogs collection folder",
    )
    parser.add_argument("--username", required=True, help="Discogs username")
    parser.add_argument("--folder", type=int, default=0, help="Collection folder ID (0 = All)")
    parser.add_argument(
        "--platform",
        action="append",
        choices=TARGET_PLATFORMS,
        help="Target platform (repeatable, defaults to matching.target_platforms)",
    )


def _add_lookup_commands(subparsers: Any) -> None:
    """Add UPC and ISRC lookup commands."""
    upc = subparsers.add_parser(
        "lookup-upc",
        aliases=["upc"],
        help="Find an album by barcode on the other catalogs",
    )
    upc.add_argument("--query", required=True, help="Search text (artist and album)")
    upc.add_argument("--upc", required=True, help="Barcode to look for")
    upc.add_argument("--source", choices=SOURCE_PLATFORMS, default="discogs", help="Platform the barcode comes from")

    isrc = subparsers.add_parser(
        "lookup-isrc",
        aliases=["isrc"],
        help="Find a track by ISRC on the other catalogs",
    )
    isrc.add_argument("--query", required=True, help="Search text (artist and track)")
    isrc.add_argument("--isrc", required=True, help="ISRC to look for")
    isrc.add_argument("--source", choices=SOURCE_PLATFORMS, default="discogs", help="Platform the ISRC comes from")


class CLI:
    """Command-line interface handler."""

    def __init__(self) -> None:
        """Initialize CLI parser."""
        self.parser = self._create_parser()

    @staticmethod
    def _create_parser() -> argparse.ArgumentParser:
        """Create the argument parser.

        Returns:
            Configured ArgumentParser

        """
        parser = argparse.ArgumentParser(
            prog="python main.py",
            description="Release Reconciler - match Discogs releases on Deezer and Spotify",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
    # Reconcile two releases on every target platform
    %(prog)s reconcile --release-id 249504 --release-id 1234

    # Reconcile a collection folder on Deezer only
    %(prog)s collection --username someone --platform deezer

    # Find an album by barcode
    %(prog)s lookup-upc --query "Daft Punk Discovery" --upc 724384971423
            """,
        )

        parser.add_argument(
            "--config",
            type=str,
            help="Path to configuration file. If not specified, uses CONFIG_PATH or config.yaml.",
        )
        parser.add_argument(
            "--trace-scores",
            action="store_true",
            help="Log every scoring contribution (console level DEBUG)",
        )

        subparsers = parser.add_subparsers(
            dest="command",
            title="Commands",
            description="Available commands",
            help="Use '%(prog)s COMMAND --help' for command-specific help",
            required=True,
        )
        _add_reconcile_command(subparsers)
        _add_collection_command(subparsers)
        _add_lookup_commands(subparsers)
        return parser

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
