"""
NimKit CLI argument parser.

This module implements the command-line interface for NimKit using argparse.
"""

import argparse
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional

from nimkit import __version__

logger = logging.getLogger(__name__)


class CLI:
    """NimKit command-line interface."""

    def __init__(self):
        """Initialize CLI with argument parser."""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="nimkit",
            description="NimKit - isolated, version-pinned Nim installations",
            epilog='Use "nimkit COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"NimKit {__version__}"
        )
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose output"
        )
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )
        parser.add_argument(
            "--config",
            type=Path,
            metavar="PATH",
            help="Path to configuration file (default: ./nimkit.yaml)",
        )

        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_install_command(subparsers)
        self._add_download_command(subparsers)
        self._add_list_all_command(subparsers)
        self._add_latest_command(subparsers)
        self._add_install_deps_command(subparsers)
        self._add_platform_command(subparsers)

        return parser

    def _add_version_argument(self, parser):
        parser.add_argument(
            "version",
            nargs="?",
            metavar="VERSION",
            help="latest, an exact version (e.g. 1.4.2) or ref:<sha> "
            "(default: from ASDF_INSTALL_TYPE/ASDF_INSTALL_VERSION)",
        )

    def _add_install_command(self, subparsers):
        """Add 'install' subcommand."""
        parser = subparsers.add_parser(
            "install",
            help="Install a Nim version",
            description="Download or build a Nim version and install it",
        )
        self._add_version_argument(parser)
        parser.add_argument(
            "--install-path",
            type=Path,
            metavar="DIR",
            help="Final install directory (default: ASDF_INSTALL_PATH)",
        )
        parser.add_argument(
            "--download-path",
            type=Path,
            metavar="DIR",
            help="Keep downloads in DIR and reuse them (default: ASDF_DOWNLOAD_PATH)",
        )
        parser.add_argument(
            "--concurrency",
            type=int,
            metavar="N",
            help="Parallel build jobs, 0 to autodetect (default: ASDF_CONCURRENCY)",
        )
        parser.add_argument(
            "--yes",
            "-y",
            action="store_true",
            help="Install missing system dependencies without asking",
        )

    def _add_download_command(self, subparsers):
        """Add 'download' subcommand."""
        parser = subparsers.add_parser(
            "download",
            help="Download a Nim version without installing it",
            description="Fetch the source or binary for a Nim version",
        )
        self._add_version_argument(parser)
        parser.add_argument(
            "--download-path",
            type=Path,
            metavar="DIR",
            help="Download directory (default: ASDF_DOWNLOAD_PATH)",
        )

    def _add_list_all_command(self, subparsers):
        """Add 'list-all' subcommand."""
        subparsers.add_parser(
            "list-all",
            help="List all released Nim versions",
            description="List all released Nim versions, oldest first",
        )

    def _add_latest_command(self, subparsers):
        """Add 'latest' subcommand."""
        subparsers.add_parser(
            "latest",
            help="Print the latest stable Nim version",
            description="Print the latest stable Nim version",
        )

    def _add_install_deps_command(self, subparsers):
        """Add 'install-deps' subcommand."""
        parser = subparsers.add_parser(
            "install-deps",
            help="Install required system packages",
            description="Check for git and a C compiler and offer to install them",
        )
        parser.add_argument(
            "--yes",
            "-y",
            action="store_true",
            help="Install without asking",
        )

    def _add_platform_command(self, subparsers):
        """Add 'platform' subcommand."""
        subparsers.add_parser(
            "platform",
            help="Show the detected platform",
            description="Show the detected os/arch/libc and tarball suffix",
        )

    def parse_args(self, args: Optional[List[str]] = None):
        """
        Parse command-line arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        parsed_args = self.parse_args(args)

        self._configure_logging(parsed_args)

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT

    def _configure_logging(self, args):
        """
        Configure logging based on verbose/quiet flags.

        Args:
            args: Parsed arguments with verbose/quiet flags
        """
        if args.verbose:
            level = logging.DEBUG
            format_str = "%(levelname)s [%(name)s] %(message)s"
        elif args.quiet:
            level = logging.ERROR
            format_str = "%(levelname)s: %(message)s"
        else:
            level = logging.WARNING
            format_str = "%(message)s"

        logging.basicConfig(
            level=level,
            format=format_str,
            force=True,  # Reconfigure if already configured
        )

    def _dispatch_command(self, args) -> int:
        """
        Dispatch to appropriate command handler.

        Args:
            args: Parsed arguments with command field

        Returns:
            Exit code from command handler
        """
        command_map = {
            "install": "nimkit.cli.commands.install",
            "download": "nimkit.cli.commands.download",
            "list-all": "nimkit.cli.commands.list_all",
            "latest": "nimkit.cli.commands.latest",
            "install-deps": "nimkit.cli.commands.install_deps",
            "platform": "nimkit.cli.commands.platform",
        }

        module_name = command_map.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return 1

        module = importlib.import_module(module_name)
        return module.run(args)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
