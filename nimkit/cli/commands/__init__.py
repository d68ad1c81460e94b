"""
CLI command implementations.

Each module exposes run(args) -> int, called by the dispatcher in
nimkit.cli.parser.
"""
