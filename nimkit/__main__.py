"""
Entry point for running NimKit CLI as a module.

Usage: python -m nimkit [command] [options]
"""

from nimkit.cli.parser import main

if __name__ == "__main__":
    main()
