"""
Entry point for running NimKit CLI as a module.

Usage: python -m nimkit.cli [command] [options]
"""

from .parser import main

if __name__ == "__main__":
    main()
