"""
NimKit - isolated, version-pinned Nim installations.

Installs a Nim compiler from an official binary, an unofficial binary or a
source bootstrap, and generates a nimble wrapper that keeps package state
private to each installed version.
"""

__version__ = "0.1.0"
