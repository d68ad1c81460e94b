"""
Platform command.

Prints what NimKit detected about the host and which artifact it would use:

    os:       linux
    arch:     x86_64
    libc:     glibc
    suffix:   gnu
"""

from nimkit.cli.utils import safe_print
from nimkit.core.platform import detect_platform


def run(args) -> int:
    info = detect_platform()
    rows = [
        ("os", info.os),
        ("arch", info.arch),
        ("libc", info.libc),
        ("suffix", info.lib_suffix() or "-"),
    ]
    if info.os_release:
        rows.insert(1, ("release", info.os_release))

    for name, value in rows:
        text = value.value if hasattr(value, "value") else value
        safe_print(f"{name + ':':<10}{text}")
    return 0
