"""
Per-invocation build context.

A BuildContext owns all transient filesystem state for one install: a
process-private temporary directory, the download directory, the isolated
install root and the build log. Resources register their release with the
context's cleanup stack; leaving the context unwinds the stack in reverse
order, on success, on error and on cancellation alike.

Usage:
    from nimkit.core.context import BuildContext

    with BuildContext.create(download_path=None, concurrency=0) as ctx:
        ctx.token.raise_if_cancelled()
        ...
    # temp directory is gone here
"""

import logging
import signal
import tempfile
from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Optional

from nimkit.core.exceptions import SignalInterrupt
from nimkit.core.filesystem import safe_rmtree

logger = logging.getLogger(__name__)

LOG_FILE_NAME = "nimkit.log"
HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class CancellationToken:
    """Records an external cancellation request, observed between stages."""

    def __init__(self):
        self.signum: Optional[int] = None

    @property
    def cancelled(self) -> bool:
        return self.signum is not None

    def cancel(self, signum: int = signal.SIGTERM):
        if self.signum is None:
            self.signum = int(signum)

    def raise_if_cancelled(self):
        if self.signum is not None:
            raise SignalInterrupt(self.signum)


@dataclass
class BuildContext:
    """
    Transient state for one install invocation.

    Attributes:
        temp_dir: Process-private temporary directory
        download_dir: Where the source or binary tree is materialized
        install_root: Isolated root the install script writes into
        log_file: Append-only build log
        concurrency: Parallel build hint passed to the Nim compiler (0 = auto)
        token: Cancellation token shared by all stages
    """

    temp_dir: Path
    download_dir: Path
    install_root: Path
    log_file: Path
    concurrency: int = 0
    token: CancellationToken = field(default_factory=CancellationToken)
    _stack: ExitStack = field(default_factory=ExitStack, repr=False)

    @classmethod
    def create(
        cls,
        download_path: Optional[Path] = None,
        concurrency: int = 0,
        prefix: str = "nimkit-",
    ) -> "BuildContext":
        """
        Create the temporary directories for one install.

        Args:
            download_path: Retained download directory. If None, a directory
                inside the temp dir is used and removed with it.
            concurrency: Parallel build hint
            prefix: Temp directory name prefix

        Returns:
            BuildContext (use it as a context manager)
        """
        temp_dir = Path(tempfile.mkdtemp(prefix=prefix))
        download_dir = Path(download_path) if download_path else temp_dir / "download"
        install_root = temp_dir / "install"
        log_file = temp_dir / LOG_FILE_NAME

        download_dir.mkdir(parents=True, exist_ok=True)
        install_root.mkdir(parents=True, exist_ok=True)
        log_file.touch()

        ctx = cls(
            temp_dir=temp_dir,
            download_dir=download_dir,
            install_root=install_root,
            log_file=log_file,
            concurrency=concurrency,
        )
        ctx.defer(safe_rmtree, temp_dir)
        logger.debug(f"Created build context in {temp_dir}")
        return ctx

    def defer(self, callback: Callable, *args, **kwargs):
        """Register a cleanup action, run in reverse order on exit."""
        self._stack.callback(callback, *args, **kwargs)

    def enter(self, cm):
        """Enter a context manager whose exit is tied to this context."""
        return self._stack.enter_context(cm)

    def handle_signals(self, signals: Iterable[int] = HANDLED_SIGNALS):
        """
        Route termination signals to the cancellation token.

        The handler records the signal and raises SignalInterrupt so that a
        blocking subprocess wait unwinds immediately. Previous handlers are
        restored when the context exits.
        """

        def handler(signum, frame):
            self.token.cancel(signum)
            raise SignalInterrupt(signum)

        for signum in signals:
            previous = signal.signal(signum, handler)
            self.defer(signal.signal, signum, previous)

    def close(self):
        self._stack.close()
        logger.debug(f"Cleaned up build context {self.temp_dir}")

    def __enter__(self) -> "BuildContext":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
