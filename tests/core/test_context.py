"""
Tests for the per-install build context.
"""

import os
import signal

import pytest

from nimkit.core.context import BuildContext, CancellationToken
from nimkit.core.exceptions import SignalInterrupt


class TestCancellationToken:
    """Test CancellationToken."""

    def test_initial_state(self):
        token = CancellationToken()
        assert not token.cancelled
        token.raise_if_cancelled()

    def test_cancel(self):
        """Test cancelling records the signal."""
        token = CancellationToken()
        token.cancel(signal.SIGTERM)

        assert token.cancelled
        with pytest.raises(SignalInterrupt) as exc_info:
            token.raise_if_cancelled()
        assert exc_info.value.exit_code == 143

    def test_first_signal_wins(self):
        token = CancellationToken()
        token.cancel(signal.SIGINT)
        token.cancel(signal.SIGTERM)
        assert token.signum == signal.SIGINT


class TestBuildContext:
    """Test BuildContext lifecycle."""

    def test_create_layout(self):
        """Test temp, download, install and log paths are created."""
        with BuildContext.create(concurrency=4) as ctx:
            assert ctx.temp_dir.is_dir()
            assert ctx.download_dir == ctx.temp_dir / "download"
            assert ctx.download_dir.is_dir()
            assert ctx.install_root.is_dir()
            assert ctx.log_file.is_file()
            assert ctx.concurrency == 4
            temp_dir = ctx.temp_dir

        assert not temp_dir.exists()

    def test_retained_download_path_survives(self, tmp_path):
        """Test an explicit download path is not removed."""
        downloads = tmp_path / "downloads"
        with BuildContext.create(download_path=downloads) as ctx:
            (ctx.download_dir / "koch.nim").write_text("")

        assert (downloads / "koch.nim").is_file()

    def test_cleanup_on_error(self):
        """Test temp dir is removed when the body raises."""
        with pytest.raises(RuntimeError):
            with BuildContext.create() as ctx:
                temp_dir = ctx.temp_dir
                raise RuntimeError("boom")

        assert not temp_dir.exists()

    def test_deferred_callbacks_run_in_reverse(self):
        """Test cleanup order is LIFO."""
        calls = []
        with BuildContext.create() as ctx:
            ctx.defer(calls.append, "first")
            ctx.defer(calls.append, "second")

        assert calls == ["second", "first"]

    def test_signal_handler_cancels_and_restores(self):
        """Test SIGTERM raises SignalInterrupt and handlers are restored."""
        previous = signal.getsignal(signal.SIGTERM)

        with BuildContext.create() as ctx:
            ctx.handle_signals()
            with pytest.raises(SignalInterrupt) as exc_info:
                os.kill(os.getpid(), signal.SIGTERM)
                for _ in range(1000):
                    pass
            assert ctx.token.cancelled
            assert exc_info.value.exit_code == 128 + signal.SIGTERM

        assert signal.getsignal(signal.SIGTERM) == previous
