"""
Pytest configuration and shared fixtures for NimKit tests.
"""

import io

import pytest

from nimkit.core.config import Settings
from nimkit.core.platform import Platform, clear_platform_cache
from tests.fixtures.fakes import FakeNim, FakeResolver, scripted


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (requires --integration)",
    )


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests that require network access",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --integration flag is provided."""
    if config.getoption("--integration"):
        return
    skip_integration = pytest.mark.skip(reason="need --integration option to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


# ============================================================================
# Shared Test Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Keep version manager and token variables of the host out of tests."""
    for name in (
        "ASDF_INSTALL_TYPE",
        "ASDF_INSTALL_VERSION",
        "ASDF_INSTALL_PATH",
        "ASDF_DOWNLOAD_PATH",
        "ASDF_CONCURRENCY",
        "ASDF_DATA_DIR",
        "GITHUB_API_TOKEN",
        "GITHUB_TOKEN",
        "NIMKIT_INSTALLS_DIR",
    ):
        monkeypatch.delenv(name, raising=False)
    yield
    clear_platform_cache()


@pytest.fixture
def linux_x64() -> Platform:
    return Platform("linux", "x86_64", "glibc")


@pytest.fixture
def linux_musl() -> Platform:
    return Platform("linux", "x86_64", "musl")


@pytest.fixture
def install_path(tmp_path):
    """Final install location below a versions directory."""
    return tmp_path / "installs" / "nim" / "1.4.2"


@pytest.fixture
def settings(install_path) -> Settings:
    return Settings(install_path=install_path)


@pytest.fixture
def streams():
    """(stdout, stderr) capture buffers for orchestrator output."""
    return io.StringIO(), io.StringIO()


@pytest.fixture
def fake_nim() -> FakeNim:
    return FakeNim()


@pytest.fixture
def fake_resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
def reporter_factory(fake_nim):
    return scripted(fake_nim)
