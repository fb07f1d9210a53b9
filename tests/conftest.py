"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest

from orgrender.domain.config import DaemonConfig, OrgConfig, OrgRenderConfig, RetryConfig
from tests.helpers.fake_process import FakeChannel, FakeRunner


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Project root with hexo-renderer-org.el installed in node_modules."""
    entry = tmp_path / "node_modules" / "hexo-renderer-org" / "emacs"
    entry.mkdir(parents=True)
    (entry / "hexo-renderer-org.el").write_text("(provide 'hexo-renderer-org)\n")
    return tmp_path


@pytest.fixture
def config() -> OrgRenderConfig:
    """Config with instant retry loops so tests never sleep for long."""
    return OrgRenderConfig(
        org=OrgConfig(theme="dark", htmlize=True, line_number=False),
        daemon=DaemonConfig(stop_interval=0, ready_interval=0),
        retry=RetryConfig(),
    )


@pytest.fixture
def runner() -> FakeRunner:
    """Process runner where every command succeeds."""
    return FakeRunner()


@pytest.fixture
def channel() -> FakeChannel:
    """Error channel with no record."""
    return FakeChannel()
