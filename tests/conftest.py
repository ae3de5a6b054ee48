"""Shared test fixtures and configuration for unify_adapter tests.

Fixtures isolate every test from the developer's environment (config files,
``.env``, ``UNIFY__*`` variables) and capture structlog output so log events
can be asserted on. Only the upstream HTTP endpoint is mocked.
"""

from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
import structlog
from structlog.testing import capture_logs

from tests.helpers.test_data import TEST_API_KEY, UNIFY_URL
from unify_adapter.adapters.unify import UnifyAdapter
from unify_adapter.core.http import HTTPXStreamingTransport


@pytest.fixture(autouse=True)
def isolated_environment(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> Generator[Path, None, None]:
    """Run each test in an empty directory with no adapter configuration."""
    for name in ("CONFIG_FILE", "UNIFY__API_KEY", "UNIFY__DEFAULT_MODEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.chdir(tmp_path)
    yield tmp_path


@pytest.fixture(autouse=True)
def captured_logs() -> Generator[list[dict[str, Any]], None, None]:
    """Capture structlog events emitted during a test."""
    with capture_logs() as logs:
        yield logs
    structlog.reset_defaults()


@pytest.fixture
def adapter() -> UnifyAdapter:
    """Adapter with the default model and the real HTTPX transport."""
    return UnifyAdapter(api_key=TEST_API_KEY, api_url=UNIFY_URL)


@pytest.fixture
def transport() -> HTTPXStreamingTransport:
    return HTTPXStreamingTransport(timeout=5.0)
