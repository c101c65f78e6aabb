"""
Root pytest configuration.
"""

from __future__ import annotations

from collections.abc import Generator

import pytest


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line(
        "markers",
        "critical: Tests that must never fail - core functionality",
    )
    config.addinivalue_line(
        "markers",
        "integration: Tests that exercise real sockets or threads",
    )
    config.addinivalue_line(
        "markers",
        "property: Property-based tests (may be slow)",
    )


@pytest.fixture(autouse=True)
def reset_diagnostics() -> Generator[None, None, None]:
    """Reset the diagnostics module state around each test.

    The diagnostics module caches the ``internal_logging_enabled`` setting and
    rate-limit timestamps at module level; tests must not inherit them.
    """
    import logship.core.diagnostics as diag

    diag._reset_for_tests()
    yield
    diag._reset_for_tests()


@pytest.fixture
def captured_diagnostics(
    monkeypatch: pytest.MonkeyPatch,
) -> Generator[list[dict], None, None]:
    """Collect diagnostics payloads instead of writing them to stderr."""
    from logship.core import diagnostics

    monkeypatch.setenv("LOGSHIP_CORE__INTERNAL_LOGGING_ENABLED", "true")
    monkeypatch.setenv("LOGSHIP_CORE__DIAGNOSTICS_RATE_LIMIT_SECONDS", "0")
    captured: list[dict] = []
    diagnostics.set_writer_for_tests(captured.append)
    yield captured


@pytest.fixture(autouse=True)
def _no_env_api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("LOGSHIP_TRANSPORT__API_KEY", raising=False)
