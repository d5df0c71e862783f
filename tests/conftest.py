"""Root conftest: suite markers and shared fixtures for the file-backed components."""

from __future__ import annotations

from pathlib import Path

import pytest

from auditsync.config import FallbackConfig
from auditsync.fallback import FallbackWriter
from auditsync.observability import reset_latency_metrics
from auditsync.state import JsonFileStateStore
from tests.helpers.fakes import FixedClock
from tests.helpers.fakes import InMemoryCentralStore


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Attach suite markers from test path.

    - `tests/unit/*` -> `unit`
    - `tests/integration/*` -> `integration`
    """
    root = Path(__file__).resolve().parents[1]
    for item in items:
        item_path = Path(str(item.fspath)).resolve()
        try:
            rel = item_path.relative_to(root)
        except ValueError:
            continue

        parts = rel.parts
        if len(parts) < 2 or parts[0] != "tests":
            continue
        if parts[1] == "unit":
            item.add_marker(pytest.mark.unit)
        elif parts[1] == "integration":
            item.add_marker(pytest.mark.integration)


@pytest.fixture(autouse=True)
def _clean_latency_metrics():
    reset_latency_metrics()
    yield
    reset_latency_metrics()


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture()
def central() -> InMemoryCentralStore:
    return InMemoryCentralStore()


@pytest.fixture()
def fallback_config(tmp_path) -> FallbackConfig:
    return FallbackConfig(
        directory=str(tmp_path / "fallback"),
        emergency_dir=str(tmp_path / "emergency"),
    )


@pytest.fixture()
def fallback(fallback_config) -> FallbackWriter:
    return FallbackWriter(fallback_config)


@pytest.fixture()
def state_store(tmp_path) -> JsonFileStateStore:
    return JsonFileStateStore(tmp_path / "state")
