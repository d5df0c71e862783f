"""Unit tests for the integration container startup helper."""

from __future__ import annotations

import pytest

from tests.helpers import containers


class _NoDaemon:
    def __init__(self, image):
        raise RuntimeError("Error while fetching server API version")


class _StartFails:
    def __init__(self, image):
        self.image = image

    def with_exposed_ports(self, *ports):
        return self

    def start(self):
        raise ConnectionError("connection refused")


class TestStartContainer:
    def test_skips_when_client_cannot_be_built(self, monkeypatch):
        monkeypatch.setattr(containers, "DockerContainer", _NoDaemon)
        with pytest.raises(pytest.skip.Exception, match="Docker unavailable"):
            containers.start_container("redis:7-alpine", 6379)

    def test_skips_when_start_fails(self, monkeypatch):
        monkeypatch.setattr(containers, "DockerContainer", _StartFails)
        with pytest.raises(pytest.skip.Exception, match="connection refused"):
            containers.start_container("redis:7-alpine", 6379)
