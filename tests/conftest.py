"""Shared test fixtures."""

import pytest

from cmdseam.fake import FakeFactory


@pytest.fixture
def fake_factory():
    """A FakeFactory; queue FakeResults on .responses, inspect .calls."""
    return FakeFactory()


@pytest.fixture
def script(tmp_path):
    """Write an executable sh script into tmp_path and return its path."""

    def _make(name: str, body: str) -> str:
        path = tmp_path / name
        path.write_text("#!/bin/sh\n" + body + "\n")
        path.chmod(0o755)
        return str(path)

    return _make
