"""Pytest configuration for the record_stream test suite.

Every test starts with the package's environment variables unset and the
config cache cleared so option defaults are deterministic.
"""

from __future__ import annotations

import os
from typing import Iterator

import pytest

from record_stream import config
from record_stream.base.constants import ENV_PREFIX


@pytest.fixture(autouse=True)
def clean_stream_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for name in list(os.environ):
        if name.startswith(ENV_PREFIX):
            monkeypatch.delenv(name, raising=False)
    config.reset_cache()
    yield
    config.reset_cache()
