"""Shared fixtures: silence coded output and reset the config cache."""

from __future__ import annotations

import pytest

from olama.core import config as config_module
from olama.core import message


@pytest.fixture(autouse=True)
def _quiet_emit():
    previous = message.is_enabled()
    message.set_enabled(False)
    yield
    message.set_enabled(previous)


@pytest.fixture(autouse=True)
def _reset_config_cache():
    config_module._config = None
    yield
    config_module._config = None
