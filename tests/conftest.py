"""Shared fixtures for the test suite."""

from __future__ import annotations

import os

import pytest

from scm_publish import config as publish_config
from scm_publish import credentials


@pytest.fixture(autouse=True)
def clean_publish_state(monkeypatch):
    """Isolate every test from SCM_PUBLISH_* variables and cached state."""
    for name in list(os.environ):
        if name.startswith("SCM_PUBLISH_"):
            monkeypatch.delenv(name, raising=False)
    publish_config.reset_config()
    credentials.reset_credential_store()
    credentials.reset_prompt_hint()
    yield
    publish_config.reset_config()
    credentials.reset_credential_store()
    credentials.reset_prompt_hint()
