"""
Shared fixtures.

Process-wide handles (configuration, repository, tokenizer probe) are
reset around every test so tests never share state.
"""

import os
import tempfile

import pytest

from ai_observe.config.loader import DB_PATH_ENV_VAR, set_config
from ai_observe.core import token_counter
from ai_observe.sdk import openai_client
from ai_observe.storage.repository import CallRepository, reset_repository


@pytest.fixture(autouse=True)
def isolated_globals(monkeypatch):
    """Reset singletons and force the approximate breakdown path."""
    monkeypatch.delenv(DB_PATH_ENV_VAR, raising=False)
    set_config(None)
    reset_repository()
    token_counter.reset_tokenizer_probe()
    monkeypatch.setattr(token_counter, "_tokenizer_available", False)
    monkeypatch.setattr(openai_client, "_openai_client", None)
    yield
    set_config(None)
    reset_repository()
    token_counter.reset_tokenizer_probe()


@pytest.fixture
def db_path():
    """Path to a fresh SQLite database file."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield os.path.join(temp_dir, "test.db")


@pytest.fixture
def repository(db_path):
    """Repository over an initialized temporary database."""
    repo = CallRepository(db_path)
    repo.initialize_schema()
    return repo
