"""
Unit-test settings isolation.

pydantic-settings would otherwise merge a developer's local .env into every
settings object built here; config tests set variables with monkeypatch only.
"""

import pytest


@pytest.fixture(autouse=True)
def ignore_local_dotenv(monkeypatch):
    import pydantic_settings.sources.providers.dotenv as dotenv_source

    monkeypatch.setattr(dotenv_source, "dotenv_values", lambda *a, **kw: {})
