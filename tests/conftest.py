from __future__ import annotations

import json
from pathlib import Path

import pytest

from strava_skill.config import StravaSettings
from strava_skill.tokens import TokenSet, TokenStore

NOW = 1_700_000_000


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload)

    def json(self):
        if self._payload is None:
            return json.loads(self.text)
        return self._payload


@pytest.fixture
def settings(tmp_path: Path) -> StravaSettings:
    return StravaSettings(
        client_id="12345",
        client_secret="s3cret",
        token_file=tmp_path / "tokens.json",
    )


@pytest.fixture
def store(settings: StravaSettings) -> TokenStore:
    return TokenStore(settings.token_file)


@pytest.fixture
def saved_tokens(store: TokenStore) -> TokenSet:
    tokens = TokenSet(
        access_token="access-1",
        refresh_token="refresh-1",
        expires_at=NOW + 6 * 3600,
        athlete_id=987,
    )
    store.save(tokens)
    return tokens
