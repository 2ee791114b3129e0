from __future__ import annotations

import json
import os
import stat

import pytest

from strava_skill.errors import TokenFileError
from strava_skill.tokens import TokenSet, TokenStore

from conftest import NOW


def _mode(path):
    return stat.S_IMODE(os.stat(path).st_mode)


def test_expiry_uses_five_minute_margin():
    tokens = TokenSet("a", "r", expires_at=NOW + 300)
    assert tokens.is_expired(now=NOW)
    assert not tokens.is_expired(now=NOW - 1)
    assert tokens.is_expired(now=NOW + 10_000)


def test_save_writes_private_json_and_no_temp_file(store):
    store.save(TokenSet("a", "r", expires_at=NOW, athlete_id=42))

    assert json.loads(store.path.read_text()) == {
        "access_token": "a",
        "refresh_token": "r",
        "expires_at": NOW,
        "athlete_id": 42,
    }
    assert _mode(store.path) == 0o600
    assert [p.name for p in store.path.parent.iterdir()] == [store.path.name]


def test_save_replaces_existing_file(store, saved_tokens):
    store.save(TokenSet("new", "rotated", expires_at=NOW + 1, athlete_id=987))
    loaded = store.load()
    assert loaded.access_token == "new"
    assert loaded.refresh_token == "rotated"


@pytest.mark.parametrize(
    "tokens, message",
    [
        (TokenSet("", "r", expires_at=NOW), "missing access_token"),
        (TokenSet("a", "", expires_at=NOW), "missing refresh_token"),
    ],
)
def test_save_rejects_incomplete_tokens(store, tokens, message):
    with pytest.raises(TokenFileError, match=message):
        store.save(tokens)
    assert not store.path.exists()


def test_load_missing_file_points_to_setup(store):
    with pytest.raises(TokenFileError, match="strava-auth setup"):
        store.load()


def test_load_fixes_insecure_permissions(store, saved_tokens, caplog):
    os.chmod(store.path, 0o644)
    with caplog.at_level("WARNING"):
        assert store.load() == saved_tokens
    assert _mode(store.path) == 0o600
    assert "insecure permissions (644)" in caplog.text


@pytest.mark.parametrize(
    "content",
    [
        "not json",
        "[]",
        json.dumps({"access_token": "a", "refresh_token": "r"}),
        json.dumps({"access_token": "", "refresh_token": "r", "expires_at": 1}),
    ],
)
def test_load_rejects_corrupted_file(store, content):
    store.path.write_text(content)
    os.chmod(store.path, 0o600)
    with pytest.raises(TokenFileError, match="corrupted or incomplete"):
        store.load()


def test_load_accepts_string_athlete_id(store):
    store.path.write_text(
        json.dumps({"access_token": "a", "refresh_token": "r", "expires_at": NOW, "athlete_id": "555"})
    )
    os.chmod(store.path, 0o600)
    assert store.load().numeric_athlete_id() == 555


@pytest.mark.parametrize("athlete_id", [None, "null", ""])
def test_numeric_athlete_id_missing(athlete_id):
    with pytest.raises(TokenFileError, match="not found"):
        TokenSet("a", "r", NOW, athlete_id=athlete_id).numeric_athlete_id()


def test_numeric_athlete_id_rejects_garbage():
    with pytest.raises(TokenFileError, match="not a valid numeric ID"):
        TokenSet("a", "r", NOW, athlete_id="12; rm -rf").numeric_athlete_id()


@pytest.mark.parametrize("athlete_id", ["²", "١٢٣", "12a"])
def test_numeric_athlete_id_requires_ascii_digits(athlete_id):
    with pytest.raises(TokenFileError, match="not a valid numeric ID"):
        TokenSet("a", "r", NOW, athlete_id=athlete_id).numeric_athlete_id()
