"""Tests for storybook.storage.EncryptedStoryStore."""

import json
from datetime import datetime, timezone

import pytest

from storybook.models import Story
from storybook.storage import (
    EncryptedStoryStore,
    JsonStoryStore,
    StoreCorrupt,
    StoreLocked,
)


@pytest.fixture
def stories():
    return [
        Story(title="Secret", body="nobody reads this",
              date=datetime(2024, 3, 1, 7, 0, tzinfo=timezone.utc), images=(b"\x89PNG",)),
        Story(title="Another", body="", date=datetime(2024, 2, 1, tzinfo=timezone.utc)),
    ]


@pytest.fixture
def sealed(store_path, stories):
    store = EncryptedStoryStore(store_path, "correct horse")
    store.save(stories)
    return store


class TestEncryptedStore:
    def test_requires_passphrase(self, store_path):
        with pytest.raises(ValueError):
            EncryptedStoryStore(store_path, "")

    def test_round_trip(self, sealed, store_path, stories):
        assert EncryptedStoryStore(store_path, "correct horse").load() == stories

    def test_plaintext_not_on_disk(self, sealed, store_path):
        raw = store_path.read_text(encoding="utf-8")
        assert "Secret" not in raw
        envelope = json.loads(raw)
        assert envelope["kdf"] == "scrypt"
        assert {"salt", "verifier", "nonce", "ciphertext"} <= set(envelope)

    def test_wrong_passphrase_is_locked(self, sealed, store_path):
        with pytest.raises(StoreLocked):
            EncryptedStoryStore(store_path, "wrong").load()

    def test_wrong_passphrase_cannot_overwrite(self, sealed, store_path):
        before = store_path.read_bytes()
        with pytest.raises(StoreLocked):
            EncryptedStoryStore(store_path, "wrong").save([])
        assert store_path.read_bytes() == before

    def test_tampered_ciphertext_is_corrupt(self, sealed, store_path):
        envelope = json.loads(store_path.read_text(encoding="utf-8"))
        other = EncryptedStoryStore(store_path.with_name("other.json"), "correct horse")
        other.save([Story(title="x")])
        envelope["ciphertext"] = json.loads(
            store_path.with_name("other.json").read_text(encoding="utf-8")
        )["ciphertext"]
        store_path.write_text(json.dumps(envelope), encoding="utf-8")
        with pytest.raises(StoreCorrupt):
            EncryptedStoryStore(store_path, "correct horse").load()

    def test_plain_store_is_not_an_envelope(self, store_path, stories):
        JsonStoryStore(store_path).save(stories)
        with pytest.raises(StoreCorrupt):
            EncryptedStoryStore(store_path, "correct horse").load()

    def test_resave_keeps_salt(self, sealed, store_path, stories):
        salt = json.loads(store_path.read_text(encoding="utf-8"))["salt"]
        reopened = EncryptedStoryStore(store_path, "correct horse")
        reopened.save(stories[:1])
        assert json.loads(store_path.read_text(encoding="utf-8"))["salt"] == salt
        assert reopened.load() == stories[:1]


class TestChangePassphrase:
    def test_reencrypts_under_new_passphrase(self, sealed, store_path, stories):
        old_salt = json.loads(store_path.read_text(encoding="utf-8"))["salt"]
        sealed.change_passphrase("correct horse", "battery staple")

        assert json.loads(store_path.read_text(encoding="utf-8"))["salt"] != old_salt
        assert EncryptedStoryStore(store_path, "battery staple").load() == stories
        with pytest.raises(StoreLocked):
            EncryptedStoryStore(store_path, "correct horse").load()

    def test_backs_up_before_change(self, sealed, store_path):
        sealed.change_passphrase("correct horse", "battery staple")
        backups = list((store_path.parent / "backups").iterdir())
        assert len(backups) == 1

    def test_wrong_current_passphrase(self, sealed):
        with pytest.raises(StoreLocked):
            sealed.change_passphrase("nope", "battery staple")

    def test_new_passphrase_required(self, sealed):
        with pytest.raises(ValueError):
            sealed.change_passphrase("correct horse", "")
