# -*- coding: utf-8 -*-
"""JSON story store on disk.

The whole collection is one file, rewritten atomically on every save.
Version 1 layout::

    {"version": 1, "stories": [{"id", "title", "body", "date", "images"}]}

Dates are ISO-8601 with offset; images are base64. Stores written by the
first release (a bare array with ``text`` / ``imageData`` keys) still load
and are upgraded on the next save.
"""
from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
import base64
import json
import logging
import os
import shutil
import tempfile

from argon2.exceptions import InvalidHashError, VerifyMismatchError
from cryptography.exceptions import InvalidTag

from .crypto import (
    PH,
    STORE_AAD,
    StoreKeys,
    aesgcm_decrypt,
    aesgcm_encrypt,
    derive_store_keys,
)
from .models import Story

log = logging.getLogger(__name__)

STORE_VERSION = 1
LEGACY_VERSION = 0
ENVELOPE_VERSION = 1
STORE_FILENAME = "stories.json"

PathLike = Union[str, "os.PathLike[str]"]


# ---------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------

class StorageError(Exception):
    """Base class for story store failures."""

    def __init__(self, message: str, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.path = path


class StoreNotFound(StorageError):
    """The store file does not exist."""


class StoreCorrupt(StorageError):
    """The store exists but cannot be parsed."""

    def __init__(
        self,
        message: str,
        path: Optional[Path] = None,
        backup_path: Optional[Path] = None,
    ) -> None:
        super().__init__(message, path)
        self.backup_path = backup_path


class StoreIOFailure(StorageError):
    """Reading or writing the store failed at the OS level."""


class StoreLocked(StorageError):
    """The passphrase does not open this store."""


# ---------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------

def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")

def _unb64(text: Any) -> bytes:
    if not isinstance(text, str):
        raise TypeError("expected base64 text")
    return base64.b64decode(text, validate=True)

def _text(record: Dict[str, Any], key: str) -> str:
    value = record[key]
    if not isinstance(value, str):
        raise TypeError(f"field {key!r} must be a string")
    return value

def encode_date(value: datetime) -> str:
    """ISO-8601 with offset; microseconds kept so instants round-trip."""
    return value.isoformat()

def decode_date(text: Any) -> datetime:
    """Parse an ISO-8601 timestamp, accepting a trailing ``Z``."""
    if not isinstance(text, str):
        raise TypeError("date must be an ISO-8601 string")
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def story_to_record(story: Story) -> Dict[str, Any]:
    """Serialize one story to a JSON-ready dict."""
    return {
        "id": story.id,
        "title": story.title,
        "body": story.body,
        "date": encode_date(story.date),
        "images": [_b64(img) for img in story.images],
    }

def story_from_record(record: Any, legacy: bool = False) -> Story:
    """Build a Story from a decoded record; raises on malformed input."""
    if not isinstance(record, dict):
        raise TypeError("story record must be an object")
    body_key, images_key = ("text", "imageData") if legacy else ("body", "images")
    images = record.get(images_key, [] if legacy else None)
    if not isinstance(images, list):
        raise TypeError(f"field {images_key!r} must be a list")
    story_id = _text(record, "id")
    if not story_id:
        raise ValueError("story id is empty")
    return Story(
        id=story_id,
        title=_text(record, "title"),
        body=_text(record, body_key),
        date=decode_date(record["date"]),
        images=tuple(_unb64(img) for img in images),
    )


def encode_stories(stories: Sequence[Story]) -> bytes:
    """Serialize the full collection in the current layout."""
    doc = {
        "version": STORE_VERSION,
        "stories": [story_to_record(s) for s in stories],
    }
    return json.dumps(doc, indent=2).encode("utf-8")

def decode_stories(raw: bytes) -> Tuple[List[Story], int]:
    """Parse store bytes; return (stories, layout version)."""
    doc = json.loads(raw.decode("utf-8"))
    if isinstance(doc, list):
        version, records, legacy = LEGACY_VERSION, doc, True
    elif isinstance(doc, dict):
        version = doc.get("version")
        if version != STORE_VERSION:
            raise ValueError(f"unsupported store version {version!r}")
        records, legacy = doc["stories"], False
        if not isinstance(records, list):
            raise TypeError("'stories' must be a list")
    else:
        raise TypeError("store root must be an object or array")

    stories = [story_from_record(r, legacy=legacy) for r in records]
    seen = set()
    for story in stories:
        if story.id in seen:
            raise ValueError(f"duplicate story id {story.id!r}")
        seen.add(story.id)
    return stories, version


# ---------------------------------------------------------------------
# Plain JSON store
# ---------------------------------------------------------------------

class JsonStoryStore:
    """Durable round-trip of the full story collection to one JSON file."""

    def __init__(self, path: PathLike) -> None:
        self.path = Path(path).expanduser()
        # Layout version seen by the last successful load (None before any).
        self.loaded_version: Optional[int] = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self.path)!r})"

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> List[Story]:
        """Read every story. A missing store is an empty collection."""
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            log.info("No story store at %s yet; starting empty", self.path)
            self.loaded_version = None
            return []
        except OSError as exc:
            raise StoreIOFailure(f"Cannot read {self.path}: {exc}", self.path) from exc

        try:
            stories, version = decode_stories(self._open(raw))
        except (ValueError, TypeError, KeyError, RecursionError) as exc:
            raise self._quarantine(exc) from exc

        self.loaded_version = version
        if version == LEGACY_VERSION:
            log.info("Loaded %d stories from legacy store %s", len(stories), self.path)
        else:
            log.info("Loaded %d stories from %s", len(stories), self.path)
        return stories

    def save(self, stories: Sequence[Story]) -> None:
        """Replace the store with *stories* in a single atomic rename."""
        self._write_atomic(self._seal(encode_stories(stories)))
        log.debug("Saved %d stories to %s", len(stories), self.path)

    def clear(self) -> None:
        """Remove the store entirely; later loads return nothing."""
        try:
            self.path.unlink(missing_ok=True)
        except OSError as exc:
            raise StoreIOFailure(f"Cannot remove {self.path}: {exc}", self.path) from exc
        self.loaded_version = None
        log.info("Cleared story store %s", self.path)

    def backup(self) -> Path:
        """Copy the store to a timestamped file under ``backups/``."""
        if not self.path.exists():
            raise StoreNotFound(f"No story store at {self.path} to back up", self.path)

        backups_dir = self.path.parent / "backups"
        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        backup_path = backups_dir / f"{self.path.name}.bak-{timestamp}"
        n = 1
        while backup_path.exists():
            backup_path = backups_dir / f"{self.path.name}.bak-{timestamp}-{n}"
            n += 1
        try:
            backups_dir.mkdir(parents=True, exist_ok=True)
            shutil.copy2(self.path, backup_path)
        except OSError as exc:
            raise StoreIOFailure(f"Cannot back up {self.path}: {exc}", self.path) from exc
        log.info("Backed up %s to %s", self.path, backup_path)
        return backup_path

    # -- hooks for subclasses that wrap the payload -----------------------

    def _open(self, raw: bytes) -> bytes:
        return raw

    def _seal(self, payload: bytes) -> bytes:
        return payload

    # -- internals -------------------------------------------------------

    def _read_raw(self) -> bytes:
        try:
            return self.path.read_bytes()
        except OSError as exc:
            raise StoreIOFailure(f"Cannot read {self.path}: {exc}", self.path) from exc

    def _existing_backup(self) -> Optional[Path]:
        """A backup already holding the current store bytes, if any."""
        backups_dir = self.path.parent / "backups"
        try:
            current = self.path.read_bytes()
            candidates = sorted(backups_dir.glob(f"{self.path.name}.bak-*"))
            for candidate in candidates:
                if candidate.read_bytes() == current:
                    return candidate
        except OSError as exc:
            raise StoreIOFailure(f"Cannot inspect backups of {self.path}: {exc}", self.path) from exc
        return None

    def _quarantine(self, exc: Exception) -> StoreCorrupt:
        """Back up an unreadable store so a later save cannot lose it."""
        backup_path = None
        try:
            backup_path = self._existing_backup() or self.backup()
        except StorageError as backup_exc:
            log.warning("Could not back up corrupt store %s: %s", self.path, backup_exc)
        log.warning("Story store %s is corrupt: %s", self.path, exc)
        return StoreCorrupt(
            f"Story store {self.path} is corrupt: {exc}",
            self.path,
            backup_path,
        )

    def _write_atomic(self, data: bytes) -> None:
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StoreIOFailure(f"Cannot write {self.path}: {exc}", self.path) from exc


# ---------------------------------------------------------------------
# Passphrase-protected store
# ---------------------------------------------------------------------

class EncryptedStoryStore(JsonStoryStore):
    """Same layout as :class:`JsonStoryStore`, sealed with AES-GCM.

    On disk the JSON payload is wrapped in an envelope holding the scrypt
    salt, an argon2 verifier of the passphrase, the nonce and ciphertext.
    A wrong passphrase raises :class:`StoreLocked`; a damaged envelope or
    failed tag is :class:`StoreCorrupt`.
    """

    def __init__(self, path: PathLike, passphrase: str) -> None:
        if not passphrase:
            raise ValueError("Passphrase required")
        super().__init__(path)
        self._passphrase = passphrase
        self._keys: Optional[StoreKeys] = None
        self._verifier: Optional[str] = None

    def change_passphrase(self, current: str, new: str) -> None:
        """Re-encrypt the store under *new* with a fresh salt."""
        if not new:
            raise ValueError("New passphrase required")
        if current != self._passphrase:
            raise StoreLocked("Current passphrase does not match", self.path)

        stories = self.load()
        if self.exists():
            self.backup()

        self._passphrase = new
        self._keys = derive_store_keys(new)
        self._verifier = PH.hash(new)
        self.save(stories)
        log.info("Changed passphrase for %s", self.path)

    def _open(self, raw: bytes) -> bytes:
        salt, verifier, nonce, ciphertext = self._read_envelope(raw)
        self._check_passphrase(verifier)
        keys = self._keys
        if keys is None or keys.salt != salt:
            keys = derive_store_keys(self._passphrase, salt)
        try:
            payload = aesgcm_decrypt(keys.enc_key, nonce, ciphertext, aad=STORE_AAD)
        except InvalidTag as exc:
            raise ValueError("ciphertext failed authentication") from exc
        self._keys, self._verifier = keys, verifier
        return payload

    def _seal(self, payload: bytes) -> bytes:
        if self._keys is None:
            self._adopt_existing_keys()
        if self._keys is None:
            self._keys = derive_store_keys(self._passphrase)
            self._verifier = PH.hash(self._passphrase)

        nonce, ciphertext = aesgcm_encrypt(self._keys.enc_key, payload, aad=STORE_AAD)
        envelope = {
            "version": ENVELOPE_VERSION,
            "kdf": "scrypt",
            "salt": _b64(self._keys.salt),
            "verifier": self._verifier,
            "nonce": _b64(nonce),
            "ciphertext": _b64(ciphertext),
        }
        return json.dumps(envelope, indent=2).encode("utf-8")

    def _adopt_existing_keys(self) -> None:
        """Reuse the salt of a store written earlier, if our passphrase opens it."""
        if not self.path.exists():
            return
        try:
            salt, verifier, _, _ = self._read_envelope(self._read_raw())
            self._check_passphrase(verifier)
        except (ValueError, TypeError, KeyError, RecursionError) as exc:
            log.warning("Replacing unreadable envelope at %s: %s", self.path, exc)
            return
        self._keys = derive_store_keys(self._passphrase, salt)
        self._verifier = verifier

    def _check_passphrase(self, verifier: str) -> None:
        try:
            PH.verify(verifier, self._passphrase)
        except VerifyMismatchError as exc:
            raise StoreLocked(f"Wrong passphrase for {self.path}", self.path) from exc
        except InvalidHashError as exc:
            raise ValueError("passphrase verifier is malformed") from exc

    @staticmethod
    def _read_envelope(raw: bytes) -> Tuple[bytes, str, bytes, bytes]:
        envelope = json.loads(raw.decode("utf-8"))
        if not isinstance(envelope, dict) or envelope.get("version") != ENVELOPE_VERSION:
            raise ValueError("not an encrypted story store")
        return (
            _unb64(envelope["salt"]),
            _text(envelope, "verifier"),
            _unb64(envelope["nonce"]),
            _unb64(envelope["ciphertext"]),
        )
