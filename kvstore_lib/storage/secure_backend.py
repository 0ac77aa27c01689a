"""Encrypted file-backed storage backend.

Each entry is stored as `<data_dir>/<namespace>/<key>.entry`, a small JSON
frame holding the Fernet ciphertext and the entry's accessibility policy.
Files are written atomically (temporary file, fsync, rename) and are only
readable by the owner.

Two keys are in play:
- a device key, generated on first use and kept in `<data_dir>/.device_key`,
  encrypts entries whose policy does not require an unlock (`ALWAYS`);
- a user key, derived from a password with PBKDF2, encrypts everything
  else. It becomes available after the first successful `unlock()` and
  stays available for the lifetime of the backend.
"""
from __future__ import annotations
import base64
import json
import os
import shutil
import uuid
from pathlib import Path
from threading import RLock
from typing import Any, Dict, Iterable, Optional
import logging

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .base import (
    AFTER_FIRST_UNLOCK,
    Accessibility,
    BackendError,
    BackendLocked,
    StorageBackend,
)

logger = logging.getLogger(__name__)

FRAME_VERSION = 1
ENTRY_SUFFIX = ".entry"
DEVICE_KEY_FILE = ".device_key"
UNLOCK_CHECK_FILE = ".unlock_check"
_CHECK_PLAINTEXT = b"kvstore-unlock-check"


def _encode_name(name: str) -> str:
    if not name:
        raise ValueError("namespace and key must be non-empty")
    return base64.urlsafe_b64encode(name.encode("utf-8")).decode("ascii").rstrip("=")


def _decode_name(encoded: str) -> str:
    padded = encoded + "=" * (-len(encoded) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")


def _write_private(path: Path, data: bytes) -> None:
    tmp = path.with_name(path.name + ".tmp")
    fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
        f.flush()
        os.fsync(f.fileno())
    tmp.replace(path)


class SecureFileBackend(StorageBackend):
    """Encrypted-at-rest backend with per-entry accessibility.

    Parameters
    - data_dir: root directory for entries and key material.
    - password: optional passphrase; when given the backend is unlocked
      immediately.
    - iterations: PBKDF2 iteration count for deriving the user key.
    """

    supports_enumeration = True

    def __init__(
        self,
        data_dir: str | Path = "./data/secure",
        *,
        password: Optional[str] = None,
        iterations: int = 390000,
    ) -> None:
        self._lock = RLock()
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._iterations = iterations
        self._device_fernet = Fernet(self._load_device_key())
        self._user_fernet: Optional[Fernet] = None
        if password is not None:
            self.unlock(password)

    # -- key material -------------------------------------------------

    def _load_device_key(self) -> bytes:
        path = self.data_dir / DEVICE_KEY_FILE
        if path.exists():
            return path.read_bytes().strip()
        key = Fernet.generate_key()
        _write_private(path, key)
        logger.info("Generated new device key at %s", path)
        return key

    def _derive_key(self, password: str, salt: bytes, iterations: int) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=iterations,
        )
        return base64.urlsafe_b64encode(kdf.derive(password.encode("utf-8")))

    @property
    def is_unlocked(self) -> bool:
        return self._user_fernet is not None

    def unlock(self, password: str) -> None:
        """Unlock the backend for entries that require it.

        The first unlock on a fresh data directory fixes the password; later
        unlocks must use the same one or `BackendLocked` is raised.
        """
        with self._lock:
            check_path = self.data_dir / UNLOCK_CHECK_FILE
            if check_path.exists():
                try:
                    check = json.loads(check_path.read_bytes().decode("utf-8"))
                    salt = base64.urlsafe_b64decode(check["salt"].encode("ascii"))
                    iterations = int(check.get("iterations", self._iterations))
                    token = check["ct"].encode("ascii")
                except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
                    raise BackendError(f"corrupt unlock check file {check_path}") from e
                fernet = Fernet(self._derive_key(password, salt, iterations))
                try:
                    fernet.decrypt(token)
                except InvalidToken:
                    raise BackendLocked("wrong password")
            else:
                salt = os.urandom(16)
                fernet = Fernet(self._derive_key(password, salt, self._iterations))
                check = {
                    "v": FRAME_VERSION,
                    "kdf": "pbkdf2",
                    "iterations": self._iterations,
                    "salt": base64.urlsafe_b64encode(salt).decode("ascii"),
                    "ct": fernet.encrypt(_CHECK_PLAINTEXT).decode("ascii"),
                }
                _write_private(check_path, json.dumps(check).encode("utf-8"))
            self._user_fernet = fernet
            logger.debug("SecureFileBackend unlocked at %s", self.data_dir)

    def _fernet_for(self, accessibility: Accessibility, key: str) -> Fernet:
        if not accessibility.requires_unlock:
            return self._device_fernet
        if self._user_fernet is None:
            raise BackendLocked(f"{key} requires an unlocked store ({accessibility.name})")
        return self._user_fernet

    # -- paths --------------------------------------------------------

    def _ns_dir(self, namespace: str) -> Path:
        return self.data_dir / _encode_name(namespace)

    def _path_for(self, namespace: str, key: str) -> Path:
        return self._ns_dir(namespace) / f"{_encode_name(key)}{ENTRY_SUFFIX}"

    # -- StorageBackend -----------------------------------------------

    def exists(self, namespace: str, key: str) -> bool:
        return self._path_for(namespace, key).exists()

    def put(
        self,
        namespace: str,
        key: str,
        payload: bytes,
        accessibility: Accessibility = AFTER_FIRST_UNLOCK,
    ) -> None:
        with self._lock:
            fernet = self._fernet_for(accessibility, key)
            frame = {
                "v": FRAME_VERSION,
                "accessibility": accessibility.name,
                "requires_unlock": accessibility.requires_unlock,
                "ct": fernet.encrypt(bytes(payload)).decode("ascii"),
            }
            path = self._path_for(namespace, key)
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                _write_private(path, json.dumps(frame).encode("utf-8"))
            except OSError as e:
                raise BackendError(f"cannot write {namespace}/{key}") from e

    def get(self, namespace: str, key: str) -> bytes:
        with self._lock:
            path = self._path_for(namespace, key)
            if not path.exists():
                raise KeyError(key)
            try:
                frame: Dict[str, Any] = json.loads(path.read_bytes().decode("utf-8"))
                name = frame["accessibility"]
                token = frame["ct"].encode("ascii")
            except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
                raise BackendError(f"unreadable entry {namespace}/{key}") from e
            if frame.get("v") != FRAME_VERSION:
                raise BackendError(f"unknown frame version for {namespace}/{key}")
            # Key choice follows the stored flag, never the policy name.
            accessibility = Accessibility(name, requires_unlock=bool(frame.get("requires_unlock", True)))
            fernet = self._fernet_for(accessibility, key)
            try:
                return fernet.decrypt(token)
            except InvalidToken as e:
                raise BackendError(f"cannot decrypt {namespace}/{key}") from e

    def delete(self, namespace: str, key: str) -> None:
        with self._lock:
            path = self._path_for(namespace, key)
            if not path.exists():
                raise KeyError(key)
            try:
                path.unlink()
            except OSError as e:
                raise BackendError(f"cannot delete {namespace}/{key}") from e

    def delete_all(self, namespace: str) -> None:
        with self._lock:
            ns = self._ns_dir(namespace)
            if not ns.exists():
                return
            # Detach the whole namespace in one rename so readers never see
            # a partially wiped directory.
            tombstone = self.data_dir / f".wipe-{uuid.uuid4().hex}"
            try:
                os.replace(ns, tombstone)
            except OSError as e:
                raise BackendError(f"cannot wipe namespace {namespace}") from e
            shutil.rmtree(tombstone, ignore_errors=True)
            logger.debug("SecureFileBackend wiped namespace %s", namespace)

    def list_keys(self, namespace: str) -> Iterable[str]:
        ns = self._ns_dir(namespace)
        if not ns.exists():
            return []
        keys = []
        for p in sorted(ns.iterdir()):
            if p.is_file() and p.suffix == ENTRY_SUFFIX:
                keys.append(_decode_name(p.stem))
        return keys

    def configure(self, **options) -> None:
        password = options.get("password")
        if password:
            self.unlock(password)
        return
