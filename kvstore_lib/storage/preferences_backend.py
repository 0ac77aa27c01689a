"""Plain preferences backend that maps all namespaces to a single YAML file.

Payloads are stored unencrypted as base64 text inside one document shaped
`{<namespace>: {<key>: <payload>}}`. The whole document is rewritten on
every mutation, so there is no per-key enumeration; callers that need to
know which keys exist keep their own index.
"""
from __future__ import annotations
import base64
import binascii
import os
from pathlib import Path
from threading import RLock
from typing import Any, Dict, Mapping
import logging

import yaml

from .base import AFTER_FIRST_UNLOCK, Accessibility, BackendError, StorageBackend

logger = logging.getLogger(__name__)


class PreferencesBackend(StorageBackend):
    """Backend that targets a single on-disk preferences file.

    Parameters
    - file_path: path to the YAML document used for all reads/writes.
      A missing file is treated as an empty document.
    """

    def __init__(self, file_path: str | Path) -> None:
        self._lock = RLock()
        self.file_path = Path(file_path)
        # Ensure parent directory exists so writes succeed.
        if not self.file_path.parent.exists():
            os.makedirs(self.file_path.parent, exist_ok=True)

    def _read(self) -> Dict[str, Dict[str, str]]:
        if not self.file_path.exists():
            return {}
        try:
            with open(self.file_path, "r", encoding="utf-8") as f:
                data: Any = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise BackendError(f"cannot read preferences file {self.file_path}") from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise BackendError(f"invalid preferences file {self.file_path}: expected mapping")
        return data

    def _write(self, doc: Dict[str, Dict[str, str]]) -> None:
        path = self.file_path
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                yaml.safe_dump(doc, f, sort_keys=False)
                f.flush()
                os.fsync(f.fileno())
            tmp.replace(path)
        except OSError as e:
            raise BackendError(f"cannot write preferences file {path}") from e

    def exists(self, namespace: str, key: str) -> bool:
        with self._lock:
            ns = self._read().get(namespace) or {}
            return key in ns

    def put(
        self,
        namespace: str,
        key: str,
        payload: bytes,
        accessibility: Accessibility = AFTER_FIRST_UNLOCK,
    ) -> None:
        # Preferences have no access control; accessibility is ignored.
        with self._lock:
            doc = self._read()
            ns = doc[namespace] = doc.get(namespace) or {}
            ns[key] = base64.b64encode(bytes(payload)).decode("ascii")
            self._write(doc)

    def bulk_load(self, namespace: str, entries: Mapping[str, bytes]) -> None:
        """Write many entries under `namespace` with a single file write."""
        with self._lock:
            doc = self._read()
            ns = doc[namespace] = doc.get(namespace) or {}
            for key, payload in entries.items():
                ns[key] = base64.b64encode(bytes(payload)).decode("ascii")
            self._write(doc)
            logger.debug("PreferencesBackend bulk loaded %d entries into %s", len(entries), namespace)

    def get(self, namespace: str, key: str) -> bytes:
        with self._lock:
            ns = self._read().get(namespace) or {}
            if key not in ns:
                raise KeyError(key)
            try:
                return base64.b64decode(ns[key], validate=True)
            except (binascii.Error, TypeError, ValueError) as e:
                raise BackendError(f"corrupt payload for {namespace}/{key}") from e

    def delete(self, namespace: str, key: str) -> None:
        with self._lock:
            doc = self._read()
            ns = doc.get(namespace) or {}
            if key not in ns:
                raise KeyError(key)
            del ns[key]
            self._write(doc)

    def delete_all(self, namespace: str) -> None:
        with self._lock:
            doc = self._read()
            if namespace not in doc:
                return
            del doc[namespace]
            self._write(doc)

    def configure(self, **options) -> None:
        # Accept runtime configuration; allow overriding the file path.
        fp = options.get("file_path") or options.get("path")
        if fp:
            with self._lock:
                self.file_path = Path(fp)
                if not self.file_path.parent.exists():
                    os.makedirs(self.file_path.parent, exist_ok=True)
        return
