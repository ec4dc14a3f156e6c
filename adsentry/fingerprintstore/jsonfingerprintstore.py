import datetime
import json
import os
import tempfile
from typing import Optional

import pydantic

from adsentry.core.config import DEFAULT_STORE_PATH, config
from adsentry.exceptions.fingerprint_store_exception import FingerprintStoreSaveError
from adsentry.fingerprintstore.fingerprintstore import BaseFingerprintStore
from adsentry.models.alert import AlertFingerprint, FingerprintStoreData, utcnow_isoformat


class JsonFingerprintStore(BaseFingerprintStore):
    """
    Fingerprint ledger kept in a single JSON document.

    Assumes a single writer. The document is loaded once and written back by save().
    """

    def __init__(self, file_path: Optional[str] = None, **kwargs):
        super().__init__()
        self.file_path = file_path or config("STORE_PATH", default=DEFAULT_STORE_PATH)
        self.dirty = False
        self.data = self._load()

    def _load(self) -> FingerprintStoreData:
        if not os.path.exists(self.file_path):
            self.logger.warning(
                "Fingerprint store not found, starting empty",
                extra={"path": self.file_path},
            )
            return FingerprintStoreData()
        try:
            with open(self.file_path, "r") as f:
                raw = json.load(f)
            data = FingerprintStoreData.model_validate(raw)
        except (OSError, ValueError) as e:
            # pydantic.ValidationError is a ValueError
            self.logger.warning(
                "Could not read fingerprint store, starting empty",
                extra={"path": self.file_path, "error": str(e)},
            )
            return FingerprintStoreData()
        self.logger.debug(
            f"Loaded {len(data.fingerprints)} fingerprints",
            extra={"path": self.file_path},
        )
        return data

    def exists(self, key: str) -> bool:
        return key in self.data.fingerprints

    def get(self, key: str) -> Optional[AlertFingerprint]:
        return self.data.fingerprints.get(key)

    def set(self, key: str, fingerprint: AlertFingerprint):
        self.data.fingerprints[key] = fingerprint
        self.dirty = True

    def try_reserve(self, key: str, fingerprint: AlertFingerprint) -> bool:
        if self.exists(key):
            return False
        self.set(key, fingerprint)
        return True

    def release(self, key: str):
        if self.data.fingerprints.pop(key, None) is not None:
            self.dirty = True

    def cleanup(self, days_to_keep: int = 30) -> int:
        cutoff = (
            datetime.datetime.now(tz=datetime.timezone.utc).date()
            - datetime.timedelta(days=days_to_keep)
        ).isoformat()
        expired = [
            key
            for key, fingerprint in self.data.fingerprints.items()
            if fingerprint.date < cutoff
        ]
        for key in expired:
            del self.data.fingerprints[key]
        if expired:
            self.dirty = True
            self.logger.info(
                f"Cleaned up {len(expired)} old fingerprints",
                extra={"days_to_keep": days_to_keep},
            )
        return len(expired)

    def save(self) -> bool:
        if not self.dirty:
            self.logger.debug("Fingerprint store unchanged, skipping save")
            return False

        self.data.last_updated = utcnow_isoformat()
        directory = os.path.dirname(os.path.abspath(self.file_path))
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=directory, prefix=".fingerprints-", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w") as f:
                    json.dump(self.data.model_dump(by_alias=True), f, indent=2)
                os.replace(tmp_path, self.file_path)
            except OSError:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except OSError as e:
            self.logger.error(
                "Failed to save fingerprint store",
                extra={"path": self.file_path, "error": str(e)},
            )
            raise FingerprintStoreSaveError(
                f"Could not save fingerprint store to {self.file_path}: {e}",
                path=self.file_path,
            ) from e

        self.dirty = False
        self.logger.debug(
            f"Saved {self.count} fingerprints", extra={"path": self.file_path}
        )
        return True

    @property
    def count(self) -> int:
        return len(self.data.fingerprints)
