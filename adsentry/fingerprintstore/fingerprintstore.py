import abc
import logging
from typing import Optional

from adsentry.models.alert import AlertFingerprint
from adsentry.models.severity import AlertSeverity


def generate_fingerprint_key(
    tenant_id: str, metric_or_check_id: str, date: str, severity: AlertSeverity | str
) -> str:
    """
    The idempotency key of an alert.

    Examples:
        >>> generate_fingerprint_key("acme", "sessions", "2024-01-15", AlertSeverity.CRITICAL)
        'acme:sessions:2024-01-15:CRITICAL'
    """
    if isinstance(severity, AlertSeverity):
        severity = severity.name
    return f"{tenant_id}:{metric_or_check_id}:{date}:{str(severity).upper()}"


class BaseFingerprintStore(metaclass=abc.ABCMeta):
    """Ledger of the alerts that were already dispatched."""

    def __init__(self, **kwargs):
        self.logger = logging.getLogger(__name__)

    @abc.abstractmethod
    def exists(self, key: str) -> bool:
        raise NotImplementedError("exists() method not implemented")

    @abc.abstractmethod
    def get(self, key: str) -> Optional[AlertFingerprint]:
        raise NotImplementedError("get() method not implemented")

    @abc.abstractmethod
    def set(self, key: str, fingerprint: AlertFingerprint):
        """Insert or overwrite the entry of key."""
        raise NotImplementedError("set() method not implemented")

    @abc.abstractmethod
    def try_reserve(self, key: str, fingerprint: AlertFingerprint) -> bool:
        """
        Insert the entry only if the key is absent.

        Returns:
            bool: False when the key was already present.
        """
        raise NotImplementedError("try_reserve() method not implemented")

    @abc.abstractmethod
    def release(self, key: str):
        """Remove a reservation whose dispatch failed."""
        raise NotImplementedError("release() method not implemented")

    @abc.abstractmethod
    def cleanup(self, days_to_keep: int = 30) -> int:
        """
        Remove the entries whose alert date is older than days_to_keep days.

        Returns:
            int: the number of removed entries.
        """
        raise NotImplementedError("cleanup() method not implemented")

    @abc.abstractmethod
    def save(self) -> bool:
        """
        Persist pending changes.

        Raises:
            FingerprintStoreSaveError: the ledger could not be written.
        Returns:
            bool: whether anything was written.
        """
        raise NotImplementedError("save() method not implemented")

    @property
    @abc.abstractmethod
    def count(self) -> int:
        raise NotImplementedError("count property not implemented")
