import enum

from adsentry.core.config import DEFAULT_STORE_TYPE, config
from adsentry.fingerprintstore.fingerprintstore import BaseFingerprintStore


class FingerprintStoreTypes(enum.Enum):
    JSON = "json"
    SQL = "sql"


class FingerprintStoreFactory:
    @staticmethod
    def get_store(
        store_type: FingerprintStoreTypes = None, **kwargs
    ) -> BaseFingerprintStore:
        if not store_type:
            store_type = FingerprintStoreTypes[
                config("STORE_TYPE", default=DEFAULT_STORE_TYPE).upper()
            ]
        if store_type == FingerprintStoreTypes.JSON:
            from adsentry.fingerprintstore.jsonfingerprintstore import (
                JsonFingerprintStore,
            )

            return JsonFingerprintStore(**kwargs)
        elif store_type == FingerprintStoreTypes.SQL:
            from adsentry.fingerprintstore.sqlfingerprintstore import (
                SqlFingerprintStore,
            )

            return SqlFingerprintStore(**kwargs)

        raise NotImplementedError(
            f"Fingerprint store type {str(store_type)} not implemented"
        )
