from adsentry.exceptions.provider_exception import ProviderException


class ProviderConfigException(ProviderException):
    """A provider was given authentication config it cannot work with."""

    def __init__(self, message, provider_id, *args: object) -> None:
        super().__init__(message, *args)
        self.provider_id = provider_id

    def __str__(self):
        return f"[{self.provider_id}] {super().__str__()}"
