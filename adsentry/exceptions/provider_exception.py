class ProviderException(Exception):
    """Raised when an external platform call fails."""


class ProviderHttpException(ProviderException):
    def __init__(self, message, status_code=None, body=None, *args: object) -> None:
        super().__init__(message, *args)
        self.status_code = status_code
        self.body = body

    @property
    def is_server_error(self) -> bool:
        return self.status_code is not None and self.status_code >= 500
