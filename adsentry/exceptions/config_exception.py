class ConfigError(Exception):
    """The monitoring configuration is missing or invalid."""

    def __init__(self, message, details=None, *args: object) -> None:
        super().__init__(message, *args)
        self.message = message
        self.details = details

    def __str__(self):
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message
