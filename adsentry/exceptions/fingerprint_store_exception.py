class FingerprintStoreSaveError(Exception):
    def __init__(self, message, path=None, *args: object) -> None:
        super().__init__(message, *args)
        self.path = path
