class CatalogError(Exception):
    pass


class RemoteError(CatalogError):
    """Failure talking to the recipe search provider."""

    retryable = False


class NetworkError(RemoteError):
    retryable = True


class RateLimited(RemoteError):
    retryable = True

    def __init__(self, message: str, *, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class DecodeError(RemoteError):
    pass


class RequestRejected(DecodeError):
    def __init__(self, message: str, *, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class ValidationError(CatalogError):
    def __init__(self, fields: list[str]) -> None:
        super().__init__(f"Blank required fields: {', '.join(fields)}")
        self.fields = fields


class StorageError(CatalogError):
    pass


class RecipeNotFound(CatalogError):
    pass


class InvalidQuery(CatalogError):
    pass
