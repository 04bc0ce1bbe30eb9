from fastapi import HTTPException, status


class AppError(HTTPException):
    """
    Base class for failures raised by services and the auth guard.

    Subclasses pin the HTTP status so call sites only pass a short,
    user-facing message. `code` keeps the originating provider/store code
    (if any) for diagnostics; it is echoed in the error body.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        headers: dict[str, str] | None = None,
    ):
        super().__init__(status_code=self.status_code, detail=message, headers=headers)
        self.code = code

    @property
    def message(self) -> str:
        return str(self.detail)


class AuthenticationFailure(AppError):
    """Missing, malformed, invalid or expired credentials."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Authentication required", *, code: str | None = None):
        super().__init__(message, code=code, headers={"WWW-Authenticate": "Bearer"})


class AuthorizationFailure(AppError):
    """Valid identity without rights over the target resource."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT


class ProviderFailure(AppError):
    """Identity provider, data store or blob storage rejected the operation."""

    status_code = status.HTTP_400_BAD_REQUEST


class PayloadTooLarge(AppError):
    status_code = status.HTTP_413_CONTENT_TOO_LARGE


class InvalidInput(AppError):
    """Input that passed schema validation but is still unusable."""

    status_code = status.HTTP_400_BAD_REQUEST
