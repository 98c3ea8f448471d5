"""Exceptions raised by the server and how they render over HTTP."""

from aiohttp import web

from homevault.models.base import create_error_response

__all__ = [
    "HomeVaultError",
    "ValidationError",
    "Unauthorized",
    "PermissionDenied",
    "NotFound",
    "Conflict",
    "Gone",
    "TooLarge",
    "UnsupportedType",
    "RangeNotSatisfiable",
    "StorageIOError",
    "UploadBatchError",
]


class HomeVaultError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status: int = 500
    error_code: str = "E500"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_response(self) -> web.Response:
        """Render the error as a JSON error response."""
        return web.json_response(
            create_error_response(self.message, self.error_code).to_dict(),
            status=self.status,
        )

    @classmethod
    def uncaught(cls, err: Exception) -> "HomeVaultError":
        """Wrap an unexpected exception as an internal error."""
        return cls(f"Internal error: {err}")


class ValidationError(HomeVaultError):
    """Invalid name, path or request payload."""

    status = 400
    error_code = "E400"


class Unauthorized(HomeVaultError):
    """Missing or invalid credentials."""

    status = 401
    error_code = "E401"


class PermissionDenied(HomeVaultError):
    """The caller does not own the resource and is not an administrator."""

    status = 403
    error_code = "E403"


class NotFound(HomeVaultError):
    """A folder, file or parent does not exist."""

    status = 404
    error_code = "E404"


class Conflict(HomeVaultError):
    """Duplicate path, non-empty folder or occupied move destination."""

    status = 409
    error_code = "E409"


class Gone(HomeVaultError):
    """A shared link has expired or used up its downloads."""

    status = 410
    error_code = "E410"


class TooLarge(HomeVaultError):
    """An upload exceeded the configured maximum file size."""

    status = 413
    error_code = "E413"


class UnsupportedType(HomeVaultError):
    """An upload has a MIME type or extension that is not accepted."""

    status = 415
    error_code = "E415"


class RangeNotSatisfiable(HomeVaultError):
    """A byte range starts beyond the end of the content."""

    status = 416
    error_code = "E416"

    def __init__(self, message: str, total: int) -> None:
        super().__init__(message)
        self.total = total

    def to_response(self) -> web.Response:
        response = super().to_response()
        response.headers["Content-Range"] = f"bytes */{self.total}"
        return response


class StorageIOError(HomeVaultError):
    """Reading or writing bytes on disk failed."""

    status = 500
    error_code = "E_IO"


class UploadBatchError(HomeVaultError):
    """Some files of a multi-file upload failed.

    Files that were stored successfully stay committed and are available in
    `results`; `failures` holds one `"<filename>: <reason>"` entry per
    failed file.
    """

    status = 400
    error_code = "E_UPLOAD"

    def __init__(self, results: list, failures: list[str]) -> None:
        super().__init__(f"Some files failed to upload: {', '.join(failures)}")
        self.results = results
        self.failures = failures
