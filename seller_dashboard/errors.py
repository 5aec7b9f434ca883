"""Exceptions raised by the dashboard services and rendered by the blueprints."""


class DashboardError(Exception):
    """Base exception for all user-facing dashboard failures."""

    status_code = 500

    def __init__(self, message="An unexpected error occurred.", status_code=None, payload=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv["message"] = self.message
        rv["status"] = "error"
        return rv


class ValidationError(DashboardError):
    """Client-local input problem. ``fields`` maps field name to message."""

    status_code = 400

    def __init__(self, message, field=None, fields=None):
        self.field = field
        self.fields = dict(fields or {})
        if field and field not in self.fields:
            self.fields[field] = message
        super().__init__(message, payload={"fields": self.fields} if self.fields else None)


class ImageCountExceeded(ValidationError):
    def __init__(self, max_count):
        super().__init__(
            f"You can only have a maximum of {max_count} images in total.",
            field="images",
        )


class ImageTooLarge(ValidationError):
    def __init__(self, filename, max_bytes):
        mb = max_bytes // (1024 * 1024)
        super().__init__(f'File "{filename}" exceeds the {mb} MB size limit.', field="images")


class UnsupportedImageType(ValidationError):
    def __init__(self, filename):
        super().__init__(f'File type for "{filename}" is not supported.', field="images")


class CropError(DashboardError):
    """Cropped image would be empty or could not be rendered."""

    status_code = 422


class StorageError(DashboardError):
    """Object storage rejected a request."""

    status_code = 502

    def __init__(self, message, cause=None):
        self.cause = cause
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class UploadError(StorageError):
    """An image upload failed."""


class PersistenceError(DashboardError):
    """A row insert, select or delete failed."""

    status_code = 500

    def __init__(self, message, cause=None):
        self.cause = cause
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class RevertError(DashboardError):
    status_code = 409


class NotFoundError(DashboardError):
    status_code = 404

    def __init__(self, message="Resource not found"):
        super().__init__(message)


class AuthError(DashboardError):
    status_code = 401


class RateLimitedError(DashboardError):
    status_code = 429

    def __init__(self, retry_after):
        self.retry_after = retry_after
        super().__init__(
            f"Please wait {retry_after} seconds before requesting a new code.",
            payload={"retry_after": retry_after},
        )


class ConfigurationError(Exception):
    """Backend credentials are missing; the app cannot serve the dashboard."""

    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__("Missing backend configuration: " + ", ".join(self.missing))
