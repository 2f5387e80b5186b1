"""Error taxonomy shared by services and API resources.

Each error maps to an HTTP status; the message is safe to show to the caller.
Anything not derived from ServiceError is an internal failure and is reported
as a generic 500.
"""


class ServiceError(ValueError):
    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    status_code = 400


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 409


class UploadRejected(ValidationError):
    """Uploaded file refused. `reason` is 'bad_type' or 'too_large'."""

    def __init__(self, message, reason):
        super().__init__(message)
        self.reason = reason
