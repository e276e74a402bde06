"""Error taxonomy shared by services and routes.

Services raise these; ``app.main`` turns them into the
``{"success": false, "error": ...}`` envelope with the matching status code.
"""


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class Unauthorized(ServiceError):
    status_code = 401


class Forbidden(ServiceError):
    status_code = 403


class NotFound(ServiceError):
    status_code = 404


class ValidationFailed(ServiceError):
    status_code = 400


class Conflict(ServiceError):
    status_code = 409


class IntegrationFailure(ServiceError):
    """A third-party call (gateway, image host, mail, AI, reCAPTCHA) failed."""
    status_code = 502


def ok(data=None, message: str | None = None, **extra) -> dict:
    out = {"success": True}
    if data is not None:
        out["data"] = data
    if message:
        out["message"] = message
    out.update(extra)
    return out
