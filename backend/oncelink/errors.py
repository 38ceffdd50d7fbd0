"""Errors raised by the services and rendered as ``{"error": message}`` responses."""


class OnceLinkError(Exception):
    status_code: int = 500
    message: str = "Internal server error."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class InvalidRequest(OnceLinkError):
    status_code = 400
    message = "Invalid request."


class SecretNotFound(OnceLinkError):
    # Same wording whether the id never existed or was already consumed.
    status_code = 404
    message = "Data does not exist or has already been retrieved."


class PayloadTooLarge(OnceLinkError):
    status_code = 413
    message = "Payload is too large."


class RateLimited(OnceLinkError):
    status_code = 429
    message = "Too many requests. Please try again later."


class StorageFault(OnceLinkError):
    status_code = 500
    message = "Internal server error."


class DuplicateSecretId(Exception):
    """A secret with the generated id already exists."""
