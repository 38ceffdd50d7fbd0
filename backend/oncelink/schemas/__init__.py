from oncelink.schemas.secret import (
    ErrorResponse,
    SecretCreate,
    SecretCreateResponse,
    SecretRevealResponse,
)

__all__ = [
    "ErrorResponse",
    "SecretCreate",
    "SecretCreateResponse",
    "SecretRevealResponse",
]
