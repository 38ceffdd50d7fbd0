import secrets

# 16 bytes -> 22 base64url characters, no padding
SECRET_ID_BYTES = 16


def generate_secret_id() -> str:
    """Generate an unguessable, URL-safe secret identifier."""
    return secrets.token_urlsafe(SECRET_ID_BYTES)
