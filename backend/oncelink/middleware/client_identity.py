from starlette.requests import Request

# Callers without a resolvable address all share this one rate-limit bucket.
UNKNOWN_CLIENT = "unknown"


def get_client_identity(request: Request, trust_forwarded_for: bool = False) -> str:
    """Extract the client identity used for rate limiting.

    When running behind a reverse proxy (like Caddy) and trust_forwarded_for
    is enabled, the client's real IP is the first entry of X-Forwarded-For.
    Otherwise the socket peer address is used, falling back to a constant
    sentinel when it is unavailable.
    """
    if trust_forwarded_for:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            first = forwarded.split(",")[0].strip()
            if first:
                return first
    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT
