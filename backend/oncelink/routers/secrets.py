from urllib.parse import parse_qsl

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from oncelink.clock import Clock, get_clock
from oncelink.config import Settings, get_settings
from oncelink.database import get_db
from oncelink.middleware.client_identity import get_client_identity
from oncelink.schemas.secret import (
    ErrorResponse,
    SecretCreate,
    SecretCreateResponse,
    SecretRevealResponse,
)
from oncelink.services.request_handler import RequestContext, handle_request

router = APIRouter()

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

# JSON escaping can turn one byte of ciphertext into six characters of body.
BODY_EXPANSION_FACTOR = 6
BODY_OVERHEAD_BYTES = 1024


def max_body_size(settings: Settings) -> int:
    return settings.max_payload * BODY_EXPANSION_FACTOR + BODY_OVERHEAD_BYTES


async def read_body(request: Request, limit: int) -> bytes | None:
    """Read the request body, giving up (None) as soon as it exceeds ``limit`` bytes."""
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        return None

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            return None
    return bytes(body)


def parse_ciphertext(body: bytes, content_type: str) -> str | None:
    """
    Pull the ciphertext out of a create request body.

    Accepts JSON or an urlencoded form. Returns None for anything malformed so
    the request is rejected only after the rate limiter has seen it.
    """
    try:
        if content_type.lower().startswith(FORM_CONTENT_TYPE):
            fields = dict(parse_qsl(body.decode("utf-8"), keep_blank_values=True))
            return SecretCreate.model_validate(fields).ciphertext
        return SecretCreate.model_validate_json(body).ciphertext
    except (ValidationError, UnicodeDecodeError):
        return None


@router.api_route(
    "/secret",
    methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    response_model=SecretCreateResponse | SecretRevealResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
    },
)
async def secret_endpoint(
    request: Request,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
):
    """
    Create or reveal a one-time secret.

    POST with a ciphertext stores it and returns its id. GET with ?id= returns
    the ciphertext once and deletes it; afterwards the id answers 404.
    """
    ciphertext = None
    payload_too_large = False
    if request.method == "POST":
        body = await read_body(request, max_body_size(settings))
        if body is None:
            payload_too_large = True
        else:
            ciphertext = parse_ciphertext(body, request.headers.get("content-type", ""))

    context = RequestContext(
        method=request.method,
        client_identity=get_client_identity(request, settings.trust_forwarded_for),
        ciphertext=ciphertext,
        payload_too_large=payload_too_large,
        secret_id=request.query_params.get("id") if request.method == "GET" else None,
    )

    return await run_in_threadpool(handle_request, db, context, clock.now(), settings)
