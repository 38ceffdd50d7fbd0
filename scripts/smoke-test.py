#!/usr/bin/env python3
"""
Smoke test for oncelink deployments.

A deploy guardrail: fast, deterministic, and every failure names the step
and the HTTP status/body preview.

Flow (default):
1. Health check
2. Secret creation (POST /api/v1/secret, form-encoded like the web page)
3. Reveal (GET /api/v1/secret?id=...) returns the exact ciphertext
4. Second reveal answers 404
5. Unknown id answers the same 404 body

Usage:
    ./scripts/smoke-test.py https://staging.example.com
    ./scripts/smoke-test.py https://staging.example.com --health-only

Each run spends four requests of the caller's rate-limit budget.
"""

import argparse
import base64
import json
import secrets
import sys
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

DEFAULT_TIMEOUT_SECONDS = 30.0
# Used when surfacing raw HTTP bodies (bytes) as a preview in error messages.
BODY_PREVIEW_BYTES = 200


class ApiError(RuntimeError):
    def __init__(self, status_code: int, body: bytes):
        super().__init__(f"API error {status_code}: {body[:BODY_PREVIEW_BYTES]!r}")
        self.status_code = status_code
        self.body = body


def log(msg: str) -> None:
    """Print timestamped log message."""
    print(f"[{datetime.now().strftime('%H:%M:%S')}] {msg}", flush=True)


@dataclass
class HttpClient:
    base_url: str
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    def request(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        body: bytes | None = None,
    ) -> tuple[int, bytes]:
        # No retries: replaying a reveal would burn the secret a second time.
        request = Request(
            f"{self.base_url}{path}", data=body, headers=headers or {}, method=method
        )
        try:
            with urlopen(request, timeout=self.timeout_seconds) as response:
                return response.getcode(), response.read()
        except HTTPError as e:
            return e.code, e.read() if e.fp else b""
        except (URLError, TimeoutError) as e:
            raise RuntimeError(f"Network error on {method} {path}: {e}") from e

    def api_json(self, method: str, path: str, *, form: dict[str, str] | None = None) -> Any:
        headers = {}
        body = None
        if form is not None:
            headers["Content-Type"] = "application/x-www-form-urlencoded"
            body = urlencode(form).encode()

        status, raw = self.request(method, f"/api/v1{path}", headers=headers, body=body)
        if status != 200:
            raise ApiError(status, raw)
        return json.loads(raw.decode())


def wait_for_health(client: HttpClient, max_attempts: int = 30, delay: float = 2.0) -> bool:
    """Wait for /health to return healthy status."""
    for attempt in range(1, max_attempts + 1):
        try:
            status, body = client.request("GET", "/health")
            if status == 200 and json.loads(body.decode()).get("status") == "healthy":
                log(f"Health check passed (attempt {attempt})")
                return True
        except (json.JSONDecodeError, RuntimeError):
            pass

        if attempt < max_attempts:
            time.sleep(delay)

    return False


def generate_test_ciphertext() -> str:
    """Fake browser output: base64 of a 12-byte nonce followed by ciphertext."""
    return base64.b64encode(secrets.token_bytes(12) + b"smoke-test-" + secrets.token_bytes(21)).decode()


@dataclass
class SmokeContext:
    client: HttpClient
    max_health_attempts: int

    ciphertext: str | None = None
    secret_id: str | None = None

    def require_secret_id(self) -> str:
        if not self.secret_id:
            raise RuntimeError("Missing secret_id (step ordering bug)")
        return self.secret_id


@dataclass(frozen=True)
class Step:
    name: str
    run: Callable[[SmokeContext], None]


def expect_not_found(ctx: SmokeContext, secret_id: str) -> bytes:
    try:
        ctx.client.api_json("GET", f"/secret?{urlencode({'id': secret_id})}")
    except ApiError as e:
        if e.status_code != 404:
            raise
        return e.body
    raise RuntimeError("Expected 404 but the secret was returned")


def step_health(ctx: SmokeContext) -> None:
    log(f"Checking health: {ctx.client.base_url}/health")
    if not wait_for_health(ctx.client, max_attempts=ctx.max_health_attempts):
        raise RuntimeError("Health check failed")


def step_create_secret(ctx: SmokeContext) -> None:
    ctx.ciphertext = generate_test_ciphertext()
    result = ctx.client.api_json("POST", "/secret", form={"encryptedData": ctx.ciphertext})
    if not result.get("id"):
        raise RuntimeError(f"No id in create response: {result!r}")
    ctx.secret_id = result["id"]
    log(f"Created secret ({len(ctx.ciphertext)} bytes)")


def step_reveal(ctx: SmokeContext) -> None:
    result = ctx.client.api_json("GET", f"/secret?{urlencode({'id': ctx.require_secret_id()})}")
    if result.get("data") != ctx.ciphertext:
        raise RuntimeError("Revealed ciphertext does not match what was stored")


def step_second_reveal(ctx: SmokeContext) -> None:
    consumed = expect_not_found(ctx, ctx.require_secret_id())
    unknown = expect_not_found(ctx, secrets.token_urlsafe(16))
    if consumed != unknown:
        raise RuntimeError("Consumed and unknown ids produced different 404 bodies")


def run_steps(ctx: SmokeContext, steps: list[Step]) -> bool:
    overall_start = time.time()
    for step in steps:
        log(f"STEP: {step.name}")
        start = time.time()
        try:
            step.run(ctx)
        except Exception as e:
            log(f"FAILED: {step.name}: {e}")
            return False
        log(f"OK: {step.name} ({time.time() - start:.2f}s)")

    log(f"Total: {time.time() - overall_start:.2f}s")
    return True


def main() -> int:
    parser = argparse.ArgumentParser(description="oncelink smoke test")
    parser.add_argument("base_url", help="Base URL (e.g., https://staging.example.com)")
    parser.add_argument(
        "--health-only",
        action="store_true",
        help="Only run health check, skip full flow",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT_SECONDS,
        help=f"HTTP timeout seconds (default: {DEFAULT_TIMEOUT_SECONDS:g})",
    )
    parser.add_argument(
        "--max-health-attempts",
        type=int,
        default=30,
        help="Max health check attempts (default: 30)",
    )
    args = parser.parse_args()

    client = HttpClient(base_url=args.base_url.rstrip("/"), timeout_seconds=args.timeout)
    ctx = SmokeContext(client=client, max_health_attempts=args.max_health_attempts)

    steps = [Step("health", step_health)]
    if args.health_only:
        log("Health-only mode: skipping full flow")
    else:
        steps.extend(
            [
                Step("create secret", step_create_secret),
                Step("reveal", step_reveal),
                Step("second reveal", step_second_reveal),
            ]
        )

    return 0 if run_steps(ctx, steps) else 1


if __name__ == "__main__":
    sys.exit(main())
