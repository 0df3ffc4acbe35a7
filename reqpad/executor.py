"""reqpad executor - HTTP request execution."""

import base64
import logging
import time
from typing import Any

import requests

from reqpad.models import (
    CONTENT_TYPES,
    ApiKey,
    ApiKeyLocation,
    AuthConfig,
    BasicAuth,
    BearerToken,
    ExecutionError,
    NoAuth,
    RequestDescriptor,
    ResponseRecord,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


def build_auth(
    auth: AuthConfig,
    headers: dict[str, str],
    query_params: dict[str, str],
) -> tuple[dict[str, str], dict[str, str]]:
    """Return (headers, query_params) with credentials applied.

    - basic:   Authorization: Basic <b64 user:pass>
    - bearer:  Authorization: Bearer <token>
    - api key: custom header, or query parameter
    """
    headers = dict(headers)
    query_params = dict(query_params)

    if isinstance(auth, BasicAuth):
        credentials = base64.b64encode(f"{auth.username}:{auth.password}".encode()).decode()
        headers["Authorization"] = f"Basic {credentials}"
    elif isinstance(auth, BearerToken):
        headers["Authorization"] = f"Bearer {auth.token}"
    elif isinstance(auth, ApiKey):
        if auth.location is ApiKeyLocation.QUERY_PARAM:
            query_params[auth.key] = auth.value
        else:
            headers[auth.key] = auth.value

    return headers, query_params


def _has_header(headers: dict[str, str], name: str) -> bool:
    return any(k.lower() == name.lower() for k in headers)


def execute_request(
    descriptor: RequestDescriptor,
    auth: AuthConfig | None = None,
    timeout: int = DEFAULT_TIMEOUT,
) -> ResponseRecord | ExecutionError:
    """Execute a request and return a ResponseRecord.

    Never raises - transport failures come back as ExecutionError.
    """
    headers, params = build_auth(
        auth or NoAuth(),
        descriptor.headers,
        descriptor.query_params,
    )

    body = descriptor.body
    content_type = CONTENT_TYPES.get(descriptor.body_type)
    if body and content_type and not _has_header(headers, "Content-Type"):
        headers["Content-Type"] = content_type

    kwargs: dict[str, Any] = {
        "method": descriptor.method.value,
        "url": descriptor.url,
        "headers": headers,
        "params": params or None,
        "data": body.encode("utf-8") if body else None,
        "timeout": timeout,
        "allow_redirects": True,
    }

    logger.debug("%s %s", descriptor.method.value, descriptor.full_url())

    try:
        start = time.monotonic()
        resp = requests.request(**kwargs)
        elapsed_ms = (time.monotonic() - start) * 1000
    except requests.exceptions.Timeout:
        return ExecutionError(f"Request timed out after {timeout}s")
    except requests.exceptions.ConnectionError as e:
        return ExecutionError(f"Connection error: {e}")
    except requests.exceptions.RequestException as e:
        return ExecutionError(f"Request failed: {e}")
    except Exception as e:
        logger.exception("Unexpected error executing %s", descriptor.url)
        return ExecutionError(f"Unexpected error: {e}")

    content = resp.content or b""
    logger.debug("-> %s (%d bytes, %dms)", resp.status_code, len(content), elapsed_ms)

    return ResponseRecord(
        request_id=descriptor.id,
        status_code=resp.status_code,
        status_text=resp.reason or "",
        headers=dict(resp.headers),
        body=resp.text if content else None,
        elapsed_ms=elapsed_ms,
        size=len(content),
    )


class RequestRunner:
    """Executes descriptors and records every outcome in a store."""

    def __init__(self, store, timeout: int = DEFAULT_TIMEOUT):
        self.store = store
        self.timeout = timeout

    def run(self, descriptor: RequestDescriptor, auth: AuthConfig | None = None) -> ResponseRecord:
        start = time.monotonic()
        outcome = execute_request(descriptor, auth, timeout=self.timeout)

        if isinstance(outcome, ExecutionError):
            record = ResponseRecord(
                request_id=descriptor.id,
                status_code=0,
                status_text="Network Error",
                elapsed_ms=(time.monotonic() - start) * 1000,
                is_error=True,
                error_message=outcome.message,
            )
        else:
            record = outcome

        self.store.save_response(record)
        return record
