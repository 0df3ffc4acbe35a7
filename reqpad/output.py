"""reqpad output - render recorded responses for the terminal."""

import json

from reqpad.models import ResponseRecord


def format_bytes(size: int) -> str:
    if size < 1024:
        return f"{size}B"
    if size < 1024 * 1024:
        return f"{size // 1024}KB"
    return f"{size // (1024 * 1024)}MB"


def format_body(body: str | None) -> str:
    """Pretty-print JSON objects and arrays; anything else is returned as-is."""
    if body is None:
        return ""
    stripped = body.strip()
    if not stripped.startswith(("{", "[")):
        return body
    try:
        return json.dumps(json.loads(stripped), indent=2)
    except ValueError:
        return body


def format_output(
    record: ResponseRecord,
    verbose: bool = False,
    raw: bool = False,
) -> str:
    """Format a response record for CLI output.

    raw     - body only, pretty-printed when it is JSON
    verbose - include response headers
    """
    if record.is_error:
        return f"ERROR: {record.error_message}"

    if raw:
        return format_body(record.body)

    status = f"{record.status_code} {record.status_text}".rstrip()
    lines = [
        f"STATUS: {status}",
        f"TIME: {int(record.elapsed_ms)}ms",
        f"SIZE: {format_bytes(record.size)}",
    ]

    if verbose and record.headers:
        lines.append("HEADERS:")
        for key, value in record.headers.items():
            lines.append(f"  {key}: {value}")

    if record.body is not None:
        lines.append("BODY:")
        lines.append(format_body(record.body))

    return "\n".join(lines)
