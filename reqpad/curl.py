"""reqpad curl - parse curl command lines into request descriptors and back."""

import enum
import re
from dataclasses import dataclass
from typing import Any

from reqpad.models import BodyType, HttpMethod, RequestDescriptor, build_query_string

COMMAND = "curl"
URL_PREFIXES = ("http://", "https://")

_WHITESPACE_RE = re.compile(r"\s+")
_CONTINUATION_RE = re.compile(r"\\\r?\n")


class ParseError(enum.Enum):
    NOT_A_RECOGNIZED_COMMAND = "not a curl command"
    MISSING_URL = "no http:// or https:// URL found"


@dataclass(frozen=True)
class ParseFailure:
    reason: ParseError

    def __str__(self) -> str:
        return self.reason.value


def tokenize(raw: str) -> list[str]:
    """Split a shell-style argument string into tokens.

    Single and double quotes group text and are dropped; a quote of the
    other kind inside a quoted span is literal. Whitespace runs collapse
    to one separator, inside quotes too. An unterminated quote is not an
    error: whatever was collected is emitted as the last token.
    """
    text = _WHITESPACE_RE.sub(" ", raw).strip()
    tokens: list[str] = []
    buf: list[str] = []
    quote: str | None = None

    for ch in text:
        if quote is None and ch in ("'", '"'):
            quote = ch
        elif quote is not None and ch == quote:
            quote = None
        elif quote is None and ch == " ":
            if buf:
                tokens.append("".join(buf))
                buf = []
        else:
            buf.append(ch)

    if buf:
        tokens.append("".join(buf))
    return tokens


# ── Flag grammar ─────────────────────────────────────────────────────────


class _Flag(enum.Enum):
    METHOD = "method"
    HEADER = "header"
    DATA = "data"
    DATA_URLENCODE = "data-urlencode"


FLAGS = {
    "-X": _Flag.METHOD,
    "--request": _Flag.METHOD,
    "-H": _Flag.HEADER,
    "--header": _Flag.HEADER,
    "-d": _Flag.DATA,
    "--data": _Flag.DATA,
    "--data-raw": _Flag.DATA,
    "--data-urlencode": _Flag.DATA_URLENCODE,
}


def _is_url(token: str) -> bool:
    return token.startswith(URL_PREFIXES)


def _split_header(arg: str) -> tuple[str, str] | None:
    colon = arg.find(":")
    if colon == -1:
        return None
    return arg[:colon].strip(), arg[colon + 1 :].strip()


def split_query(query: str) -> dict[str, str]:
    """Split 'a=1&b=2' into a dict. Pairs without '=' are dropped."""
    params: dict[str, str] = {}
    for pair in query.split("&"):
        if "=" in pair:
            k, v = pair.split("=", 1)
            params[k] = v
    return params


def split_url(url: str) -> tuple[str, dict[str, str]]:
    """Split a URL at the first '?' into base URL and query params."""
    base, _, query = url.partition("?")
    return base, split_query(query) if query else {}


def _apply_flag(flag: _Flag, arg: str, state: dict[str, Any]) -> None:
    if flag is _Flag.METHOD:
        state["method"] = HttpMethod.parse(arg)
        state["explicit_method"] = True
    elif flag is _Flag.HEADER:
        header = _split_header(arg)
        if header:
            state["headers"][header[0]] = header[1]
    else:
        state["body"] = arg
        state["body_type"] = (
            BodyType.URL_ENCODED if flag is _Flag.DATA_URLENCODE else BodyType.RAW_JSON
        )
        if not state["explicit_method"] and state["method"] is HttpMethod.GET:
            state["method"] = HttpMethod.POST


def _strip_command(raw: str) -> str | None:
    """Return the argument text after the leading command name, or None."""
    cmd = raw.strip()
    if not cmd.startswith(COMMAND):
        return None
    rest = cmd[len(COMMAND) :]
    if rest and not rest[0].isspace():
        return None
    return rest


def parse_curl(raw: str) -> RequestDescriptor | ParseFailure:
    """Parse a curl command string into a RequestDescriptor.

    Recognizes -X/--request, -H/--header, -d/--data/--data-raw/
    --data-urlencode and the first http(s) URL. Other options are skipped
    along with their value. Failures are returned, never raised.
    """
    rest = _strip_command(raw)
    if rest is None:
        return ParseFailure(ParseError.NOT_A_RECOGNIZED_COMMAND)

    tokens = tokenize(_CONTINUATION_RE.sub(" ", rest))

    state: dict[str, Any] = {
        "method": HttpMethod.GET,
        "explicit_method": False,
        "headers": {},
        "body": None,
        "body_type": BodyType.NONE,
    }
    url = ""
    query_params: dict[str, str] = {}

    i = 0
    while i < len(tokens):
        tok = tokens[i]
        flag = FLAGS.get(tok)

        if flag is not None:
            if i + 1 < len(tokens):
                _apply_flag(flag, tokens[i + 1], state)
                i += 2
            else:
                i += 1
        elif _is_url(tok):
            if not url:
                url, query_params = split_url(tok)
            i += 1
        elif tok.startswith("-"):
            # Unknown option: drop its value too, unless the value is
            # itself an option or the URL.
            nxt = tokens[i + 1] if i + 1 < len(tokens) else None
            if nxt is not None and not nxt.startswith("-") and not _is_url(nxt):
                i += 2
            else:
                i += 1
        else:
            i += 1

    if not url:
        return ParseFailure(ParseError.MISSING_URL)

    return RequestDescriptor(
        url=url,
        method=state["method"],
        headers=state["headers"],
        query_params=query_params,
        body=state["body"],
        body_type=state["body_type"],
    )


def generate_curl(descriptor: RequestDescriptor) -> str:
    """Render a descriptor as a curl command line that parse_curl accepts.

    GET is never written out, so an explicit GET and the default are
    indistinguishable after a round trip.
    """
    parts = [COMMAND]

    if descriptor.method is not HttpMethod.GET:
        parts.append(f"-X {descriptor.method.value}")

    for key, value in descriptor.headers.items():
        parts.append(f'-H "{key}: {value}"')

    body = descriptor.body
    if body and body.strip():
        escaped = body.replace("'", "\\'")
        parts.append(f"-d '{escaped}'")

    url = descriptor.url
    if descriptor.query_params:
        url = f"{url}?{build_query_string(descriptor.query_params)}"
    parts.append(f'"{url}"')

    return " ".join(parts)
