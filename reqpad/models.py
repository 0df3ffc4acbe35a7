"""reqpad models - request descriptors, auth configs, responses, collections, environments."""

import dataclasses
import enum
import json
import time
import uuid
from dataclasses import dataclass, field
from typing import Any


def now_ms() -> int:
    return int(time.time() * 1000)


def new_id() -> str:
    return str(uuid.uuid4())


class HttpMethod(enum.Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"

    @classmethod
    def parse(cls, text: str | None) -> "HttpMethod":
        """Map method text case-insensitively. Unknown text falls back to GET."""
        if not text:
            return cls.GET
        try:
            return cls(text.strip().upper())
        except ValueError:
            return cls.GET


class BodyType(enum.Enum):
    NONE = "none"
    RAW_JSON = "raw_json"
    FORM_DATA = "form_data"
    URL_ENCODED = "url_encoded"


CONTENT_TYPES = {
    BodyType.RAW_JSON: "application/json",
    BodyType.FORM_DATA: "multipart/form-data",
    BodyType.URL_ENCODED: "application/x-www-form-urlencoded",
}


def build_query_string(query_params: dict[str, str]) -> str:
    return "&".join(f"{k}={v}" for k, v in query_params.items())


@dataclass(frozen=True)
class RequestDescriptor:
    """Structured HTTP request.

    Instances are never mutated; use replace() to derive a changed copy.
    The dict fields are copied on construction, so a descriptor never
    shares a mapping with its caller.
    """

    url: str
    method: HttpMethod = HttpMethod.GET
    headers: dict[str, str] = field(default_factory=dict)
    query_params: dict[str, str] = field(default_factory=dict)
    body: str | None = None
    body_type: BodyType = BodyType.NONE
    id: str = field(default_factory=new_id)
    name: str = ""
    collection_id: str | None = None
    created_at: int = field(default_factory=now_ms)
    updated_at: int = field(default_factory=now_ms)

    def __post_init__(self):
        object.__setattr__(self, "headers", dict(self.headers))
        object.__setattr__(self, "query_params", dict(self.query_params))

    def replace(self, **changes: Any) -> "RequestDescriptor":
        return dataclasses.replace(self, **changes)

    def full_url(self) -> str:
        """Base URL with the query string reassembled, if any."""
        if self.query_params:
            return f"{self.url}?{build_query_string(self.query_params)}"
        return self.url

    def same_request(self, other: "RequestDescriptor") -> bool:
        """Compare only the wire-relevant fields, ignoring identity and timestamps."""
        return (
            self.method == other.method
            and self.url == other.url
            and self.headers == other.headers
            and self.query_params == other.query_params
            and self.body == other.body
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "method": self.method.value,
            "url": self.url,
            "headers": dict(self.headers),
            "query_params": dict(self.query_params),
            "body": self.body,
            "body_type": self.body_type.value,
            "collection_id": self.collection_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RequestDescriptor":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            method=HttpMethod.parse(data.get("method")),
            url=data["url"],
            headers=data.get("headers") or {},
            query_params=data.get("query_params") or {},
            body=data.get("body"),
            body_type=BodyType(data.get("body_type", BodyType.NONE.value)),
            collection_id=data.get("collection_id"),
            created_at=data.get("created_at", 0),
            updated_at=data.get("updated_at", 0),
        )


# ── Auth ─────────────────────────────────────────────────────────────────


class ApiKeyLocation(enum.Enum):
    HEADER = "header"
    QUERY_PARAM = "query"


@dataclass(frozen=True)
class NoAuth:
    pass


@dataclass(frozen=True)
class BasicAuth:
    username: str
    password: str


@dataclass(frozen=True)
class BearerToken:
    token: str


@dataclass(frozen=True)
class ApiKey:
    key: str
    value: str
    location: ApiKeyLocation = ApiKeyLocation.HEADER


AuthConfig = NoAuth | BasicAuth | BearerToken | ApiKey


# ── Responses ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ResponseRecord:
    """Outcome of one executed request, as kept in history."""

    status_code: int
    status_text: str
    headers: dict[str, str] = field(default_factory=dict)
    body: str | None = None
    elapsed_ms: float = 0
    size: int = 0
    id: str = field(default_factory=new_id)
    request_id: str | None = None
    timestamp: int = field(default_factory=now_ms)
    is_error: bool = False
    error_message: str | None = None

    def json_body(self) -> Any:
        """Parsed JSON body, or None when the body is empty or not JSON."""
        if not self.body:
            return None
        try:
            return json.loads(self.body)
        except ValueError:
            return None

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ResponseRecord":
        return cls(**data)


@dataclass(frozen=True)
class ExecutionError:
    message: str


# ── Collections & environments ───────────────────────────────────────────


@dataclass(frozen=True)
class Collection:
    name: str
    description: str | None = None
    id: str = field(default_factory=new_id)
    created_at: int = field(default_factory=now_ms)
    updated_at: int = field(default_factory=now_ms)

    def replace(self, **changes: Any) -> "Collection":
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Collection":
        return cls(**data)


@dataclass(frozen=True)
class Environment:
    name: str
    variables: dict[str, str] = field(default_factory=dict)
    is_active: bool = False
    id: str = field(default_factory=new_id)
    created_at: int = field(default_factory=now_ms)
    updated_at: int = field(default_factory=now_ms)

    def __post_init__(self):
        object.__setattr__(self, "variables", dict(self.variables))

    def replace(self, **changes: Any) -> "Environment":
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Environment":
        return cls(**data)
