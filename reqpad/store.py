"""reqpad store - JSON-file persistence for requests, responses, collections, environments."""

import json
import logging
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

from reqpad.models import (
    Collection,
    Environment,
    RequestDescriptor,
    ResponseRecord,
    new_id,
    now_ms,
)

logger = logging.getLogger(__name__)

KINDS = {
    "requests": RequestDescriptor,
    "responses": ResponseRecord,
    "collections": Collection,
    "environments": Environment,
}


class StoreError(KeyError):
    """Unknown id, unknown kind or unreadable store file."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


# Newest first, per kind.
_SORT_KEYS: dict[str, Callable[[Any], Any]] = {
    "requests": lambda r: r.updated_at,
    "responses": lambda r: r.timestamp,
    "collections": lambda c: c.updated_at,
    "environments": lambda e: e.updated_at,
}


class Store:
    """Keyed storage with change subscriptions.

    With path=None everything stays in memory. Otherwise the whole store
    is rewritten to path after each mutation.
    """

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path is not None else None
        self._lock = threading.RLock()
        self._data: dict[str, dict[str, Any]] = {kind: {} for kind in KINDS}
        self._subscribers: dict[str, list[tuple[Callable, Callable | None]]] = {
            kind: [] for kind in KINDS
        }
        if self.path is not None and self.path.exists():
            self._load()

    # ── File I/O ─────────────────────────────────────────────────────────

    def _load(self) -> None:
        try:
            raw = json.loads(self.path.read_text())
        except (OSError, ValueError) as e:
            raise StoreError(f"Cannot read store {self.path}: {e}") from e
        try:
            for kind, model in KINDS.items():
                for item in raw.get(kind, []):
                    obj = model.from_dict(item)
                    self._data[kind][obj.id] = obj
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise StoreError(f"Cannot read store {self.path}: {e}") from e
        logger.debug("Loaded store from %s", self.path)

    def _flush(self) -> None:
        if self.path is None:
            return
        payload = {
            kind: [obj.to_dict() for obj in items.values()]
            for kind, items in self._data.items()
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(payload, indent=2))
        tmp.replace(self.path)
        logger.debug("Wrote store to %s", self.path)

    # ── Generic helpers ──────────────────────────────────────────────────

    def _list(self, kind: str, where: Callable | None = None) -> list:
        items = [obj for obj in self._data[kind].values() if where is None or where(obj)]
        return sorted(items, key=_SORT_KEYS[kind], reverse=True)

    def _put(self, kind: str, obj: Any) -> None:
        self._data[kind][obj.id] = obj

    def _require(self, kind: str, obj_id: str) -> Any:
        try:
            return self._data[kind][obj_id]
        except KeyError:
            raise StoreError(f"No {kind[:-1]} with id '{obj_id}'") from None

    def _commit(self, *kinds: str) -> None:
        """Persist, then notify subscribers of the changed kinds outside the lock."""
        with self._lock:
            self._flush()
            pending = [
                (callback, self._list(kind, where))
                for kind in kinds
                for callback, where in list(self._subscribers[kind])
            ]
        for callback, items in pending:
            callback(items)

    def subscribe(
        self,
        kind: str,
        callback: Callable[[list], None],
        where: Callable[[Any], bool] | None = None,
    ) -> Callable[[], None]:
        """Call callback with the current list of kind now and after every change.

        Returns a function that cancels the subscription.
        """
        if kind not in KINDS:
            raise StoreError(f"Unknown kind '{kind}'")
        entry = (callback, where)
        with self._lock:
            self._subscribers[kind].append(entry)
            current = self._list(kind, where)
        callback(current)

        def _unsubscribe() -> None:
            with self._lock:
                if entry in self._subscribers[kind]:
                    self._subscribers[kind].remove(entry)

        return _unsubscribe

    # ── Requests ─────────────────────────────────────────────────────────

    def save_request(self, request: RequestDescriptor) -> RequestDescriptor:
        saved = request.replace(updated_at=now_ms())
        with self._lock:
            self._put("requests", saved)
        self._commit("requests")
        return saved

    def get_request(self, request_id: str) -> RequestDescriptor | None:
        with self._lock:
            return self._data["requests"].get(request_id)

    def find_request(self, name: str) -> RequestDescriptor | None:
        with self._lock:
            matches = self._list("requests", lambda r: r.name == name)
        return matches[0] if matches else None

    def list_requests(self) -> list[RequestDescriptor]:
        with self._lock:
            return self._list("requests")

    def requests_in_collection(self, collection_id: str) -> list[RequestDescriptor]:
        with self._lock:
            return self._list("requests", lambda r: r.collection_id == collection_id)

    def search_requests(self, query: str) -> list[RequestDescriptor]:
        q = query.lower()
        with self._lock:
            return self._list(
                "requests",
                lambda r: q in r.name.lower() or q in r.url.lower(),
            )

    def recent_requests(self, limit: int = 10) -> list[RequestDescriptor]:
        return self.list_requests()[:limit]

    def delete_request(self, request_id: str) -> None:
        with self._lock:
            self._require("requests", request_id)
            del self._data["requests"][request_id]
            responses = self._data["responses"]
            for rid in [r.id for r in responses.values() if r.request_id == request_id]:
                del responses[rid]
        self._commit("requests", "responses")

    def duplicate_request(self, request_id: str) -> RequestDescriptor:
        with self._lock:
            original = self._require("requests", request_id)
        stamp = now_ms()
        copy = original.replace(
            id=new_id(),
            name=f"{original.name} (Copy)",
            created_at=stamp,
            updated_at=stamp,
        )
        with self._lock:
            self._put("requests", copy)
        self._commit("requests")
        return copy

    # ── Responses ────────────────────────────────────────────────────────

    def save_response(self, response: ResponseRecord) -> ResponseRecord:
        with self._lock:
            self._put("responses", response)
        self._commit("responses")
        return response

    def get_response(self, response_id: str) -> ResponseRecord | None:
        with self._lock:
            return self._data["responses"].get(response_id)

    def list_responses(self) -> list[ResponseRecord]:
        with self._lock:
            return self._list("responses")

    def responses_for_request(self, request_id: str) -> list[ResponseRecord]:
        with self._lock:
            return self._list("responses", lambda r: r.request_id == request_id)

    def recent_responses(self, limit: int = 10) -> list[ResponseRecord]:
        return self.list_responses()[:limit]

    def delete_response(self, response_id: str) -> None:
        with self._lock:
            self._require("responses", response_id)
            del self._data["responses"][response_id]
        self._commit("responses")

    def delete_responses_before(self, timestamp: int) -> int:
        """Drop responses recorded before timestamp (epoch ms). Returns the count."""
        with self._lock:
            responses = self._data["responses"]
            old = [rid for rid, r in responses.items() if r.timestamp < timestamp]
            for rid in old:
                del responses[rid]
        if old:
            self._commit("responses")
        return len(old)

    # ── Collections ──────────────────────────────────────────────────────

    def create_collection(self, name: str, description: str | None = None) -> Collection:
        collection = Collection(name=name, description=description)
        with self._lock:
            self._put("collections", collection)
        self._commit("collections")
        return collection

    def get_collection(self, collection_id: str) -> Collection | None:
        with self._lock:
            return self._data["collections"].get(collection_id)

    def find_collection(self, name: str) -> Collection | None:
        with self._lock:
            matches = self._list("collections", lambda c: c.name == name)
        return matches[0] if matches else None

    def list_collections(self) -> list[Collection]:
        with self._lock:
            return self._list("collections")

    def search_collections(self, query: str) -> list[Collection]:
        q = query.lower()
        with self._lock:
            return self._list("collections", lambda c: q in c.name.lower())

    def update_collection(self, collection: Collection) -> Collection:
        updated = collection.replace(updated_at=now_ms())
        with self._lock:
            self._require("collections", collection.id)
            self._put("collections", updated)
        self._commit("collections")
        return updated

    def delete_collection(self, collection_id: str) -> None:
        """Delete a collection and every request filed under it."""
        with self._lock:
            self._require("collections", collection_id)
            requests = self._data["requests"]
            doomed = [r.id for r in requests.values() if r.collection_id == collection_id]
            for rid in doomed:
                del requests[rid]
            del self._data["collections"][collection_id]
        self._commit("collections", "requests")

    # ── Environments ─────────────────────────────────────────────────────

    def create_environment(
        self,
        name: str,
        variables: dict[str, str] | None = None,
    ) -> Environment:
        environment = Environment(name=name, variables=variables or {})
        with self._lock:
            self._put("environments", environment)
        self._commit("environments")
        return environment

    def get_environment(self, environment_id: str) -> Environment | None:
        with self._lock:
            return self._data["environments"].get(environment_id)

    def find_environment(self, name: str) -> Environment | None:
        with self._lock:
            matches = self._list("environments", lambda e: e.name == name)
        return matches[0] if matches else None

    def list_environments(self) -> list[Environment]:
        with self._lock:
            return self._list("environments")

    def update_environment(self, environment: Environment) -> Environment:
        """Store new name/variables for an environment.

        The active flag is kept as stored; use set_active_environment to
        change which environment is active.
        """
        with self._lock:
            current = self._require("environments", environment.id)
            updated = environment.replace(is_active=current.is_active, updated_at=now_ms())
            self._put("environments", updated)
        self._commit("environments")
        return updated

    def delete_environment(self, environment_id: str) -> None:
        with self._lock:
            self._require("environments", environment_id)
            del self._data["environments"][environment_id]
        self._commit("environments")

    def active_environment(self) -> Environment | None:
        with self._lock:
            for env in self._data["environments"].values():
                if env.is_active:
                    return env
        return None

    def set_active_environment(self, environment_id: str | None) -> Environment | None:
        """Deactivate every environment, then activate environment_id.

        Both steps happen under one lock acquisition and one write. An
        unknown or None id leaves no environment active.
        """
        with self._lock:
            envs = self._data["environments"]
            for eid, env in list(envs.items()):
                if env.is_active:
                    envs[eid] = env.replace(is_active=False)
            target = envs.get(environment_id) if environment_id else None
            if target is not None:
                target = target.replace(is_active=True)
                envs[target.id] = target
        self._commit("environments")
        return target
