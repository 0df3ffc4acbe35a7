"""reqpad core - config loading, variable substitution, auth."""

import os
import re
from pathlib import Path

import yaml
from dotenv import dotenv_values

from reqpad.models import (
    ApiKey,
    ApiKeyLocation,
    AuthConfig,
    BasicAuth,
    BearerToken,
    NoAuth,
    RequestDescriptor,
)

GLOBAL_DIR = Path.home() / ".reqpad"
GLOBAL_CONFIG = GLOBAL_DIR / "config.yaml"
GLOBAL_STORE = GLOBAL_DIR / "store.json"

CWD_CONFIG_CANDIDATES = [
    ".reqpad.yaml",
    ".reqpad.yml",
    "reqpad.yaml",
    "reqpad.yml",
]

PLACEHOLDER_OPEN = "{{"
PLACEHOLDER_CLOSE = "}}"


def resolve_path(
    candidates: list[Path],
    default: Path | None = None,
) -> Path | None:
    """Return the first existing path from candidates, else default."""
    for p in candidates:
        if p.exists():
            return p.resolve()
    return default


def resolve_config_path(config_file: str | None) -> Path | None:
    """Find the config file to use.

    Resolution order:
      1. Explicit -c flag (hard — no fallthrough if missing)
      2. .reqpad.yaml (variants) in CWD
      3. ~/.reqpad/config.yaml
    """
    if config_file:
        return resolve_path([Path(config_file)])
    return resolve_path([Path(c) for c in CWD_CONFIG_CANDIDATES] + [GLOBAL_CONFIG])


def load_config(config_path: str | Path | None) -> dict:
    """Load YAML config file. Returns an empty defaults section if not found.

    Stores '_config_dir' in the returned dict so a relative store path
    resolves against the config file's directory.
    """
    if config_path is None:
        return {"defaults": {}, "_config_dir": None}
    path = Path(config_path)
    if not path.exists():
        return {"defaults": {}, "_config_dir": None}
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    return {
        "defaults": data.get("defaults") or {},
        "_config_dir": path.resolve().parent,
    }


def load_env(env_file: str | None, base_dir: str | Path = ".") -> dict[str, str]:
    """Load .env file and merge it over os.environ."""
    env = dict(os.environ)
    if env_file:
        dotenv_path = Path(base_dir) / env_file
        if dotenv_path.exists():
            dotenv_vars = dotenv_values(str(dotenv_path))
            env.update({k: v for k, v in dotenv_vars.items() if v is not None})
    return env


def resolve_store_path(cli_store: str | None, config: dict) -> Path:
    """Store file: --store flag, then defaults.store (relative to config), then global."""
    if cli_store:
        return Path(cli_store)
    configured = config.get("defaults", {}).get("store")
    if configured:
        p = Path(configured).expanduser()
        config_dir = config.get("_config_dir")
        if not p.is_absolute() and config_dir:
            p = Path(config_dir) / p
        return p
    return GLOBAL_STORE


def resolve_value(value: str | None, env: dict[str, str]) -> str | None:
    """Resolve $VAR and ${VAR} references in a config value.

    Unknown names are left as written.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        return value

    def _replace(m: re.Match) -> str:
        var_name = m.group(1) or m.group(2)
        return env.get(var_name, os.environ.get(var_name, m.group(0)))

    return re.sub(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)", _replace, value)


# ── Variable substitution ────────────────────────────────────────────────


def substitute(text: str | None, variables: dict[str, str]) -> str | None:
    """Replace each {{name}} with its value from variables.

    Plain substring replacement, one pass per variable. Placeholders with
    no mapping stay in the text, braces included.
    """
    if text is None:
        return None
    for name, value in variables.items():
        text = text.replace(f"{PLACEHOLDER_OPEN}{name}{PLACEHOLDER_CLOSE}", str(value))
    return text


def substitute_in_map(mapping: dict[str, str], variables: dict[str, str]) -> dict[str, str]:
    return {k: substitute(v, variables) for k, v in mapping.items()}


def apply_environment(
    descriptor: RequestDescriptor,
    variables: dict[str, str],
) -> RequestDescriptor:
    """Return a copy with url, header values, query values and body substituted."""
    if not variables:
        return descriptor
    return descriptor.replace(
        url=substitute(descriptor.url, variables),
        headers=substitute_in_map(descriptor.headers, variables),
        query_params=substitute_in_map(descriptor.query_params, variables),
        body=substitute(descriptor.body, variables),
    )


def merge_defaults(descriptor: RequestDescriptor, defaults: dict, env: dict[str, str]) -> RequestDescriptor:
    """Lay config default headers under the descriptor's own headers."""
    default_headers = defaults.get("headers") or {}
    if not default_headers:
        return descriptor
    headers = {k: resolve_value(str(v), env) for k, v in default_headers.items()}
    headers.update(descriptor.headers)
    return descriptor.replace(headers=headers)


# ── Auth ─────────────────────────────────────────────────────────────────


def auth_from_config(
    auth_config: dict | None,
    env: dict[str, str],
) -> AuthConfig:
    """Build an AuthConfig from a config mapping.

    Supports:
    - bearer:  {type: bearer, token: ...}
    - basic:   {type: basic, username: ..., password: ...}
    - api-key: {type: api-key, header: X-API-Key, token: ..., in: header|query}
    """
    if not auth_config:
        return NoAuth()

    auth_type = str(auth_config.get("type", "")).lower()

    if auth_type == "bearer":
        token = resolve_value(auth_config.get("token", ""), env) or ""
        return BearerToken(token)

    if auth_type == "basic":
        username = resolve_value(auth_config.get("username", ""), env) or ""
        password = resolve_value(auth_config.get("password", ""), env) or ""
        return BasicAuth(username, password)

    if auth_type == "api-key":
        token = resolve_value(auth_config.get("token", ""), env) or ""
        key = auth_config.get("header") or auth_config.get("key") or "X-API-Key"
        location = ApiKeyLocation.QUERY_PARAM if auth_config.get("in") == "query" else ApiKeyLocation.HEADER
        return ApiKey(key, token, location)

    return NoAuth()
