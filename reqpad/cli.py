"""reqpad CLI - compose, run and organize HTTP requests."""

import logging
import sys
from datetime import datetime

import click

logger = logging.getLogger(__name__)

TOOL_HELP = """\
reqpad — HTTP request pad with curl import/export.

Compose requests, run them, keep them in collections and fill in
{{variables}} from named environments.

\b
MODES
─────
  Direct:      reqpad METHOD URL [options]
  Curl import: reqpad --import-curl "curl ..."
  Saved:       reqpad --run NAME

\b
DIRECT MODE
───────────
  reqpad GET https://api.example.com/users -q page=2
  reqpad POST https://api.example.com/users -b '{"name":"test"}'
  reqpad DELETE {{baseUrl}}/users/{{userId}} -e staging

\b
CURL
────
  reqpad --import-curl "curl -X POST https://x.test -d '{\\"a\\":1}'"
  reqpad GET https://x.test/p -H "Accept: text/plain" --to-curl

  Recognized curl options: -X/--request, -H/--header,
  -d/--data/--data-raw/--data-urlencode and the first http(s) URL.
  Other options are ignored.

\b
COLLECTIONS
───────────
  reqpad GET {{baseUrl}}/users --save list-users --collection users
  reqpad --run list-users
  reqpad --list-requests
  reqpad --list-collections
  reqpad --delete-collection users

\b
ENVIRONMENTS
────────────
  Placeholders are written {{name}}. Unknown names are left as-is.
  reqpad --env-create staging --env-set baseUrl=https://staging.test
  reqpad -e staging --env-set userId=42
  reqpad --env-activate staging
  reqpad --list-envs

\b
AUTH
────
  --auth basic --user U --password P
  --auth bearer --token T
  --auth api-key --api-key X-API-Key=secret [--api-key-in query]

  Or in .reqpad.yaml:
  \b
  defaults:
    auth: {type: bearer, token: ${API_TOKEN}}

\b
HISTORY
───────
  reqpad --history          Show recent responses
  reqpad --show ID          Show a recorded response (id prefix ok)
"""


@click.command(
    cls=click.Command,
    help=TOOL_HELP,
    context_settings={"max_content_width": 88},
)
@click.argument("method", required=False)
@click.argument("url", required=False)
@click.option(
    "-c",
    "--config",
    "config_file",
    default=None,
    help="Config file path. Default: .reqpad.yaml in CWD, then ~/.reqpad/config.yaml.",
)
@click.option(
    "--store",
    "store_path",
    default=None,
    help="Store file. Default: defaults.store from config, then ~/.reqpad/store.json.",
)
@click.option("-b", "--body", default=None, help="Request body.")
@click.option(
    "-H",
    "--header",
    multiple=True,
    help="HTTP header as 'Name: Value'. Repeatable.",
)
@click.option(
    "-q",
    "--query",
    multiple=True,
    help="Query parameter as name=value. Repeatable.",
)
@click.option(
    "--import-curl",
    "import_curl",
    default=None,
    help="Parse a curl command string and run it.",
)
@click.option(
    "--to-curl",
    is_flag=True,
    default=False,
    help="Print the request as a curl command instead of running it.",
)
@click.option(
    "-e",
    "--env",
    "env_name",
    default=None,
    help="Environment whose variables fill {{placeholders}}. Default: the active one.",
)
@click.option(
    "--auth",
    "auth_type",
    type=click.Choice(["none", "basic", "bearer", "api-key"]),
    default=None,
    help="Authentication type. Overrides config auth.",
)
@click.option("--user", default=None, help="Username for basic auth.")
@click.option("--password", default=None, help="Password for basic auth.")
@click.option("--token", default=None, help="Token for bearer auth.")
@click.option("--api-key", "api_key", default=None, help="API key as NAME=VALUE.")
@click.option(
    "--api-key-in",
    "api_key_in",
    type=click.Choice(["header", "query"]),
    default="header",
    help="Send the API key as a header or a query parameter.",
)
@click.option("--save", "save_name", default=None, metavar="NAME", help="Save the request under NAME.")
@click.option(
    "--collection",
    "collection_name",
    default=None,
    metavar="NAME",
    help="Collection for --save. Created when missing.",
)
@click.option("--run", "run_name", default=None, metavar="NAME", help="Run a saved request.")
@click.option("--list-requests", is_flag=True, default=False, help="List saved requests.")
@click.option("--list-collections", is_flag=True, default=False, help="List collections.")
@click.option(
    "--delete-collection",
    "delete_collection_name",
    default=None,
    metavar="NAME",
    help="Delete a collection and its requests.",
)
@click.option("--env-create", "env_create", default=None, metavar="NAME", help="Create an environment.")
@click.option(
    "--env-set",
    "env_set",
    multiple=True,
    metavar="KEY=VALUE",
    help="Set a variable on the --env-create or -e environment. Repeatable.",
)
@click.option("--env-activate", "env_activate", default=None, metavar="NAME", help="Make NAME the active environment.")
@click.option("--list-envs", is_flag=True, default=False, help="List environments.")
@click.option("--history", is_flag=True, default=False, help="Show recorded responses.")
@click.option("--limit", type=int, default=20, help="Number of entries for --history.")
@click.option("--show", "show_id", default=None, metavar="ID", help="Show a recorded response.")
@click.option(
    "--timeout",
    type=int,
    default=None,
    help="Request timeout in seconds. Default: 30.",
)
@click.option("--verbose", is_flag=True, default=False, help="Include response headers in output.")
@click.option("--raw", is_flag=True, default=False, help="Output the body only.")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    help="Logging level for diagnostics on stderr.",
)
def main(
    method,
    url,
    config_file,
    store_path,
    body,
    header,
    query,
    import_curl,
    to_curl,
    env_name,
    auth_type,
    user,
    password,
    token,
    api_key,
    api_key_in,
    save_name,
    collection_name,
    run_name,
    list_requests,
    list_collections,
    delete_collection_name,
    env_create,
    env_set,
    env_activate,
    list_envs,
    history,
    limit,
    show_id,
    timeout,
    verbose,
    raw,
    log_level,
):
    """Compose, run and organize HTTP requests."""
    from reqpad.core import (
        auth_from_config,
        load_config,
        load_env,
        resolve_config_path,
        resolve_store_path,
    )
    from reqpad.store import Store, StoreError

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )

    # --- Load config ---
    config_path = resolve_config_path(config_file)
    config = load_config(config_path)
    defaults = config.get("defaults", {})

    env_file = defaults.get("env_file")
    env = load_env(env_file, config.get("_config_dir") or ".")

    try:
        store = Store(resolve_store_path(store_path, config))
    except StoreError as e:
        click.echo(f"ERROR: {e}", err=True)
        sys.exit(1)

    # --- Dispatch ---

    if env_create or env_set:
        _cmd_env_edit(store, env_create, env_name, _parse_pairs(env_set))
        return

    if env_activate:
        _cmd_env_activate(store, env_activate)
        return

    if list_envs:
        _cmd_list_envs(store)
        return

    if list_collections:
        _cmd_list_collections(store)
        return

    if delete_collection_name:
        _cmd_delete_collection(store, delete_collection_name)
        return

    if list_requests:
        _cmd_list_requests(store)
        return

    if history:
        _cmd_history(store, limit)
        return

    if show_id:
        _cmd_show(store, show_id, verbose, raw)
        return

    descriptor = None
    if run_name:
        descriptor = store.find_request(run_name)
        if descriptor is None:
            click.echo(f"ERROR: No saved request named '{run_name}'.", err=True)
            sys.exit(1)
        descriptor = _apply_overrides(descriptor, header, body, query)
    elif import_curl:
        descriptor = _apply_overrides(_descriptor_from_curl(import_curl), header, body, query)
    elif method and url:
        descriptor = _apply_overrides(_descriptor_from_args(method, url, body, query), header)

    if descriptor is None:
        # Nothing matched — show help
        ctx = click.get_current_context()
        click.echo(ctx.get_help())
        ctx.exit(1)

    if save_name:
        descriptor = _cmd_save(store, descriptor, save_name, collection_name)

    if to_curl:
        from reqpad.curl import generate_curl

        click.echo(generate_curl(descriptor))
        return

    if auth_type:
        auth = _auth_from_options(auth_type, user, password, token, api_key, api_key_in)
    else:
        auth = auth_from_config(defaults.get("auth"), env)

    _cmd_send(
        store,
        descriptor,
        auth,
        env_name,
        defaults,
        env,
        _resolve_timeout(timeout, defaults.get("timeout")),
        verbose,
        raw,
    )


# ── Subcommand implementations ──────────────────────────────────────────


def _descriptor_from_curl(curl_str):
    from reqpad.curl import ParseFailure, parse_curl

    parsed = parse_curl(curl_str)
    if isinstance(parsed, ParseFailure):
        click.echo(f"Invalid curl command: {parsed}", err=True)
        sys.exit(1)
    return parsed


def _descriptor_from_args(method, url, body, query):
    from reqpad.curl import split_url
    from reqpad.models import BodyType, HttpMethod, RequestDescriptor

    name = method.upper()
    if name not in HttpMethod.__members__:
        click.echo(f"ERROR: Unsupported method '{method}'.", err=True)
        sys.exit(1)

    base, params = split_url(url)
    params.update(_parse_pairs(query))
    return RequestDescriptor(
        url=base,
        method=HttpMethod[name],
        query_params=params,
        body=body,
        body_type=BodyType.RAW_JSON if body else BodyType.NONE,
    )


def _apply_overrides(descriptor, header, body=None, query=()):
    """Layer -H/-b/-q flags over an imported or saved request."""
    from reqpad.models import BodyType

    changes = {}
    if header:
        changes["headers"] = {**descriptor.headers, **_parse_headers(header)}
    if body:
        changes["body"] = body
        changes["body_type"] = BodyType.RAW_JSON
    if query:
        changes["query_params"] = {**descriptor.query_params, **_parse_pairs(query)}
    return descriptor.replace(**changes) if changes else descriptor


def _cmd_save(store, descriptor, name, collection_name):
    collection_id = descriptor.collection_id
    if collection_name:
        collection = store.find_collection(collection_name)
        if collection is None:
            collection = store.create_collection(collection_name)
            click.echo(f"Created collection '{collection_name}'", err=True)
        collection_id = collection.id

    existing = store.find_request(name)
    changes = {"name": name, "collection_id": collection_id}
    if existing is not None:
        changes["id"] = existing.id
        changes["created_at"] = existing.created_at
    saved = store.save_request(descriptor.replace(**changes))
    click.echo(f"Saved request '{name}'", err=True)
    return saved


def _cmd_send(store, descriptor, auth, env_name, defaults, env, timeout, verbose, raw):
    from reqpad.core import apply_environment, merge_defaults
    from reqpad.executor import RequestRunner
    from reqpad.output import format_output

    variables = _environment_variables(store, env_name)
    descriptor = merge_defaults(descriptor, defaults, env)
    descriptor = apply_environment(descriptor, variables)

    if "{{" in descriptor.full_url():
        logger.warning("Unresolved placeholder in URL: %s", descriptor.full_url())

    record = RequestRunner(store, timeout=timeout).run(descriptor, auth)
    if record.is_error:
        click.echo(f"ERROR: {record.error_message}", err=True)
        sys.exit(1)
    click.echo(format_output(record, verbose=verbose, raw=raw))


def _environment_variables(store, env_name):
    if env_name:
        environment = store.find_environment(env_name)
        if environment is None:
            click.echo(f"ERROR: No environment named '{env_name}'.", err=True)
            sys.exit(1)
        return environment.variables
    active = store.active_environment()
    return active.variables if active else {}


def _cmd_env_edit(store, create_name, env_name, variables):
    if create_name:
        if store.find_environment(create_name) is not None:
            click.echo(f"ERROR: Environment '{create_name}' already exists.", err=True)
            sys.exit(1)
        store.create_environment(create_name, variables)
        click.echo(f"Created environment '{create_name}'")
        return

    if not env_name:
        click.echo("ERROR: --env-set needs --env-create NAME or -e NAME.", err=True)
        sys.exit(1)
    environment = store.find_environment(env_name)
    if environment is None:
        click.echo(f"ERROR: No environment named '{env_name}'.", err=True)
        sys.exit(1)
    store.update_environment(
        environment.replace(variables={**environment.variables, **variables}),
    )
    click.echo(f"Updated environment '{env_name}': {', '.join(variables)}")


def _cmd_env_activate(store, name):
    environment = store.find_environment(name)
    if environment is None:
        click.echo(f"ERROR: No environment named '{name}'.", err=True)
        sys.exit(1)
    store.set_active_environment(environment.id)
    click.echo(f"Active environment: {name}")


def _cmd_list_envs(store):
    environments = store.list_environments()
    if not environments:
        click.echo("No environments.")
        return
    for environment in environments:
        marker = "*" if environment.is_active else " "
        click.echo(f"{marker} {environment.name}")
        for key, value in environment.variables.items():
            click.echo(f"    {key}={value}")


def _cmd_list_collections(store):
    collections = store.list_collections()
    if not collections:
        click.echo("No collections.")
        return
    for collection in collections:
        count = len(store.requests_in_collection(collection.id))
        label = f"  {collection.name} — {collection.description}" if collection.description else f"  {collection.name}"
        click.echo(f"{label}  ({count} requests)")


def _cmd_delete_collection(store, name):
    collection = store.find_collection(name)
    if collection is None:
        click.echo(f"ERROR: No collection named '{name}'.", err=True)
        sys.exit(1)
    store.delete_collection(collection.id)
    click.echo(f"Deleted collection '{name}'")


def _cmd_list_requests(store):
    requests = store.list_requests()
    if not requests:
        click.echo("No saved requests.")
        return
    for req in requests:
        collection = store.get_collection(req.collection_id) if req.collection_id else None
        suffix = f"  [{collection.name}]" if collection else ""
        click.echo(f"  {req.name:<20} {req.method.value:<7} {req.full_url()}{suffix}")


def _cmd_history(store, limit):
    records = store.recent_responses(limit)
    if not records:
        click.echo("No request history.")
        return
    click.echo("Request history:\n")
    for record in records:
        ts = datetime.fromtimestamp(record.timestamp / 1000).isoformat(timespec="seconds")
        req = store.get_request(record.request_id) if record.request_id else None
        label = f"{req.method.value} {req.full_url()}" if req else "(unsaved request)"
        status = "ERR" if record.is_error else str(record.status_code)
        click.echo(f"  [{record.id[:8]}] {status:<4} {label}  ({int(record.elapsed_ms)}ms, {ts})")


def _cmd_show(store, response_id, verbose, raw):
    from reqpad.output import format_output

    matches = [r for r in store.list_responses() if r.id.startswith(response_id)]
    if len(matches) != 1:
        problem = "No response" if not matches else "Ambiguous response id"
        click.echo(f"ERROR: {problem} '{response_id}'.", err=True)
        sys.exit(1)
    click.echo(format_output(matches[0], verbose=verbose, raw=raw))


# ── Helpers ──────────────────────────────────────────────────────────────


def _parse_headers(header_tuples):
    """Parse -H 'Name: Value' tuples into a dict."""
    headers = {}
    for h in header_tuples:
        if ":" in h:
            k, v = h.split(":", 1)
            headers[k.strip()] = v.strip()
    return headers


def _parse_pairs(pairs):
    """Parse key=value strings into a dict, skipping malformed ones."""
    result = {}
    for pair in pairs:
        if "=" in pair:
            k, v = pair.split("=", 1)
            result[k.strip()] = v.strip()
    return result


def _auth_from_options(auth_type, user, password, token, api_key, api_key_in):
    from reqpad.models import ApiKey, ApiKeyLocation, BasicAuth, BearerToken, NoAuth

    if auth_type == "basic":
        return BasicAuth(user or "", password or "")
    if auth_type == "bearer":
        return BearerToken(token or "")
    if auth_type == "api-key":
        if not api_key or "=" not in api_key:
            click.echo("ERROR: --auth api-key needs --api-key NAME=VALUE.", err=True)
            sys.exit(1)
        key, value = api_key.split("=", 1)
        location = ApiKeyLocation.QUERY_PARAM if api_key_in == "query" else ApiKeyLocation.HEADER
        return ApiKey(key.strip(), value.strip(), location)
    return NoAuth()


def _resolve_timeout(*sources, default=30):
    """Return the first truthy timeout from sources, or default."""
    for t in sources:
        if t:
            return t
    return default
