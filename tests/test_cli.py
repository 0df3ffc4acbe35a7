"""CLI integration tests for curl import, saved requests and environments."""

from unittest.mock import patch

import pytest

from reqpad.cli import main
from reqpad.models import BodyType, HttpMethod
from reqpad.store import Store
from tests.conftest import make_response_record


@pytest.fixture
def store_file(tmp_project):
    return tmp_project / "store.json"


def _invoke(runner, store_file, args):
    return runner.invoke(main, ["--store", str(store_file), *args])


# ── Curl import ──────────────────────────────────────────────────────────


class TestImportCurl:
    @patch("reqpad.executor.execute_request")
    def test_runs_parsed_request(self, mock_exec, runner, store_file):
        mock_exec.return_value = make_response_record(status_code=201, status_text="Created")
        result = _invoke(
            runner,
            store_file,
            ["--import-curl", "curl -H 'Content-Type: application/json' -d '{\"a\":1}' https://x.test/items?x=1"],
        )
        assert result.exit_code == 0
        assert "STATUS: 201 Created" in result.output
        descriptor = mock_exec.call_args[0][0]
        assert descriptor.method is HttpMethod.POST
        assert descriptor.url == "https://x.test/items"
        assert descriptor.query_params == {"x": "1"}
        assert descriptor.headers == {"Content-Type": "application/json"}
        assert descriptor.body == '{"a":1}'
        assert descriptor.body_type is BodyType.RAW_JSON

    @patch("reqpad.executor.execute_request")
    def test_flags_override_imported(self, mock_exec, runner, store_file):
        mock_exec.return_value = make_response_record()
        _invoke(
            runner,
            store_file,
            ["--import-curl", "curl -H 'A: 1' https://x.test", "-H", "A: 2", "-q", "page=3"],
        )
        descriptor = mock_exec.call_args[0][0]
        assert descriptor.headers == {"A": "2"}
        assert descriptor.query_params == {"page": "3"}

    @patch("reqpad.executor.execute_request")
    def test_not_curl(self, mock_exec, runner, store_file):
        result = _invoke(runner, store_file, ["--import-curl", "wget https://x.test"])
        assert result.exit_code == 1
        assert "Invalid curl command: not a curl command" in result.output
        mock_exec.assert_not_called()

    def test_missing_url(self, runner, store_file):
        result = _invoke(runner, store_file, ["--import-curl", "curl -X POST"])
        assert result.exit_code == 1
        assert "Invalid curl command" in result.output
        assert "URL" in result.output

    def test_import_then_export(self, runner, store_file):
        result = _invoke(
            runner,
            store_file,
            ["--import-curl", "curl --request PUT --header 'X-A: 1' 'https://x.test/a?b=2'", "--to-curl"],
        )
        assert result.exit_code == 0
        assert result.output.strip() == 'curl -X PUT -H "X-A: 1" "https://x.test/a?b=2"'


# ── Saved requests and collections ───────────────────────────────────────


class TestSavedRequests:
    def test_save_into_new_collection(self, runner, store_file):
        result = _invoke(
            runner,
            store_file,
            ["GET", "https://x.test/users", "--save", "list-users", "--collection", "users", "--to-curl"],
        )
        assert result.exit_code == 0
        assert "Created collection 'users'" in result.output
        assert "Saved request 'list-users'" in result.output

        store = Store(store_file)
        collection = store.find_collection("users")
        saved = store.find_request("list-users")
        assert saved.collection_id == collection.id
        assert saved.url == "https://x.test/users"

    def test_resave_keeps_id(self, runner, store_file):
        _invoke(runner, store_file, ["GET", "https://x.test/a", "--save", "thing", "--to-curl"])
        first = Store(store_file).find_request("thing")
        _invoke(runner, store_file, ["GET", "https://x.test/b", "--save", "thing", "--to-curl"])
        store = Store(store_file)
        assert len(store.list_requests()) == 1
        assert store.find_request("thing").id == first.id
        assert store.find_request("thing").url == "https://x.test/b"

    @patch("reqpad.executor.execute_request")
    def test_run_saved(self, mock_exec, runner, store_file):
        _invoke(runner, store_file, ["DELETE", "https://x.test/users/1", "--save", "rm", "--to-curl"])
        mock_exec.return_value = make_response_record(status_code=204, status_text="No Content")

        result = _invoke(runner, store_file, ["--run", "rm"])

        assert result.exit_code == 0
        descriptor = mock_exec.call_args[0][0]
        assert descriptor.method is HttpMethod.DELETE
        assert descriptor.name == "rm"

    def test_run_unknown(self, runner, store_file):
        result = _invoke(runner, store_file, ["--run", "ghost"])
        assert result.exit_code == 1
        assert "No saved request named 'ghost'" in result.output

    def test_list_requests(self, runner, store_file):
        assert "No saved requests." in _invoke(runner, store_file, ["--list-requests"]).output
        _invoke(runner, store_file, ["POST", "https://x.test/u", "--save", "create", "--collection", "users", "--to-curl"])
        listing = _invoke(runner, store_file, ["--list-requests"]).output
        assert "create" in listing
        assert "POST" in listing
        assert "[users]" in listing

    def test_list_and_delete_collections(self, runner, store_file):
        assert "No collections." in _invoke(runner, store_file, ["--list-collections"]).output
        _invoke(runner, store_file, ["GET", "https://x.test/1", "--save", "one", "--collection", "c", "--to-curl"])
        _invoke(runner, store_file, ["GET", "https://x.test/2", "--save", "two", "--collection", "c", "--to-curl"])

        assert "c  (2 requests)" in _invoke(runner, store_file, ["--list-collections"]).output

        result = _invoke(runner, store_file, ["--delete-collection", "c"])
        assert "Deleted collection 'c'" in result.output
        assert Store(store_file).list_requests() == []

    def test_delete_unknown_collection(self, runner, store_file):
        result = _invoke(runner, store_file, ["--delete-collection", "nope"])
        assert result.exit_code == 1

    @patch("reqpad.executor.execute_request")
    def test_history_names_saved_request(self, mock_exec, runner, store_file):
        _invoke(runner, store_file, ["GET", "https://x.test/h", "--save", "h", "--to-curl"])
        saved = Store(store_file).find_request("h")
        mock_exec.return_value = make_response_record(request_id=saved.id)
        _invoke(runner, store_file, ["--run", "h"])

        listing = _invoke(runner, store_file, ["--history"]).output
        assert "GET https://x.test/h" in listing


# ── Environments ─────────────────────────────────────────────────────────


class TestEnvironments:
    def test_create_set_list(self, runner, store_file):
        created = _invoke(runner, store_file, ["--env-create", "dev", "--env-set", "baseUrl=http://localhost"])
        assert "Created environment 'dev'" in created.output

        updated = _invoke(runner, store_file, ["-e", "dev", "--env-set", "userId=7"])
        assert "Updated environment 'dev': userId" in updated.output

        listing = _invoke(runner, store_file, ["--list-envs"]).output
        assert "  dev" in listing
        assert "    baseUrl=http://localhost" in listing
        assert "    userId=7" in listing

    def test_create_duplicate(self, runner, store_file):
        _invoke(runner, store_file, ["--env-create", "dev"])
        result = _invoke(runner, store_file, ["--env-create", "dev"])
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_set_without_target(self, runner, store_file):
        result = _invoke(runner, store_file, ["--env-set", "a=1"])
        assert result.exit_code == 1

    def test_activate_marks_listing(self, runner, store_file):
        _invoke(runner, store_file, ["--env-create", "dev"])
        _invoke(runner, store_file, ["--env-create", "prod"])
        assert "Active environment: prod" in _invoke(runner, store_file, ["--env-activate", "prod"]).output
        listing = _invoke(runner, store_file, ["--list-envs"]).output
        assert "* prod" in listing
        assert "  dev" in listing

    @patch("reqpad.executor.execute_request")
    def test_active_environment_substitutes(self, mock_exec, runner, store_file):
        _invoke(runner, store_file, ["--env-create", "dev", "--env-set", "base=https://dev.test", "--env-set", "id=42"])
        _invoke(runner, store_file, ["--env-activate", "dev"])
        mock_exec.return_value = make_response_record()

        _invoke(runner, store_file, ["GET", "{{base}}/users/{{id}}", "-H", "X-Id: {{id}}", "-q", "v={{missing}}"])

        descriptor = mock_exec.call_args[0][0]
        assert descriptor.url == "https://dev.test/users/42"
        assert descriptor.headers == {"X-Id": "42"}
        assert descriptor.query_params == {"v": "{{missing}}"}

    @patch("reqpad.executor.execute_request")
    def test_named_environment_wins(self, mock_exec, runner, store_file):
        _invoke(runner, store_file, ["--env-create", "dev", "--env-set", "base=https://dev.test"])
        _invoke(runner, store_file, ["--env-create", "prod", "--env-set", "base=https://prod.test"])
        _invoke(runner, store_file, ["--env-activate", "dev"])
        mock_exec.return_value = make_response_record()

        _invoke(runner, store_file, ["GET", "{{base}}/x", "-e", "prod"])

        assert mock_exec.call_args[0][0].url == "https://prod.test/x"

    def test_unknown_environment(self, runner, store_file):
        result = _invoke(runner, store_file, ["GET", "https://x.test", "-e", "nope"])
        assert result.exit_code == 1
        assert "No environment named 'nope'" in result.output

    @patch("reqpad.executor.execute_request")
    def test_saved_request_keeps_placeholders(self, mock_exec, runner, store_file):
        _invoke(runner, store_file, ["--env-create", "dev", "--env-set", "base=https://dev.test"])
        _invoke(runner, store_file, ["--env-activate", "dev"])
        _invoke(runner, store_file, ["GET", "{{base}}/me", "--save", "me", "--to-curl"])
        assert Store(store_file).find_request("me").url == "{{base}}/me"

        mock_exec.return_value = make_response_record()
        _invoke(runner, store_file, ["--run", "me"])
        assert mock_exec.call_args[0][0].url == "https://dev.test/me"


# ── Store errors ─────────────────────────────────────────────────────────


class TestStoreErrors:
    def test_malformed_store_reports_error(self, runner, store_file):
        store_file.write_text('{"requests": [{"url": "https://x.test"}]}')
        result = _invoke(runner, store_file, ["--list-requests"])
        assert result.exit_code == 1
        assert "ERROR: Cannot read store" in result.output
