"""
test_github_client.py — Tests para GitHubClient.

Verifica:
- Headers de autenticación y versión de API
- 404 en búsquedas → None; 404 en operaciones → NotFoundError
- Otros errores HTTP y de red → RemoteOperationError
- Payloads de refs, merges, contenido y PRs
"""

from __future__ import annotations

import base64
from unittest.mock import MagicMock

import pytest
import requests

from builder_contrib.publishing.github_client import GitHubClient
from builder_contrib.publishing.hosting import (
    BranchRef,
    FileWrite,
    NotFoundError,
    RemoteOperationError,
    Repository,
)

API = "https://api.github.com"
UPSTREAM = Repository(owner="airbytehq", name="airbyte")
FORK = Repository(owner="octocat", name="airbyte")
BRANCH = "octocat/builder-contribute/source-test"


def _resp(status: int, data=None, headers: dict | None = None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = data
    resp.headers = headers or {}
    resp.text = str(data)
    resp.content = b"{}" if data is not None else b""
    return resp


@pytest.fixture
def session():
    session = MagicMock()
    session.headers = {}
    return session


@pytest.fixture
def client(session):
    return GitHubClient(token="ghp_test", session=session)


# ================================================================
# Setup y errores generales
# ================================================================

class TestSetup:
    def test_headers(self, client, session):
        assert session.headers["Authorization"] == "Bearer ghp_test"
        assert session.headers["Accept"] == "application/vnd.github+json"
        assert "X-GitHub-Api-Version" in session.headers

    def test_missing_token(self, session):
        with pytest.raises(ValueError, match="GITHUB_TOKEN"):
            GitHubClient(token="", session=session)

    def test_authenticated_user(self, client, session):
        session.request.return_value = _resp(200, {"login": "octocat"})
        assert client.get_authenticated_user() == "octocat"
        session.request.assert_called_once_with("GET", f"{API}/user", timeout=30)

    def test_custom_api_url_and_timeout(self, session):
        client = GitHubClient(
            token="t", api_url="https://ghe.example.com/api/v3/", timeout=5, session=session
        )
        session.request.return_value = _resp(200, {"login": "octocat"})
        client.get_authenticated_user()
        session.request.assert_called_once_with(
            "GET", "https://ghe.example.com/api/v3/user", timeout=5
        )

    def test_connection_error(self, client, session):
        session.request.side_effect = requests.ConnectionError("boom")
        with pytest.raises(RemoteOperationError, match="red"):
            client.get_authenticated_user()

    def test_timeout(self, client, session):
        session.request.side_effect = requests.Timeout()
        with pytest.raises(RemoteOperationError, match="Timeout"):
            client.get_authenticated_user()

    def test_rate_limit(self, client, session):
        session.request.return_value = _resp(
            403, {"message": "rate limited"},
            headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1700000000"},
        )
        with pytest.raises(RemoteOperationError, match="Rate limit") as exc:
            client.get_authenticated_user()
        assert exc.value.status_code == 403

    def test_server_error(self, client, session):
        session.request.return_value = _resp(502, {"message": "bad gateway"})
        with pytest.raises(RemoteOperationError) as exc:
            client.get_repository("airbytehq/airbyte")
        assert exc.value.status_code == 502
        assert not isinstance(exc.value, NotFoundError)


# ================================================================
# Repos y forks
# ================================================================

class TestRepositories:
    def test_get_repository(self, client, session):
        session.request.return_value = _resp(
            200, {"owner": {"login": "airbytehq"}, "name": "airbyte", "default_branch": "master"}
        )
        repo = client.get_repository("airbytehq/airbyte")
        assert repo == Repository(owner="airbytehq", name="airbyte", default_branch="master")

    def test_missing_repository(self, client, session):
        session.request.return_value = _resp(404, {"message": "Not Found"})
        with pytest.raises(NotFoundError):
            client.get_repository("nobody/nothing")

    def test_create_fork(self, client, session):
        session.request.return_value = _resp(
            202, {"owner": {"login": "octocat"}, "name": "airbyte", "default_branch": "master"}
        )
        fork = client.create_fork(UPSTREAM)
        assert fork.full_name == "octocat/airbyte"
        assert session.request.call_args[0] == ("POST", f"{API}/repos/airbytehq/airbyte/forks")


# ================================================================
# Refs
# ================================================================

class TestRefs:
    def test_find_ref(self, client, session):
        session.request.return_value = _resp(
            200, {"ref": f"refs/heads/{BRANCH}", "object": {"sha": "abc123"}}
        )
        assert client.find_ref(FORK, BRANCH) == BranchRef(name=BRANCH, sha="abc123")
        url = session.request.call_args[0][1]
        assert url == f"{API}/repos/octocat/airbyte/git/ref/heads/{BRANCH}"

    def test_find_ref_missing(self, client, session):
        session.request.return_value = _resp(404, {"message": "Not Found"})
        assert client.find_ref(FORK, BRANCH) is None

    def test_find_ref_prefix_matches_are_not_the_ref(self, client, session):
        session.request.return_value = _resp(200, [{"ref": "refs/heads/a/b"}])
        assert client.find_ref(FORK, "a") is None

    def test_find_ref_server_error(self, client, session):
        session.request.return_value = _resp(500, {"message": "oops"})
        with pytest.raises(RemoteOperationError):
            client.find_ref(FORK, BRANCH)

    def test_create_ref(self, client, session):
        session.request.return_value = _resp(201, {"object": {"sha": "abc123"}})
        ref = client.create_ref(FORK, BRANCH, "abc123")
        assert ref.sha == "abc123"
        assert session.request.call_args.kwargs["json"] == {
            "ref": f"refs/heads/{BRANCH}",
            "sha": "abc123",
        }

    def test_create_existing_ref_fails(self, client, session):
        session.request.return_value = _resp(422, {"message": "Reference already exists"})
        with pytest.raises(RemoteOperationError) as exc:
            client.create_ref(FORK, BRANCH, "abc123")
        assert exc.value.status_code == 422

    def test_delete_ref(self, client, session):
        session.request.return_value = _resp(204)
        assert client.delete_ref(FORK, BRANCH) is None
        method, url = session.request.call_args[0]
        assert method == "DELETE"
        assert url == f"{API}/repos/octocat/airbyte/git/refs/heads/{BRANCH}"

    def test_delete_missing_ref(self, client, session):
        session.request.return_value = _resp(404, {"message": "Not Found"})
        with pytest.raises(NotFoundError):
            client.delete_ref(FORK, BRANCH)

    def test_update_ref(self, client, session):
        session.request.return_value = _resp(200, {"object": {"sha": "def456"}})
        ref = client.update_ref(FORK, "main", "def456")
        assert ref == BranchRef(name="main", sha="def456")
        assert session.request.call_args.kwargs["json"] == {"sha": "def456", "force": False}

    def test_merge_creates_commit(self, client, session):
        session.request.return_value = _resp(201, {"sha": "merge789"})
        sha = client.merge_into_branch(FORK, BRANCH, "def456", "Merge latest changes from main branch")
        assert sha == "merge789"
        assert session.request.call_args.kwargs["json"] == {
            "base": BRANCH,
            "head": "def456",
            "commit_message": "Merge latest changes from main branch",
        }

    def test_merge_nothing_to_do(self, client, session):
        session.request.return_value = _resp(204)
        assert client.merge_into_branch(FORK, BRANCH, "def456", "m") is None

    def test_merge_missing_branch(self, client, session):
        session.request.return_value = _resp(404, {"message": "Base does not exist"})
        with pytest.raises(NotFoundError):
            client.merge_into_branch(FORK, BRANCH, "def456", "m")

    def test_merge_conflict(self, client, session):
        session.request.return_value = _resp(409, {"message": "Merge conflict"})
        with pytest.raises(RemoteOperationError) as exc:
            client.merge_into_branch(FORK, BRANCH, "def456", "m")
        assert exc.value.status_code == 409


# ================================================================
# Contenido
# ================================================================

class TestContents:
    PATH = "airbyte-integrations/connectors/source-test/manifest.yaml"

    def test_find_file_sha(self, client, session):
        session.request.return_value = _resp(200, {"sha": "blob1", "content": ""})
        assert client.find_file_sha(FORK, self.PATH, BRANCH) == "blob1"
        assert session.request.call_args.kwargs["params"] == {"ref": BRANCH}

    def test_find_file_sha_missing(self, client, session):
        session.request.return_value = _resp(404, {"message": "Not Found"})
        assert client.find_file_sha(FORK, self.PATH, BRANCH) is None

    def test_directory_is_not_a_file(self, client, session):
        session.request.return_value = _resp(200, [{"name": "manifest.yaml"}])
        assert client.find_file_sha(FORK, "airbyte-integrations", BRANCH) is None

    def test_read_file(self, client, session):
        encoded = base64.b64encode("data:\n  name: Test\n".encode()).decode()
        session.request.return_value = _resp(200, {"sha": "blob1", "content": encoded})
        assert client.read_file(UPSTREAM, self.PATH, "main") == "data:\n  name: Test\n"

    def test_write_new_file(self, client, session):
        session.request.return_value = _resp(201, {"commit": {"sha": "c1"}})
        request = FileWrite(path=self.PATH, content="version: 1", branch=BRANCH, message="msg")

        assert client.write_file(FORK, request) == "c1"

        method, url = session.request.call_args[0]
        payload = session.request.call_args.kwargs["json"]
        assert method == "PUT"
        assert url == f"{API}/repos/octocat/airbyte/contents/{self.PATH}"
        assert "sha" not in payload
        assert payload["branch"] == BRANCH
        assert base64.b64decode(payload["content"]).decode() == "version: 1"

    def test_update_existing_file(self, client, session):
        session.request.return_value = _resp(200, {"commit": {"sha": "c2"}})
        request = FileWrite(
            path=self.PATH, content="version: 2", branch=BRANCH, message="msg", sha="blob1"
        )
        client.write_file(FORK, request)
        assert session.request.call_args.kwargs["json"]["sha"] == "blob1"

    def test_write_conflict(self, client, session):
        session.request.return_value = _resp(409, {"message": "sha does not match"})
        request = FileWrite(path=self.PATH, content="x", branch=BRANCH, message="m", sha="old")
        with pytest.raises(RemoteOperationError):
            client.write_file(FORK, request)


# ================================================================
# Pull Requests
# ================================================================

class TestPullRequests:
    PR_JSON = {
        "number": 42,
        "html_url": "https://github.com/airbytehq/airbyte/pull/42",
        "title": "[Connector Builder] New connector: source-test",
        "head": {"label": f"octocat:{BRANCH}", "ref": BRANCH},
        "base": {"ref": "master"},
        "state": "open",
    }

    def test_list_open_pull_requests(self, client, session):
        session.request.return_value = _resp(200, [self.PR_JSON])
        prs = client.list_open_pull_requests(UPSTREAM, f"octocat:{BRANCH}")

        assert len(prs) == 1
        assert prs[0].number == 42
        assert prs[0].head == f"octocat:{BRANCH}"
        assert prs[0].base == "master"
        assert session.request.call_args.kwargs["params"] == {
            "state": "open",
            "head": f"octocat:{BRANCH}",
        }

    def test_list_empty(self, client, session):
        session.request.return_value = _resp(200, [])
        assert client.list_open_pull_requests(UPSTREAM, "octocat:x") == []

    def test_create_pull_request(self, client, session):
        session.request.return_value = _resp(201, self.PR_JSON)
        pr = client.create_pull_request(
            UPSTREAM, title="t", head=f"octocat:{BRANCH}", base="master", body="b"
        )
        assert pr.url.endswith("/pull/42")
        assert session.request.call_args.kwargs["json"] == {
            "title": "t",
            "head": f"octocat:{BRANCH}",
            "base": "master",
            "body": "b",
        }
