"""Tests for the GitHub REST client against a scripted HTTP session."""

import base64

import pytest
import requests

from codespecter.errors import GitHubError
from codespecter.github import GitHubClient


class FakeResponse:
    def __init__(self, status_code=200, payload=None, links=None):
        self.status_code = status_code
        self._payload = payload
        self.links = links or {}
        self.text = str(payload)

    def json(self):
        if self._payload is None:
            raise ValueError("no JSON")
        return self._payload


class FakeSession:
    """Maps URLs to responses and records every request."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def request(self, method, url, headers=None, timeout=None, params=None, json=None):
        self.requests.append((method, url, params, json))
        route = self.routes.get((method, url))
        if route is None:
            return FakeResponse(404, {"message": "Not Found"})
        if isinstance(route, Exception):
            raise route
        return route


API = "https://api.github.com"


def make_client(routes):
    session = FakeSession(routes)
    return GitHubClient("tok", session=session), session


def encoded(text):
    return base64.b64encode(text.encode()).decode()


def test_auth_headers():
    client, _ = make_client({})
    assert client.headers["Authorization"] == "Bearer tok"
    assert client.headers["X-GitHub-Api-Version"] == "2022-11-28"


def test_pagination_follows_next_links():
    page2 = f"{API}/repos/o/r/pulls/1/files?page=2"
    client, session = make_client({
        ("GET", f"{API}/repos/o/r/pulls/1/files"): FakeResponse(200, [{"filename": "a"}], {"next": {"url": page2}}),
        ("GET", page2): FakeResponse(200, [{"filename": "b"}]),
    })
    files = client.list_pull_files("o", "r", 1)
    assert [f["filename"] for f in files] == ["a", "b"]
    assert session.requests[0][2] == {"per_page": 100}
    assert session.requests[1][2] is None


def test_error_status_raises_with_message():
    client, _ = make_client({})
    with pytest.raises(GitHubError) as excinfo:
        client.get_pull("o", "r", 1)
    assert excinfo.value.not_found
    assert "Not Found" in str(excinfo.value)


def test_network_failure_raises_github_error():
    client, _ = make_client({("GET", f"{API}/repos/o/r"): requests.ConnectionError("refused")})
    with pytest.raises(GitHubError) as excinfo:
        client.get_default_branch("o", "r")
    assert excinfo.value.status is None


def test_tree_listing_uses_default_branch():
    client, session = make_client({
        ("GET", f"{API}/repos/o/r"): FakeResponse(200, {"default_branch": "trunk"}),
        ("GET", f"{API}/repos/o/r/git/trees/trunk"): FakeResponse(200, {"tree": [
            {"path": "src", "type": "tree"},
            {"path": "src/b.ts", "type": "blob"},
            {"path": "a.ts", "type": "blob"},
        ]}),
    })
    assert client.get_repo_file_paths("o", "r") == ["a.ts", "src/b.ts"]
    assert session.requests[1][2] == {"recursive": "1"}


def test_file_content_is_decoded_at_ref():
    client, session = make_client({
        ("GET", f"{API}/repos/o/r/contents/src/a.ts"): FakeResponse(200, {"content": encoded("const a = 1;\n")}),
    })
    assert client.get_file_content("o", "r", "src/a.ts", ref="abc") == "const a = 1;\n"
    assert session.requests[0][2] == {"ref": "abc"}


def test_directory_is_not_a_file():
    client, _ = make_client({
        ("GET", f"{API}/repos/o/r/contents/docs"): FakeResponse(200, [{"path": "docs/a.md", "type": "file"}]),
    })
    with pytest.raises(GitHubError):
        client.get_file_content("o", "r", "docs")


def test_batch_fetch_skips_unreadable_files():
    client, _ = make_client({
        ("GET", f"{API}/repos/o/r/contents/a.ts"): FakeResponse(200, {"content": encoded("a")}),
        ("GET", f"{API}/repos/o/r/contents/c.ts"): FakeResponse(200, {"content": encoded("c")}),
    })
    docs = client.fetch_file_content_batch("o", "r", ["a.ts", "b.ts", "c.ts"], max_workers=2)
    assert docs == [{"path": "a.ts", "content": "a"}, {"path": "c.ts", "content": "c"}]
    assert client.fetch_file_content_batch("o", "r", []) == []


def test_review_reply_posts_to_thread():
    url = f"{API}/repos/o/r/pulls/7/comments/55/replies"
    client, session = make_client({("POST", url): FakeResponse(201, {"id": 77})})
    assert client.create_review_comment_reply("o", "r", 7, 55, "thanks") == {"id": 77}
    assert session.requests[0] == ("POST", url, None, {"body": "thanks"})


def test_content_path_is_percent_encoded():
    url = f"{API}/repos/o/r/contents/src/C%23/a%3F.cs"
    client, session = make_client({("GET", url): FakeResponse(200, {"content": encoded("class A {}")})})
    assert client.get_file_content("o", "r", "src/C#/a?.cs", ref="abc") == "class A {}"
    assert session.requests[0] == ("GET", url, {"ref": "abc"}, None)
