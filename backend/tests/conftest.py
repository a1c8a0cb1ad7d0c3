"""
Pytest configuration and shared fixtures for CodeSpecter tests.
"""

import base64
import hashlib

import numpy as np
import pytest
from numpy.random import default_rng

from codespecter.config import load_config
from codespecter.core import Embedder
from codespecter.db import Account, Repository, make_engine, make_session_factory
from codespecter.errors import GitHubError
from codespecter.github import GitHubClient
from codespecter.storage import VectorStore, make_vector_store
from codespecter.workflows import ALL_WORKFLOWS, Engine, Services

EMBEDDING_DIM = 64

OWNER = "acme"
REPO = "widgets"
REPO_ID = 42
USER_ID = "user-1"
TOKEN = "gho_test_token"


class HashEmbedder(Embedder):
    """Deterministic embeddings seeded from the text's hash."""

    def __init__(self, dim: int = EMBEDDING_DIM):
        self.dim = dim
        self.calls = []

    def embed(self, texts):
        self.calls.append(list(texts))
        embeddings = np.empty((len(texts), self.dim), dtype="float32")
        for i, text in enumerate(texts):
            digest = hashlib.sha256(text.encode("utf-8")).digest()
            # Use int from digest to seed a local RNG; avoid global np.random state
            seed_int = int.from_bytes(digest[:8], "big", signed=False)
            rng = default_rng(seed_int)
            embeddings[i] = rng.standard_normal(self.dim).astype("float32")

        norms = np.linalg.norm(embeddings, axis=1, keepdims=True)
        embeddings = embeddings / (norms + 1e-8)
        return embeddings.tolist()


class FakeLLM:
    """Records prompts; answers with a canned text or raises."""

    def __init__(self, answer: str = "## Review\nLooks good."):
        self.answer = answer
        self.prompts = []
        self.temperatures = []
        self.error = None

    def generate(self, prompt, temperature=None):
        self.prompts.append(prompt)
        self.temperatures.append(temperature)
        if self.error:
            raise self.error
        return self.answer


class FakeGitHub(GitHubClient):
    """In-memory GitHub: files per ref, one pull request, its comments."""

    def __init__(self):
        super().__init__(TOKEN)
        self.files = {}
        self.refs = {}
        self.pull = {"number": 7, "title": "Add widgets", "body": "Adds the widget API"}
        self.pull_files = []
        self.review_comments = {}
        self.issue_comments = []
        self.fail_review_reply = False
        self.posted = []
        self.calls = []

    def _tree(self, ref):
        if ref is None:
            return self.files
        return self.refs.get(ref, {})

    def get_default_branch(self, owner, repo):
        return "main"

    def get_repo_file_paths(self, owner, repo, ref=None):
        self.calls.append(("get_repo_file_paths", repo))
        return sorted(self._tree(ref))

    def get_contents(self, owner, repo, path, ref=None):
        self.calls.append(("get_contents", path, ref))
        tree = self._tree(ref)
        if path in tree:
            content = base64.b64encode(tree[path].encode("utf-8")).decode("ascii")
            return {"type": "file", "path": path, "content": content}
        prefix = path.rstrip("/") + "/"
        children = sorted(p for p in tree if p.startswith(prefix) and "/" not in p[len(prefix):])
        if children:
            return [{"type": "file", "path": p, "name": p[len(prefix):]} for p in children]
        raise GitHubError(404, f"{path} not found")

    def fetch_file_content_batch(self, owner, repo, paths, ref=None, max_workers=10):
        self.calls.append(("fetch_file_content_batch", list(paths)))
        return super().fetch_file_content_batch(owner, repo, paths, ref=ref, max_workers=max_workers)

    def get_pull(self, owner, repo, number):
        return dict(self.pull)

    def list_pull_files(self, owner, repo, number):
        return list(self.pull_files)

    def get_review_comment(self, owner, repo, comment_id):
        if comment_id not in self.review_comments:
            raise GitHubError(404, "Not Found")
        return dict(self.review_comments[comment_id])

    def list_issue_comments(self, owner, repo, number):
        return list(self.issue_comments)

    def list_review_comments(self, owner, repo, number):
        return list(self.review_comments.values())

    def create_issue_comment(self, owner, repo, number, body):
        self.posted.append(("issue_comment", number, body))
        return {"id": 1000 + len(self.posted)}

    def create_review_comment_reply(self, owner, repo, number, comment_id, body):
        if self.fail_review_reply:
            raise GitHubError(422, "Validation Failed")
        self.posted.append(("review_reply", comment_id, body))
        return {"id": 2000 + len(self.posted)}


class SpyVectorStore(VectorStore):
    """Delegates to a real store and records every call."""

    def __init__(self, inner: VectorStore):
        self.inner = inner
        self.calls = []
        self.counts = None

    def upsert(self, namespace, records):
        self.calls.append(("upsert", namespace, [r.path for r in records]))
        self.inner.upsert(namespace, records)

    def delete_by_path(self, namespace, path):
        self.calls.append(("delete_by_path", namespace, path))
        self.inner.delete_by_path(namespace, path)

    def delete_all(self, namespace):
        self.calls.append(("delete_all", namespace))
        self.inner.delete_all(namespace)

    def count(self, namespace):
        self.calls.append(("count", namespace))
        if self.counts is not None:
            # Scripted counts; the last value repeats
            return self.counts.pop(0) if len(self.counts) > 1 else self.counts[0]
        return self.inner.count(namespace)

    def query(self, namespace, embedding, top_k):
        self.calls.append(("query", namespace))
        return self.inner.query(namespace, embedding, top_k)

    def called(self, name):
        return [c for c in self.calls if c[0] == name]


class RecordingSleeper:
    def __init__(self, clock=None):
        self.calls = []
        self.clock = clock

    def __call__(self, seconds):
        self.calls.append(seconds)
        if self.clock is not None:
            self.clock.now += seconds


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def cfg():
    """Default configuration pointed at in-memory backends."""
    config = load_config()
    config["database_url"] = "sqlite://"
    config["vector_store"]["qdrant"].update({"location": ":memory:", "url": None, "api_key": None})
    config["github"]["webhook_secret"] = None
    config["workflows"]["retry_backoff_seconds"] = 0
    config["workflows"]["lease_wait_seconds"] = 0
    return config


@pytest.fixture
def session_factory():
    return make_session_factory(make_engine("sqlite://"))


@pytest.fixture
def connected_repo(session_factory):
    """A user with a GitHub token and one connected repository."""
    with session_factory() as db:
        db.add(Account(user_id=USER_ID, provider_id="github", access_token=TOKEN))
        db.add(Repository(github_id=REPO_ID, owner=OWNER, name=REPO, user_id=USER_ID))
        db.commit()
    return REPO_ID


@pytest.fixture
def embedder():
    return HashEmbedder()


@pytest.fixture
def vector_store(cfg):
    return SpyVectorStore(make_vector_store(cfg))


@pytest.fixture
def github():
    return FakeGitHub()


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeper(clock):
    return RecordingSleeper(clock)


@pytest.fixture
def services(cfg, session_factory, vector_store, embedder, llm, github):
    tokens = []

    def github_factory(token):
        tokens.append(token)
        return github

    svc = Services(
        cfg=cfg,
        session_factory=session_factory,
        vector_store=vector_store,
        embedder=embedder,
        llm=llm,
        github_factory=github_factory,
    )
    svc.github_tokens = tokens
    return svc


@pytest.fixture
def engine(cfg, session_factory, services, sleeper, clock):
    return Engine(session_factory, services, ALL_WORKFLOWS, cfg=cfg, sleeper=sleeper, clock=clock)
