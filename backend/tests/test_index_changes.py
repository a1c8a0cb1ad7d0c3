"""Tests for incremental re-indexing on push."""

import pytest

from codespecter.core import DefaultChunker
from codespecter.errors import RepositoryNotConnectedError
from codespecter.indexing import index_codebase
from codespecter.workflows import index_changes, partition_changes
from conftest import OWNER, REPO, REPO_ID
from test_chunking import GREETER_PY, MAIN_TS

HEAD = "abc123"

UPDATED_TS = MAIN_TS + """
export function farewell(name: string): string {
  const message = `Bye, ${name}`;
  console.log(message);
  return message;
}
"""


def push(commits, ref="refs/heads/main", head=HEAD):
    return {
        "ref": ref,
        "repository": {"id": REPO_ID, "name": REPO, "owner": {"login": OWNER}, "default_branch": "main"},
        "commits": commits,
        "head_commit": {"id": head} if head else None,
    }


def test_partition_added_then_modified_stays_added():
    changes = partition_changes([{"added": ["a.ts"]}, {"modified": ["a.ts"]}])
    assert changes == {"added": ["a.ts"], "modified": [], "removed": []}


def test_partition_removed_then_added_becomes_modified():
    changes = partition_changes([{"removed": ["a.ts"]}, {"added": ["a.ts"]}])
    assert changes == {"added": [], "modified": ["a.ts"], "removed": []}


def test_partition_removal_wins():
    changes = partition_changes([
        {"added": ["a.ts"], "modified": ["b.ts"]},
        {"removed": ["a.ts", "b.ts"]},
    ])
    assert changes == {"added": [], "modified": [], "removed": ["a.ts", "b.ts"]}


def test_partition_each_path_in_one_set():
    changes = partition_changes([
        {"added": ["a.ts"], "modified": ["b.ts"], "removed": ["c.ts"]},
        {"modified": ["a.ts", "b.ts"], "added": ["c.ts"]},
        {"removed": ["d.ts"]},
    ])
    assert changes == {"added": ["a.ts"], "modified": ["b.ts", "c.ts"], "removed": ["d.ts"]}


@pytest.mark.parametrize("event", [
    push([{"modified": ["a.ts"]}], ref="refs/heads/feature"),
    push([{"modified": ["a.ts"]}], head=None),
])
def test_non_default_push_is_a_noop(engine, services, event):
    result = engine.invoke(index_changes, event)
    assert result["success"] is True
    assert result["processed"] == 0
    assert result["added"] == result["modified"] == result["removed"] == 0
    # Nothing was looked up or fetched
    assert services.github_tokens == []


def test_unconnected_repository_is_fatal(engine):
    with pytest.raises(RepositoryNotConnectedError):
        engine.invoke(index_changes, push([{"modified": ["a.ts"]}]))


def test_modify_and_remove(engine, connected_repo, github, vector_store, embedder):
    ns = vector_store.namespace(REPO_ID)
    index_codebase(ns, [("a.ts", MAIN_TS), ("b.ts", MAIN_TS)], DefaultChunker(), embedder)
    assert ns.count() == 4
    vector_store.calls.clear()
    github.refs[HEAD] = {"a.ts": UPDATED_TS}

    result = engine.invoke(index_changes, push([{"modified": ["a.ts"], "removed": ["b.ts"]}]))

    assert result == {"success": True, "added": 0, "modified": 1, "removed": 1, "processed": 1, "skipped": 0}
    assert [c[2] for c in vector_store.called("delete_by_path")] == ["b.ts", "a.ts"]
    assert vector_store.called("upsert") == [("upsert", "42", ["a.ts", "a.ts", "a.ts"])]
    assert ns.count() == 3


def test_added_files_are_not_pre_deleted(engine, connected_repo, github, vector_store):
    github.refs[HEAD] = {"new.py": GREETER_PY}
    result = engine.invoke(index_changes, push([{"added": ["new.py"]}]))
    assert result["processed"] == 1
    assert vector_store.called("delete_by_path") == []
    assert vector_store.namespace(REPO_ID).count() == 3


def test_content_fetched_at_head_commit(engine, connected_repo, github, vector_store):
    github.files = {"a.ts": "old content that should never be read\n"}
    github.refs[HEAD] = {"a.ts": MAIN_TS}
    engine.invoke(index_changes, push([{"modified": ["a.ts"]}]))
    fetched = [c for c in github.calls if c[0] == "get_contents"]
    assert fetched == [("get_contents", "a.ts", HEAD)]
    assert vector_store.namespace(REPO_ID).count() == 2


def test_per_file_failure_is_skipped(engine, connected_repo, github, vector_store):
    github.refs[HEAD] = {"a.ts": MAIN_TS}
    result = engine.invoke(index_changes, push([{"added": ["a.ts", "gone.ts"]}]))
    assert result["processed"] == 1
    assert result["skipped"] == 1
    assert vector_store.namespace(REPO_ID).count() == 2


def test_non_indexable_paths_are_ignored(engine, connected_repo, github, vector_store):
    github.refs[HEAD] = {"docs/guide.md": "# Guide\n", "a.ts": MAIN_TS}
    result = engine.invoke(index_changes, push([{"added": ["docs/guide.md", "a.ts"]}]))
    assert result["added"] == 2
    assert result["processed"] == 1


def test_large_push_processed_in_batches(engine, connected_repo, github):
    paths = [f"src/f{i:02d}.ts" for i in range(23)]
    github.refs[HEAD] = {p: MAIN_TS for p in paths}
    result = engine.invoke(index_changes, push([{"added": paths}]))
    assert result["processed"] == 23


def test_failed_embedding_keeps_previous_vectors(engine, connected_repo, github, vector_store, embedder, monkeypatch):
    ns = vector_store.namespace(REPO_ID)
    index_codebase(ns, [("a.ts", MAIN_TS)], DefaultChunker(), embedder)
    assert ns.count() == 2
    vector_store.calls.clear()
    github.refs[HEAD] = {"a.ts": UPDATED_TS}

    def unavailable(texts):
        raise RuntimeError("embedding API unavailable")

    monkeypatch.setattr(embedder, "embed", unavailable)
    result = engine.invoke(index_changes, push([{"modified": ["a.ts"]}]))

    assert result["processed"] == 0
    assert result["skipped"] == 1
    assert vector_store.called("delete_by_path") == []
    assert ns.count() == 2
