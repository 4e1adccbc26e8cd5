"""Tests for pulljoy-store implementations."""

from __future__ import annotations

import pytest

from pulljoy_store.memory import MemoryStore
from pulljoy_store.models import AWAITING_CI, AWAITING_MANUAL_REVIEW, STANDING_BY, WorkflowState
from pulljoy_store.sqlite import SQLiteStore

SHA = "a" * 40


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        s = MemoryStore()
    else:
        s = SQLiteStore(db_path=str(tmp_path / "test.db"))
    yield s
    s.close()


# ---------------------------------------------------------------------------
# WorkflowState
# ---------------------------------------------------------------------------


class TestWorkflowState:
    def test_constructors_populate_one_field(self):
        review = WorkflowState.awaiting_manual_review("abc")
        assert review.state_name == AWAITING_MANUAL_REVIEW
        assert review.commit_sha is None

        ci = WorkflowState.awaiting_ci(SHA)
        assert ci.state_name == AWAITING_CI
        assert ci.review_id is None

        assert WorkflowState.standing_by(SHA).state_name == STANDING_BY

    def test_validate_rejects_review_state_with_commit(self):
        with pytest.raises(ValueError):
            WorkflowState(state_name=AWAITING_MANUAL_REVIEW, review_id="abc", commit_sha=SHA).validate()

    def test_validate_rejects_ci_state_without_commit(self):
        with pytest.raises(ValueError):
            WorkflowState(state_name=AWAITING_CI).validate()

    def test_validate_rejects_unknown_state(self):
        with pytest.raises(ValueError, match="Unknown state"):
            WorkflowState(state_name="closed", review_id="abc").validate()


# ---------------------------------------------------------------------------
# Store contract (MemoryStore and SQLiteStore)
# ---------------------------------------------------------------------------


class TestStateStore:
    def test_load_missing_returns_none(self, store):
        assert store.load("owner/repo", 1) is None

    def test_save_and_load(self, store):
        store.save("owner/repo", 1, WorkflowState.awaiting_manual_review("abc"))
        state = store.load("owner/repo", 1)
        assert state.state_name == AWAITING_MANUAL_REVIEW
        assert state.review_id == "abc"

    def test_save_replaces_all_fields(self, store):
        store.save("owner/repo", 1, WorkflowState.awaiting_manual_review("abc"))
        store.save("owner/repo", 1, WorkflowState.awaiting_ci(SHA))

        state = store.load("owner/repo", 1)
        assert state.state_name == AWAITING_CI
        assert state.commit_sha == SHA
        assert state.review_id is None

    def test_save_rejects_invalid_state(self, store):
        with pytest.raises(ValueError):
            store.save("owner/repo", 1, WorkflowState(state_name=AWAITING_CI))
        assert store.load("owner/repo", 1) is None

    def test_delete(self, store):
        store.save("owner/repo", 1, WorkflowState.awaiting_manual_review("abc"))
        store.delete("owner/repo", 1)
        assert store.load("owner/repo", 1) is None

    def test_delete_missing_is_noop(self, store):
        store.delete("owner/repo", 99)  # must not raise

    def test_keys_isolated_by_repo_and_pr(self, store):
        store.save("owner/repo-a", 1, WorkflowState.awaiting_manual_review("a1"))
        store.save("owner/repo-b", 1, WorkflowState.awaiting_manual_review("b1"))
        store.save("owner/repo-a", 2, WorkflowState.awaiting_ci(SHA))

        assert store.load("owner/repo-a", 1).review_id == "a1"
        assert store.load("owner/repo-b", 1).review_id == "b1"
        assert store.load("owner/repo-a", 2).commit_sha == SHA

    def test_list_states_ordered_by_pr(self, store):
        store.save("owner/repo", 5, WorkflowState.standing_by(SHA))
        store.save("owner/repo", 2, WorkflowState.awaiting_manual_review("abc"))
        store.save("other/repo", 1, WorkflowState.awaiting_manual_review("xyz"))

        results = store.list_states("owner/repo")
        assert [pr for pr, _ in results] == [2, 5]
        assert results[1][1].state_name == STANDING_BY

    def test_list_states_empty(self, store):
        assert store.list_states("owner/nonexistent") == []

    def test_loaded_state_is_a_copy(self, store):
        store.save("owner/repo", 1, WorkflowState.awaiting_manual_review("abc"))
        state = store.load("owner/repo", 1)
        state.review_id = "mutated"
        assert store.load("owner/repo", 1).review_id == "abc"


class TestSQLiteStore:
    def test_persists_across_connections(self, tmp_path):
        """Data written by one SQLiteStore instance must be readable by another."""
        db_path = str(tmp_path / "test.db")
        store_a = SQLiteStore(db_path=db_path)
        store_a.save("owner/repo", 1, WorkflowState.awaiting_ci(SHA))
        store_a.close()

        store_b = SQLiteStore(db_path=db_path)
        state = store_b.load("owner/repo", 1)
        assert state.commit_sha == SHA
        store_b.close()

    def test_unknown_state_name_is_loaded_unvalidated(self, tmp_path):
        db_path = str(tmp_path / "test.db")
        store = SQLiteStore(db_path=db_path)
        store._conn.execute(
            "INSERT INTO workflow_states (repo, pr_number, state_name) VALUES (?, ?, ?)",
            ("owner/repo", 1, "closed"),
        )
        store._conn.commit()

        assert store.load("owner/repo", 1).state_name == "closed"
        store.close()
