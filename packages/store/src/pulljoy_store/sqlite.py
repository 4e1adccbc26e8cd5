"""SQLiteStore — durable file-based state store.

State survives between `pulljoy handle` invocations, which each run in a
fresh process, as long as every invocation opens the same database file.
Hosted GitHub Actions runners start each job with an empty workspace, so
there the file must live on a self-hosted runner or shared volume.
This store does not serialize processes: two deliveries for the same PR
handled concurrently can interleave their load and save. Run the handler
under one Actions `concurrency:` group per repository and PR.
One row per (repo, pr_number) mirrors the engine's composite key, so
load/save/delete are single statements against the primary key.

Schema:
  workflow_states — one row per tracked pull request. Every save writes all
                    columns, so a transition never leaves a stale review_id
                    or commit_sha behind.
"""

from __future__ import annotations

import logging
import sqlite3
import threading

from pulljoy_store.base import BaseStateStore
from pulljoy_store.models import WorkflowState

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS workflow_states (
    repo        TEXT NOT NULL,
    pr_number   INTEGER NOT NULL,
    state_name  TEXT NOT NULL,
    review_id   TEXT,
    commit_sha  TEXT,
    PRIMARY KEY (repo, pr_number)
);
"""


class SQLiteStore(BaseStateStore):
    """Stores workflow states in a local SQLite database file.

    The database file path defaults to `.pulljoy.db` in the current working
    directory. Configure via .pulljoy.yml: `store_path: /path/to/pulljoy.db`.
    """

    def __init__(self, db_path: str = ".pulljoy.db"):
        # The router may call in from several worker threads; the lock
        # serializes access to the shared connection.
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._conn.commit()
        self._lock = threading.Lock()

    def load(self, repo: str, pr_number: int) -> WorkflowState | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM workflow_states WHERE repo=? AND pr_number=?",
                (repo, pr_number),
            ).fetchone()
        return self._row_to_state(row) if row is not None else None

    def save(self, repo: str, pr_number: int, state: WorkflowState) -> None:
        state.validate()
        with self._lock:
            self._conn.execute(
                """
                INSERT OR REPLACE INTO workflow_states
                  (repo, pr_number, state_name, review_id, commit_sha)
                VALUES (?, ?, ?, ?, ?)
                """,
                (repo, pr_number, state.state_name, state.review_id, state.commit_sha),
            )
            self._conn.commit()
        logger.debug("Saved state for %s#%d: %s", repo, pr_number, state.state_name)

    def delete(self, repo: str, pr_number: int) -> None:
        with self._lock:
            self._conn.execute(
                "DELETE FROM workflow_states WHERE repo=? AND pr_number=?",
                (repo, pr_number),
            )
            self._conn.commit()

    def list_states(self, repo: str) -> list[tuple[int, WorkflowState]]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM workflow_states WHERE repo=? ORDER BY pr_number",
                (repo,),
            ).fetchall()
        return [(r["pr_number"], self._row_to_state(r)) for r in rows]

    def close(self) -> None:
        self._conn.close()

    @staticmethod
    def _row_to_state(row: sqlite3.Row) -> WorkflowState:
        # No validation here: a corrupted row must reach the engine so it can
        # be reported as a bug rather than silently dropped.
        return WorkflowState(
            state_name=row["state_name"],
            review_id=row["review_id"],
            commit_sha=row["commit_sha"],
        )
