"""Workflow state data model.

Decoupled from pulljoy_core so the store layer can be used independently
and pulljoy_core does not need to know how states are persisted.
"""

from __future__ import annotations

from dataclasses import dataclass

AWAITING_MANUAL_REVIEW = "awaiting_manual_review"
AWAITING_CI = "awaiting_ci"
STANDING_BY = "standing_by"

STATE_NAMES = (AWAITING_MANUAL_REVIEW, AWAITING_CI, STANDING_BY)


@dataclass
class WorkflowState:
    """The persisted workflow record for one (repository, PR) pair.

    Exactly one of review_id / commit_sha is populated:
      awaiting_manual_review → review_id
      awaiting_ci, standing_by → commit_sha

    Stores always replace the whole record on save, so building a new
    WorkflowState through the constructors below is the only way to move
    between states.
    """

    state_name: str
    review_id: str | None = None
    commit_sha: str | None = None

    @classmethod
    def awaiting_manual_review(cls, review_id: str) -> WorkflowState:
        return cls(state_name=AWAITING_MANUAL_REVIEW, review_id=review_id)

    @classmethod
    def awaiting_ci(cls, commit_sha: str) -> WorkflowState:
        return cls(state_name=AWAITING_CI, commit_sha=commit_sha)

    @classmethod
    def standing_by(cls, commit_sha: str) -> WorkflowState:
        return cls(state_name=STANDING_BY, commit_sha=commit_sha)

    def validate(self) -> None:
        """Raise ValueError if the populated fields don't match state_name."""
        if self.state_name == AWAITING_MANUAL_REVIEW:
            if not self.review_id or self.commit_sha is not None:
                raise ValueError(f"{self.state_name} requires review_id and no commit_sha")
        elif self.state_name in (AWAITING_CI, STANDING_BY):
            if not self.commit_sha or self.review_id is not None:
                raise ValueError(f"{self.state_name} requires commit_sha and no review_id")
        else:
            raise ValueError(f"Unknown state name: {self.state_name!r}")
