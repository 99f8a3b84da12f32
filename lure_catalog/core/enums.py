"""Enums shared by the workflow queue and the catalog."""

from enum import Enum


class WorkflowStatus(str, Enum):
    """Processing status of a workflow entry."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    ERROR = "error"
    DONE = "done"

    @property
    def label(self) -> str:
        """Status label as shown in the operator's spreadsheet."""
        return WORKFLOW_STATUS_LABELS[self]

    @classmethod
    def from_label(cls, label: str) -> "WorkflowStatus":
        """Resolve either an enum value or a spreadsheet label."""
        for status, status_label in WORKFLOW_STATUS_LABELS.items():
            if label in (status.value, status_label):
                return status
        raise ValueError(f"Unknown workflow status: {label!r}")


WORKFLOW_STATUS_LABELS: dict[WorkflowStatus, str] = {
    WorkflowStatus.PENDING: "未処理",
    WorkflowStatus.IN_PROGRESS: "処理中",
    WorkflowStatus.ERROR: "エラー",
    WorkflowStatus.DONE: "登録完了",
}


class EntryOutcome(str, Enum):
    """Result of processing a single workflow entry."""

    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"
