"""
Run configuration for the Jira to Trello migration tool.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

# Fixed query expressions distinguishing migratable issues from epics
ALL_ISSUES_QUERY: Final[str] = "issueType in (Bug,Task,Story,Subtask)"
ALL_EPICS_QUERY: Final[str] = "issueType=Epic"

DEFAULT_PAGE_SIZE: Final[int] = 50
DEFAULT_QUEUE_CAPACITY: Final[int] = 50


@dataclass(frozen=True)
class MigrationConfig:
    """Settings for one migration run, passed explicitly to every collaborator."""

    jira_host: str
    board_id: str
    target_list: str = "To Do"
    epic_field_name: str = "component"
    priority_field_name: str | None = "Priority"
    identity_field_name: str | None = "Jira Key"
    page_size: int = DEFAULT_PAGE_SIZE
    comment_page_size: int = DEFAULT_PAGE_SIZE
    queue_capacity: int = DEFAULT_QUEUE_CAPACITY
    put_at_top: bool = False
    issue_query: str = ALL_ISSUES_QUERY
    epic_query: str = ALL_EPICS_QUERY
    fail_fast: bool = True

    def __post_init__(self) -> None:
        if self.page_size < 1 or self.comment_page_size < 1:
            msg = f"Page sizes must be positive, got {self.page_size} and {self.comment_page_size}"
            raise ValueError(msg)
        if self.queue_capacity < 1:
            msg = f"Queue capacity must be positive, got {self.queue_capacity}"
            raise ValueError(msg)
