"""
Pytest configuration and fixtures.

Unit tests run against the in-memory FakeSource and FakeSink from fakes.py.
Integration tests talk to real Jira and Trello instances and fail on any
warning logged by the code under test.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from typing_extensions import override

import pytest
from fakes import FakeSink, FakeSource

from jira_to_trello_migrator.config import MigrationConfig
from jira_to_trello_migrator.models import ListInfo, LookupField, LookupOption

if TYPE_CHECKING:
    from collections.abc import Generator
    from pathlib import Path

# Warning records captured per integration test
_integration_test_warnings: dict[str, list[logging.LogRecord]] = {}


class IntegrationTestWarningHandler(logging.Handler):
    """Captures WARNING and above during an integration test."""

    test_nodeid: str

    def __init__(self, test_nodeid: str) -> None:
        super().__init__(level=logging.WARNING)
        self.test_nodeid = test_nodeid

    @override
    def emit(self, record: logging.LogRecord) -> None:
        _integration_test_warnings.setdefault(self.test_nodeid, []).append(record)


@pytest.fixture(autouse=True)
def fail_on_log_warnings_for_integration_tests(request: pytest.FixtureRequest) -> Generator[None]:
    """Collect logger warnings emitted during integration tests; unit tests are unaffected."""
    if request.node.get_closest_marker("integration") is None:
        yield
        return

    handler = IntegrationTestWarningHandler(request.node.nodeid)
    root_logger = logging.getLogger()
    root_logger.addHandler(handler)
    try:
        yield
    finally:
        root_logger.removeHandler(handler)


@pytest.hookimpl(tryfirst=True, hookwrapper=True)
def pytest_runtest_makereport(item: pytest.Item, call: pytest.CallInfo[None]) -> Generator[None]:  # type: ignore[misc]
    """Mark a passed integration test as failed if the migrator logged warnings."""
    outcome = yield
    report = outcome.get_result()

    if call.when == "call" and report.outcome == "passed":
        warning_records = _integration_test_warnings.pop(item.nodeid, [])
        if warning_records:
            report.outcome = "failed"
            report.longrepr = f"Integration test failed: {len(warning_records)} warning(s) detected:\n" + "\n".join(
                f"  - {r.levelname}: {r.getMessage()} (in {r.name}:{r.lineno})" for r in warning_records
            )


@pytest.fixture
def config() -> MigrationConfig:
    return MigrationConfig(jira_host="example.atlassian.net", board_id="board-1", page_size=2, comment_page_size=2)


@pytest.fixture
def board_fields() -> list[LookupField]:
    """The priority and identity fields a prepared board already has."""
    return [
        LookupField(
            id="field-priority",
            board_id="board-1",
            name="Priority",
            options=(
                LookupOption("prio-high", "High", "red", 0),
                LookupOption("prio-medium", "Medium", "yellow", 10),
                LookupOption("prio-low", "Low", "green", 20),
            ),
        ),
        LookupField(id="field-key", board_id="board-1", name="Jira Key", field_type="text"),
    ]


@pytest.fixture
def sink(board_fields: list[LookupField]) -> FakeSink:
    return FakeSink(lists=[ListInfo("list-0", "Backlog"), ListInfo("list-1", "To Do")], fields=board_fields)


@pytest.fixture
def source(tmp_path: Path) -> FakeSource:
    return FakeSource(attachment_dir=tmp_path)
