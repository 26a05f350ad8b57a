"""
Tests for lookup field reconciliation.
"""

import logging
from unittest.mock import MagicMock

import pytest
from fakes import FakeSink, FakeSource, make_epic

from jira_to_trello_migrator.config import ALL_EPICS_QUERY, MigrationConfig
from jira_to_trello_migrator.exceptions import NotFoundError, TransportError
from jira_to_trello_migrator.models import LookupField, LookupOption
from jira_to_trello_migrator.reconciler import LookupReconciler, load_epics, make_option_id, option_index, sync_epics


def _texts(field: LookupField) -> list[str]:
    return [option.text for option in field.options]


@pytest.mark.unit
class TestReconcileCreate:
    """Test creating a field that does not exist yet."""

    def test_creates_sorted_options_with_spaced_positions(self) -> None:
        sink = FakeSink()

        field = LookupReconciler(sink).reconcile("board-1", "component", [("b", "red"), ("a", ""), ("c", "blue")])

        assert field.name == "component"
        assert field.field_type == "list"
        assert _texts(field) == ["a", "b", "c"]
        assert [o.pos for o in field.options] == [0, 10, 20]
        assert [o.colour for o in field.options] == ["", "red", "blue"]
        assert len(sink.calls_named("create_lookup_field")) == 1

    def test_duplicates_keep_first_colour(self) -> None:
        field = LookupReconciler(FakeSink()).reconcile("board-1", "component", [("a", "red"), ("a", "blue")])

        assert [(o.text, o.colour) for o in field.options] == [("a", "red")]

    def test_empty_text_is_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            field = LookupReconciler(FakeSink()).reconcile("board-1", "component", [("", "red"), ("a", "")])

        assert _texts(field) == ["a"]
        assert "empty display text" in caplog.text

    def test_sorts_by_codepoint(self) -> None:
        field = LookupReconciler(FakeSink()).reconcile("board-1", "component", [("b", ""), ("B", ""), ("a", "")])

        assert _texts(field) == ["B", "a", "b"]

    def test_no_values_creates_empty_field(self) -> None:
        field = LookupReconciler(FakeSink()).reconcile("board-1", "component", [])

        assert field.options == ()


@pytest.mark.unit
class TestReconcileExtend:
    """Test extending a field that already exists."""

    def _existing(self) -> LookupField:
        return LookupField(
            id="field-epic",
            board_id="board-1",
            name="component",
            options=(LookupOption("o-a", "a", "red", 0), LookupOption("o-z", "z", "", 35)),
        )

    def test_second_run_is_a_no_op(self) -> None:
        sink = FakeSink()
        reconciler = LookupReconciler(sink)
        first = reconciler.reconcile("board-1", "component", [("a", ""), ("b", "")])
        calls_after_first = list(sink.calls)

        second = reconciler.reconcile("board-1", "component", [("b", ""), ("a", "")])

        assert second == first
        assert sink.calls == calls_after_first

    def test_appends_missing_after_last_position(self) -> None:
        sink = FakeSink(fields=[self._existing()])

        field = LookupReconciler(sink).reconcile("board-1", "component", [("c", "blue"), ("a", ""), ("b", "")])

        assert _texts(field) == ["a", "z", "b", "c"]
        assert [o.pos for o in field.options] == [0, 35, 45, 55]
        added = [call[2] for call in sink.calls_named("add_lookup_option")]
        assert [o.text for o in added] == ["b", "c"]
        assert all(call[1] == "field-epic" for call in sink.calls_named("add_lookup_option"))

    def test_existing_options_are_untouched(self) -> None:
        existing = self._existing()
        sink = FakeSink(fields=[existing])

        field = LookupReconciler(sink).reconcile("board-1", "component", [("new", "")])

        # Options not in the desired set survive, ids and colours unchanged
        assert field.options[: len(existing.options)] == existing.options
        assert sink.calls_named("create_lookup_field") == []

    def test_new_option_ids_are_hex(self) -> None:
        sink = FakeSink(fields=[self._existing()])

        _ = LookupReconciler(sink).reconcile("board-1", "component", [("b", "")])

        option = sink.calls_named("add_lookup_option")[0][2]
        assert len(option.id) == 32
        int(option.id, 16)

    def test_field_vanishing_during_reconcile(self) -> None:
        sink = MagicMock()
        sink.list_lookup_fields.side_effect = [[self._existing()], []]

        with pytest.raises(NotFoundError, match="disappeared"):
            _ = LookupReconciler(sink).reconcile("board-1", "component", [("b", "")])

    def test_destination_failure_propagates(self) -> None:
        sink = MagicMock()
        sink.list_lookup_fields.return_value = [self._existing()]
        sink.add_lookup_option.side_effect = TransportError("boom")

        with pytest.raises(TransportError):
            _ = LookupReconciler(sink).reconcile("board-1", "component", [("b", "")])


@pytest.mark.unit
class TestOptionIndex:
    """Test the text to option id index."""

    def test_maps_text_to_id(self) -> None:
        field = LookupField("f", "board-1", "component", options=(LookupOption("1", "a"), LookupOption("2", "b")))

        assert dict(option_index(field)) == {"a": "1", "b": "2"}

    def test_is_read_only(self) -> None:
        index = option_index(LookupField("f", "board-1", "component", options=(LookupOption("1", "a"),)))

        with pytest.raises(TypeError):
            index["b"] = "2"  # type: ignore[index]

    def test_duplicate_text_uses_first(self, caplog: pytest.LogCaptureFixture) -> None:
        field = LookupField("f", "board-1", "component", options=(LookupOption("1", "a"), LookupOption("2", "a")))

        with caplog.at_level(logging.WARNING):
            assert option_index(field)["a"] == "1"
        assert "duplicate option 'a'" in caplog.text

    def test_make_option_id_is_unique(self) -> None:
        assert make_option_id() != make_option_id()


@pytest.mark.unit
class TestSyncEpics:
    """Test the epic field sync from source epics."""

    def test_load_epics_uses_epic_query(self, config: MigrationConfig) -> None:
        source = FakeSource(epics=[make_epic("PROJ-1", "Billing"), make_epic("PROJ-2", "Search")])

        epics = load_epics(source, config)

        assert [e.key for e in epics] == ["PROJ-1", "PROJ-2"]
        assert {call[0] for call in source.search_calls} == {ALL_EPICS_QUERY}

    def test_sync_creates_field_from_epics(self, config: MigrationConfig) -> None:
        source = FakeSource(
            epics=[
                make_epic("PROJ-1", "Search", "ghx-label-13"),
                make_epic("PROJ-2", "Billing", "ghx-label-4"),
                make_epic("PROJ-3", None),
            ]
        )
        sink = FakeSink()

        field = sync_epics(source, sink, config)

        assert field.name == config.epic_field_name
        assert [(o.text, o.colour) for o in field.options] == [("Billing", "blue"), ("Search", "green")]

    def test_sync_with_new_epic_only_appends(self, config: MigrationConfig) -> None:
        source = FakeSource(epics=[make_epic("PROJ-1", "Billing")])
        sink = FakeSink()

        first = sync_epics(source, sink, config)
        source.epics.append(make_epic("PROJ-2", "Search"))
        second = sync_epics(source, sink, config)

        assert second.id == first.id
        assert second.options[0] == first.options[0]
        assert _texts(second) == ["Billing", "Search"]
