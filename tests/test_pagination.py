"""
Test suite for the pagination state machine.

Validates that every transition produces a complete new window.
"""

import io
import json

import pytest
from sample_data import make_contact

from leaguemail.core.logging import reset_logging, setup_logging
from leaguemail.core.models import PaginationWindow
from leaguemail.selection.pagination import (
    INITIAL_WINDOW,
    Clear,
    Commit,
    Fail,
    PaginationMachine,
    Reset,
    StartLoading,
    StartPaginating,
    transition,
)


class TestTransition:
    """Test the pure transition function."""

    def setup_method(self):
        self.items = (make_contact("1"), make_contact("2"))
        self.loaded = PaginationWindow(items=self.items, page=2, has_next=True, has_prev=True)

    def test_start_loading_on_empty_window_is_initial(self):
        window = transition(INITIAL_WINDOW, StartLoading())
        assert window.loading is True
        assert window.is_initial_load is True
        assert window.is_paginating is False

    def test_start_loading_with_items_is_not_initial(self):
        window = transition(self.loaded, StartLoading())
        assert window.loading is True
        assert window.is_initial_load is False
        assert window.items == self.items

    def test_start_paginating(self):
        window = transition(self.loaded, StartPaginating(3))
        assert window.page == 3
        assert window.loading is True
        assert window.is_paginating is True
        assert window.is_initial_load is False

    def test_start_paginating_rejects_page_zero(self):
        with pytest.raises(ValueError):
            transition(self.loaded, StartPaginating(0))

    def test_commit_replaces_everything_at_once(self):
        paginating = transition(self.loaded, StartPaginating(3))
        new_items = (make_contact("7"),)

        window = transition(paginating, Commit(new_items, has_next=False, has_prev=True))

        assert window.items == new_items
        assert window.has_next is False
        assert window.has_prev is True
        assert window.page == 3
        assert (window.loading, window.is_initial_load, window.is_paginating) == (False, False, False)

    def test_commit_replaces_page_when_supplied(self):
        window = transition(self.loaded, Commit((), False, False, page=1))
        assert window.page == 1

    def test_fail_keeps_items_and_restores_page(self):
        paginating = transition(self.loaded, StartPaginating(3))
        window = transition(paginating, Fail(2))

        assert window.items == self.items
        assert window.page == 2
        assert window.has_next is True
        assert window.loading is False
        assert window.is_paginating is False

    def test_reset_and_clear(self):
        reset = transition(self.loaded, Reset())
        assert reset.items == ()
        assert reset.page == 1
        assert reset.loading is True
        assert reset.is_initial_load is True

        assert transition(self.loaded, Clear()) == INITIAL_WINDOW

    def test_input_window_is_untouched(self):
        before = self.loaded
        transition(before, StartPaginating(5))
        assert before.page == 2
        assert before.loading is False

    def test_unknown_event(self):
        with pytest.raises(TypeError):
            transition(self.loaded, object())


class TestPaginationMachine:
    """Test the window holder."""

    def test_failed_navigation_rolls_back_to_committed_page(self):
        machine = PaginationMachine()
        machine.start_loading()
        machine.commit([make_contact("1")], has_next=True, has_prev=False, page=1)

        machine.start_paginating(2)
        assert machine.window.page == 2
        assert machine.committed_page == 1

        machine.fail()
        assert machine.window.page == 1
        assert [c.id for c in machine.window.items] == ["1"]

    def test_every_dispatch_replaces_the_window(self):
        machine = PaginationMachine()
        first = machine.window
        machine.start_loading()
        assert machine.window is not first


class TestPaginationLogging:
    """Test that transitions log through a configured structlog pipeline."""

    def setup_method(self):
        self.buffer = io.StringIO()
        setup_logging(debug=True, rich_output=False, stream=self.buffer, cache_loggers=False)

    def teardown_method(self):
        reset_logging()

    def test_every_operation_logs_its_transition(self):
        machine = PaginationMachine(name="plain")

        machine.start_loading()
        machine.commit([make_contact("1")], has_next=True, has_prev=False, page=1)
        machine.start_paginating(2)
        machine.fail()
        machine.reset()
        machine.clear()

        entries = [
            json.loads(line)
            for line in self.buffer.getvalue().splitlines()
            if '"Pagination transition"' in line
        ]
        assert [entry["transition"] for entry in entries] == [
            "StartLoading",
            "Commit",
            "StartPaginating",
            "Fail",
            "Reset",
            "Clear",
        ]
        assert all(entry["source"] == "plain" for entry in entries)
        assert entries[1]["items"] == 1
        assert entries[3]["page"] == 1
