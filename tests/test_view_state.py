"""
Unit Tests for the Inventory View State

Tests cover:
- Serialization and parsing of untrusted input
- Filter, grouping, paging and selection transitions
- Transitions leaving their input untouched
"""

import pytest
from werkzeug.datastructures import MultiDict

from stockroom.utils.view_state import (
    ViewState, back_to_summary, change_page, change_page_size, clear_selection,
    toggle_item, toggle_page, total_pages, view_group, with_filters
)

pytestmark = pytest.mark.unit


@pytest.fixture
def detail_state():
    return ViewState(search='lap', mode='detail', group_key='Computers', page=2,
                     selected={'COM-0001', 'COM-0002'})


class TestSerialization:
    """Tests for to_dict / from_dict / from_args"""

    def test_round_trip(self, detail_state):
        assert ViewState.from_dict(detail_state.to_dict()) == detail_state

    def test_defaults_for_empty_input(self):
        state = ViewState.from_dict(None)
        assert state == ViewState()
        assert state.page_size == 10

    def test_invalid_values_fall_back(self):
        state = ViewState.from_dict(
            {'mode': 'grid', 'page': '-4', 'page_size': '7', 'group_key': 'Tools'},
            default_page_size=25, page_size_choices=(5, 10, 25),
        )
        assert state.mode == 'summary'
        assert state.group_key is None
        assert state.page == 1
        assert state.page_size == 25

    def test_selected_accepts_comma_string(self):
        state = ViewState.from_dict({'selected': 'A, B,,C'})
        assert state.selected == {'A', 'B', 'C'}

    def test_from_query_args(self):
        args = MultiDict([
            ('search', ' drill '), ('mode', 'detail'), ('group_key', 'Tools'),
            ('page', '3'), ('page_size', '5'), ('selected', 'A,B'), ('selected', 'C'),
        ])
        state = ViewState.from_args(args, page_size_choices=(5, 10))
        assert state.search == 'drill'
        assert state.is_detail
        assert state.group_key == 'Tools'
        assert state.page == 3
        assert state.page_size == 5
        assert state.selected == {'A', 'B', 'C'}

    def test_filters_property(self):
        state = ViewState(search='a', department='ICT', category='Tools', status='issued')
        assert state.filters == {'search': 'a', 'department': 'ICT', 'category': 'Tools', 'status': 'issued'}


class TestTransitions:
    """Tests for the pure state transitions"""

    def test_filter_change_resets_page_mode_and_selection(self, detail_state):
        new_state = with_filters(detail_state, department='ICT')
        assert new_state.department == 'ICT'
        assert new_state.page == 1
        assert new_state.selected == set()
        assert new_state.mode == 'summary'
        assert new_state.group_key is None
        # input untouched
        assert detail_state.page == 2
        assert detail_state.selected == {'COM-0001', 'COM-0002'}

    def test_unknown_filter_rejected(self):
        with pytest.raises(ValueError):
            with_filters(ViewState(), colour='red')

    def test_view_group_and_back(self):
        state = view_group(ViewState(page=3), 'Tools')
        assert state.is_detail
        assert state.group_key == 'Tools'
        assert state.page == 1

        state = back_to_summary(toggle_item(state, 'TOO-0001', True))
        assert state.mode == 'summary'
        assert state.group_key is None
        assert state.selected == set()

    def test_change_page_clamps(self):
        state = ViewState(page_size=10)
        assert change_page(state, -1, 35).page == 1
        assert change_page(state, 1, 35).page == 2
        assert change_page(ViewState(page=4, page_size=10), 1, 35).page == 4
        assert change_page(state, 1, 0).page == 1

    def test_change_page_keeps_selection(self, detail_state):
        assert change_page(detail_state, 1, 100).selected == detail_state.selected

    def test_change_page_size_resets_page(self, detail_state):
        state = change_page_size(detail_state, '25')
        assert state.page_size == 25
        assert state.page == 1
        assert change_page_size(detail_state, 'x').page_size == detail_state.page_size

    def test_toggle_item(self, detail_state):
        state = toggle_item(detail_state, 'COM-0003', True)
        assert state.selected == {'COM-0001', 'COM-0002', 'COM-0003'}
        state = toggle_item(state, 'COM-0001', False)
        assert state.selected == {'COM-0002', 'COM-0003'}
        assert detail_state.selected == {'COM-0001', 'COM-0002'}

    def test_selection_ignored_in_summary_mode(self):
        state = ViewState()
        assert toggle_item(state, 'A', True).selected == set()
        assert toggle_page(state, ['A', 'B'], True).selected == set()

    def test_toggle_page(self, detail_state):
        state = toggle_page(detail_state, ['COM-0003', 'COM-0004'], True)
        assert len(state.selected) == 4
        state = toggle_page(state, ['COM-0001', 'COM-0003'], False)
        assert state.selected == {'COM-0002', 'COM-0004'}

    def test_clear_selection(self, detail_state):
        state = clear_selection(detail_state)
        assert state.selected == set()
        assert state.is_detail

    def test_total_pages(self):
        assert total_pages(0, 10) == 1
        assert total_pages(10, 10) == 1
        assert total_pages(11, 10) == 2
