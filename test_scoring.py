import random
from datetime import date

import pytest

from tableplanner.domain import TableView
from tableplanner.schemas import build_request
from tableplanner.scoring import (
    ACCESSIBILITY,
    CAPACITY_FIT,
    NO_ELIGIBLE_TABLE,
    NO_FREE_TABLES,
    capacity_fit,
    rank_tables,
    select_table,
)

DAY = date(2030, 6, 14)


def request(**overrides):
    fields = {"date": DAY, "time": "19:00", "party_size": 4}
    fields.update(overrides)
    return build_request(**fields)


def table(id, capacity, area_id=1, **kwargs):
    kwargs.setdefault("area_name", "Terrace" if area_id == 1 else "Main Hall")
    return TableView(id=id, area_id=area_id, capacity=capacity, **kwargs)


def test_tightest_table_wins():
    tables = [table(1, 2), table(2, 4), table(3, 6)]

    result = select_table(request(), tables)

    assert result.assigned
    assert result.table.id == 2
    assert result.score == 100
    assert [s.table.id for s in result.alternatives] == [3]
    assert result.alternatives[0].score == pytest.approx(66.67)


def test_capacity_fit():
    assert capacity_fit(table(1, 4), 4) == 100
    assert capacity_fit(table(1, 8), 4) == 50


def test_ties_prefer_smaller_then_lower_id():
    tables = [table(7, 4), table(3, 4), table(5, 4)]
    result = select_table(request(), tables)
    assert result.table.id == 3
    assert [s.table.id for s in result.alternatives] == [5, 7]


def test_input_order_does_not_matter():
    tables = [table(i, cap) for i, cap in enumerate([4, 6, 4, 8, 5, 6, 4], start=1)]
    expected = [s.table.id for s in rank_tables(request(), tables)]
    rng = random.Random(7)
    for _ in range(10):
        shuffled = tables[:]
        rng.shuffle(shuffled)
        assert [s.table.id for s in rank_tables(request(), shuffled)] == expected


def test_preferred_area_outweighs_looser_fit():
    tables = [table(1, 2, area_id=1), table(2, 4, area_id=2)]
    result = select_table(request(party_size=2, preferred_area_id=2), tables)
    assert result.table.id == 2
    assert result.score == 75


def test_shape_and_location_preferences():
    tables = [table(1, 4, shape="square"), table(2, 4, area_id=2, shape="round")]

    assert select_table(request(shape="round"), tables).table.id == 2
    assert select_table(request(location="main"), tables).table.id == 2
    assert select_table(request(location="  "), tables).table.id == 1


def test_accessibility_is_a_hard_constraint():
    tables = [table(1, 4), table(2, 6, accessible=True)]
    result = select_table(request(accessible=True), tables)
    assert result.table.id == 2
    assert result.alternatives == []
    assert result.breakdown[ACCESSIBILITY] == 100


def test_unrequested_accessibility_does_not_affect_score():
    result = select_table(request(), [table(1, 8)])
    assert result.breakdown[ACCESSIBILITY] == 50
    assert result.score == result.breakdown[CAPACITY_FIT] == 50


def test_min_capacity_excludes_table():
    result = select_table(request(party_size=2), [table(1, 6, min_capacity=3)])
    assert not result.assigned
    assert result.reason == NO_ELIGIBLE_TABLE


def test_nothing_free():
    result = select_table(request(), [])
    assert not result.assigned
    assert result.reason == NO_FREE_TABLES


def test_alternatives_are_capped():
    tables = [table(i, 4 + i) for i in range(10)]
    result = select_table(request(), tables, max_alternatives=3)
    assert len(result.alternatives) == 3


def test_weights_change_ranking():
    tables = [table(1, 4, area_id=1), table(2, 8, area_id=2)]
    weights = {CAPACITY_FIT: 1.0, "area_match": 3.0}
    result = select_table(request(preferred_area_id=2), tables, weights=weights)
    assert result.table.id == 2
