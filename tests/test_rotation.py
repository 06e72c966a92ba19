from __future__ import annotations

import logging
import math

import pytest

from fleetsync.exceptions import FleetSyncConfigError
from fleetsync.sync.rotation import CallBudget, RotationPolicy


def test_three_entities_capacity_two_alternate_ends() -> None:
    policy = RotationPolicy(["V1", "V2", "V3"], max_calls_per_cycle=4, calls_per_entity=2)

    assert policy.capacity == 2
    assert policy.select() == ["V1", "V2"]
    assert policy.select() == ["V3", "V2"]
    assert policy.select() == ["V1", "V2"]
    assert policy.cycles == 3


def test_full_list_is_reversed_not_just_the_selection() -> None:
    policy = RotationPolicy(["A", "B", "C", "D", "E"], max_calls_per_cycle=6, calls_per_entity=2)

    policy.select()
    assert policy.order == ["E", "D", "C", "B", "A"]


def test_capacity_covering_everyone_selects_all_in_current_order() -> None:
    policy = RotationPolicy(["A", "B", "C"], max_calls_per_cycle=40, calls_per_entity=2)

    assert policy.select() == ["A", "B", "C"]
    assert policy.select() == ["C", "B", "A"]


@pytest.mark.parametrize("count", [1, 2, 3, 4, 5, 8, 13, 20])
def test_every_entity_polled_within_two_cycles_at_half_capacity(count: int) -> None:
    entities = [f"e{i}" for i in range(count)]
    capacity = math.ceil(count / 2)
    policy = RotationPolicy(entities, max_calls_per_cycle=capacity * 2, calls_per_entity=2)

    selections = [set(policy.select()) for _ in range(6)]
    for first, second in zip(selections, selections[1:]):
        assert first | second == set(entities)


def test_budget_below_one_entity_is_a_config_error() -> None:
    with pytest.raises(FleetSyncConfigError):
        RotationPolicy(["A"], max_calls_per_cycle=1, calls_per_entity=2)


def test_low_capacity_logs_warning(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="fleetsync.sync.rotation"):
        RotationPolicy(["A", "B", "C", "D", "E"], max_calls_per_cycle=2, calls_per_entity=2)

    assert any("entities per cycle" in record.getMessage() for record in caplog.records)


def test_duplicates_are_dropped_and_empty_list_selects_nothing() -> None:
    assert RotationPolicy(["A", "A", "B"], max_calls_per_cycle=10, calls_per_entity=2).order == ["A", "B"]
    assert RotationPolicy([], max_calls_per_cycle=10, calls_per_entity=2).select() == []


def test_call_budget_stops_at_limit() -> None:
    budget = CallBudget(3)

    assert [budget.try_acquire() for _ in range(5)] == [True, True, True, False, False]
    assert budget.used == 3
    assert budget.remaining == 0
