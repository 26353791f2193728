from enum import Enum
from repairdesk.utils.fsm import TransitionValidator, EventRule, EventTable
from repairdesk.services.coordinator import EVENT_TABLE, CoordinatorEvent
from repairdesk.constants.statuses import ServiceStatus, TERMINAL_SERVICE_STATUSES, values
from repairdesk.routes.services import SERVICE_FSM
from repairdesk.routes.admin import SPARE_PART_FSM
from werkzeug.exceptions import BadRequest
import pytest


def test_transition_validator_allows_valid():
    fsm = TransitionValidator({'A': {'B'}, 'B': set()})
    assert fsm.assert_can_transition('A', 'B') is True


def test_transition_validator_blocks_invalid():
    fsm = TransitionValidator({'A': {'B'}, 'B': set()})
    with pytest.raises(BadRequest):
        fsm.assert_can_transition('A', 'C')


def test_event_table_requires_every_event():
    class Ev(Enum):
        ONE = 'one'
        TWO = 'two'

    with pytest.raises(ValueError) as exc:
        EventTable(Ev, {Ev.ONE: EventRule('x')})
    assert 'two' in str(exc.value)


def test_coordinator_table_covers_all_events():
    assert set(EVENT_TABLE.rules) == set(CoordinatorEvent)


@pytest.mark.parametrize('event,current,expected', [
    (CoordinatorEvent.SPARE_PART_REQUESTED, 'in_progress', 'waiting_parts'),
    (CoordinatorEvent.SPARE_PART_REQUESTED, 'assigned', 'waiting_parts'),
    (CoordinatorEvent.SPARE_PART_REQUESTED, 'pending', None),
    (CoordinatorEvent.SPARE_PART_REQUESTED, 'waiting_parts', None),
    (CoordinatorEvent.SPARE_PARTS_CLEARED, 'waiting_parts', 'in_progress'),
    (CoordinatorEvent.SPARE_PARTS_CLEARED, 'completed', None),
    (CoordinatorEvent.RETURN_FROM_WAITING, 'waiting_parts', 'in_progress'),
    (CoordinatorEvent.PARTS_REMOVED, 'completed', 'device_parts_removed'),
    (CoordinatorEvent.PARTS_REMOVED, 'device_parts_removed', 'device_parts_removed'),
    (CoordinatorEvent.REMOVED_PARTS_RETURNED, 'device_parts_removed', 'in_progress'),
    (CoordinatorEvent.REMOVED_PARTS_RETURNED, 'waiting_parts', None),
    (CoordinatorEvent.REMOVED_PARTS_RETURNED_ORDERS_OPEN, 'device_parts_removed', 'waiting_parts'),
    (CoordinatorEvent.REMOVED_PARTS_RETURNED_ORDERS_OPEN, 'in_progress', None),
    (CoordinatorEvent.COMPLETE, 'waiting_parts', 'completed'),
    (CoordinatorEvent.COMPLETE, 'cancelled', None),
])
def test_coordinator_rules(event, current, expected):
    assert EVENT_TABLE.resolve(event, current) == expected


def test_manual_graphs_cover_every_status():
    assert set(SERVICE_FSM.graph) == set(values(ServiceStatus))
    for status in TERMINAL_SERVICE_STATUSES - {ServiceStatus.COMPLETED.value}:
        assert SERVICE_FSM.graph[status] == set()
    assert SPARE_PART_FSM.can_transition('pending', 'delivered')
    assert not SPARE_PART_FSM.can_transition('cancelled', 'ordered')


def test_manual_graph_never_targets_coordinator_statuses():
    owned = {'waiting_parts', 'device_parts_removed', 'completed'}
    for targets in SERVICE_FSM.graph.values():
        assert not (targets & owned)
