from taskhub.utils.fsm import TransitionValidator
from taskhub.errors import InvalidTransition
from taskhub.services.tasks import TASK_FSM
from taskhub.services.stages import STAGE_FSM
import pytest


def test_transition_validator_allows_valid():
    fsm = TransitionValidator({'A': {'B'}, 'B': set()})
    assert fsm.assert_can_transition('A', 'B') is True


def test_transition_validator_blocks_invalid():
    fsm = TransitionValidator({'A': {'B'}, 'B': set()}, resource='THING')
    with pytest.raises(InvalidTransition) as exc:
        fsm.assert_can_transition('A', 'C', record_id=9)
    assert exc.value.context() == {'resource': 'THING', 'action': 'UPDATE', 'record_id': 9}


def test_unknown_state_has_no_targets():
    fsm = TransitionValidator({'A': {'B'}})
    assert fsm.targets('Z') == frozenset()
    assert fsm.is_terminal('Z')


def test_task_graph():
    assert TASK_FSM.is_terminal('COMPLETED')
    assert TASK_FSM.is_terminal('CANCELLED')
    assert TASK_FSM.can_transition('IN_REVIEW', 'TODO')
    assert TASK_FSM.can_transition('TODO', 'COMPLETED')
    assert not TASK_FSM.can_transition('TODO', 'TODO')
    assert not TASK_FSM.can_transition('COMPLETED', 'IN_PROGRESS')


def test_stage_graph():
    assert STAGE_FSM.states == {'PENDING', 'IN_PROGRESS', 'BLOCKED', 'COMPLETED'}
    assert STAGE_FSM.can_transition('BLOCKED', 'COMPLETED')
    assert not STAGE_FSM.can_transition('IN_PROGRESS', 'PENDING')
    assert STAGE_FSM.is_terminal('COMPLETED')
