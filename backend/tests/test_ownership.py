from types import SimpleNamespace
import pytest
from taskhub.constants.permissions import Role, Resource, Action
from taskhub.errors import PermissionDenied
from taskhub.services.access import Actor, check, authorize
from taskhub.services.ownership import Verdict, resolve

EMP = Actor(identity=10, role=Role.EMPLOYEE)
MGR = Actor(identity=20, role=Role.MANAGER)
ADM = Actor(identity=30, role=Role.ADMIN)


def _task(assignee_id=None, status='TODO', manager_id=None, id=1):
    return SimpleNamespace(id=id, assignee_id=assignee_id, status=status,
                           project=SimpleNamespace(manager_id=manager_id))


def test_employee_updates_own_open_task():
    assert check(EMP, Resource.TASK, Action.UPDATE, _task(assignee_id=10))


def test_employee_cannot_update_someone_elses_task():
    decision = check(EMP, Resource.TASK, Action.UPDATE, _task(assignee_id=11))
    assert not decision
    assert 'ownership' in decision.reason


@pytest.mark.parametrize('status', ['COMPLETED', 'CANCELLED'])
def test_employee_cannot_update_terminal_task(status):
    assert not check(EMP, Resource.TASK, Action.UPDATE, _task(assignee_id=10, status=status))


def test_employee_update_without_record_defers_to_matrix():
    assert resolve(EMP, Resource.TASK, Action.UPDATE) is Verdict.DEFER
    assert check(EMP, Resource.TASK, Action.UPDATE)


def test_matrix_deny_is_final_even_for_owner():
    # employee assigned to the task still cannot delete it
    assert not check(EMP, Resource.TASK, Action.DELETE, _task(assignee_id=10))


def test_manager_deletes_only_managed_project():
    assert check(MGR, Resource.PROJECT, Action.DELETE, SimpleNamespace(id=5, manager_id=20))
    assert not check(MGR, Resource.PROJECT, Action.DELETE, SimpleNamespace(id=6, manager_id=21))


def test_manager_deletes_only_tasks_of_managed_project():
    assert check(MGR, Resource.TASK, Action.DELETE, _task(manager_id=20))
    assert not check(MGR, Resource.TASK, Action.DELETE, _task(manager_id=99))
    assert not check(MGR, Resource.TASK, Action.DELETE, SimpleNamespace(id=3, project=None))


def test_manager_updates_any_task():
    assert check(MGR, Resource.TASK, Action.UPDATE, _task(assignee_id=10, manager_id=99))


def test_admin_is_not_ownership_gated():
    assert check(ADM, Resource.PROJECT, Action.DELETE, SimpleNamespace(id=5, manager_id=20))
    assert check(ADM, Resource.TASK, Action.DELETE, _task(manager_id=99))


@pytest.mark.parametrize('actor', [EMP, MGR, ADM])
def test_settings_are_owner_scoped(actor):
    own = SimpleNamespace(id=1, owner_id=actor.identity)
    other = SimpleNamespace(id=2, owner_id=actor.identity + 1)
    assert check(actor, Resource.SETTING, Action.UPDATE, own)
    assert not check(actor, Resource.SETTING, Action.READ, other)
    assert not check(actor, Resource.SETTING, Action.DELETE, own)


def test_authorize_raises_with_context():
    with pytest.raises(PermissionDenied) as exc:
        authorize(EMP, Resource.TASK, Action.UPDATE, _task(assignee_id=11, id=77))
    err = exc.value
    assert err.code == 403
    assert err.context() == {'resource': 'TASK', 'action': 'UPDATE', 'record_id': 77}


def test_actor_from_raw_normalizes():
    actor = Actor.from_raw('7', 'PROJECT_MANAGER')
    assert actor == Actor(identity=7, role=Role.MANAGER)
    assert Actor.from_raw(8, None).role is Role.EMPLOYEE
