import pytest
from sqlalchemy.orm.attributes import set_committed_value
from taskhub import get_db
from taskhub.errors import (
    AlreadyCompleted, Conflict, InvalidInput, InvalidReason, InvalidTransition, NotAssignee, NotFound,
    PermissionDenied, TaskNotRejectable,
)
from taskhub.models.activity import ActivityLog
from taskhub.models.notification import Notification
from taskhub.models.task import Task, RejectionEvent
from taskhub.services import tasks as task_service
from tests.test_utils_seed import make_user, actor_for, make_project, make_task


def _fresh(task_id):
    return get_db().get(Task, task_id, populate_existing=True)


def _setup(status=Task.STATUS_TODO):
    mgr = make_user('PROJECT_MANAGER')
    emp = make_user('EMPLOYEE')
    project = make_project(mgr)
    task = make_task(project, emp, status=status)
    return mgr, emp, project, task


def test_assignee_completes_task_once():
    _, emp, _, task = _setup()
    done = task_service.mark_completed(actor_for(emp), task.id)
    assert done.status == Task.STATUS_COMPLETED
    assert done.completed_at is not None
    with pytest.raises(AlreadyCompleted) as exc:
        task_service.mark_completed(actor_for(emp), task.id)
    assert exc.value.code == 409
    assert _fresh(task.id).status == Task.STATUS_COMPLETED
    logs = get_db().query(ActivityLog).filter_by(action='TASK.COMPLETE', entity_id=str(task.id)).count()
    assert logs == 1


def test_second_completion_by_manager_also_conflicts():
    mgr, emp, _, task = _setup()
    task_service.mark_completed(actor_for(mgr), task.id)
    with pytest.raises(AlreadyCompleted):
        task_service.mark_completed(actor_for(emp), task.id)


def test_employee_cannot_complete_someone_elses_task():
    _, _, project, task = _setup()
    stranger = make_user('EMPLOYEE')
    with pytest.raises(PermissionDenied):
        task_service.mark_completed(actor_for(stranger), task.id)
    assert _fresh(task.id).status == Task.STATUS_TODO


def test_complete_missing_task_is_not_found():
    emp = make_user('EMPLOYEE')
    with pytest.raises(NotFound):
        task_service.mark_completed(actor_for(emp), 987654)


def test_cancelled_task_cannot_be_completed():
    mgr, _, _, task = _setup(status=Task.STATUS_CANCELLED)
    with pytest.raises(InvalidTransition):
        task_service.mark_completed(actor_for(mgr), task.id)


def test_lost_completion_race_reports_already_completed(monkeypatch):
    mgr, emp, _, task = _setup()
    task_service.mark_completed(actor_for(mgr), task.id)
    real_load = task_service.load_task

    def stale_load(session, task_id):
        t = real_load(session, task_id)
        # pretend this request read the row before the other one committed
        set_committed_value(t, 'status', Task.STATUS_IN_PROGRESS)
        return t

    monkeypatch.setattr(task_service, 'load_task', stale_load)
    with pytest.raises(AlreadyCompleted):
        task_service.mark_completed(actor_for(emp), task.id)
    monkeypatch.undo()
    assert _fresh(task.id).status == Task.STATUS_COMPLETED


def test_transition_rework_and_cancel():
    mgr, emp, _, task = _setup()
    actor = actor_for(emp)
    assert task_service.transition(actor, task.id, Task.STATUS_IN_PROGRESS).status == Task.STATUS_IN_PROGRESS
    assert task_service.transition(actor, task.id, Task.STATUS_IN_REVIEW).status == Task.STATUS_IN_REVIEW
    assert task_service.transition(actor, task.id, Task.STATUS_TODO).status == Task.STATUS_TODO
    assert task_service.transition(actor_for(mgr), task.id, Task.STATUS_CANCELLED).status == Task.STATUS_CANCELLED
    with pytest.raises(InvalidTransition):
        task_service.transition(actor_for(mgr), task.id, Task.STATUS_TODO)


def test_transition_to_completed_goes_through_completion():
    _, emp, _, task = _setup()
    done = task_service.transition(actor_for(emp), task.id, Task.STATUS_COMPLETED)
    assert done.completed_at is not None


def test_transition_rejects_unknown_status():
    _, emp, _, task = _setup()
    with pytest.raises(InvalidInput):
        task_service.transition(actor_for(emp), task.id, 'DONE')


def test_create_task_notifies_assignee():
    mgr = make_user('MANAGER')
    emp = make_user('EMPLOYEE')
    project = make_project(mgr)
    task = task_service.create_task(actor_for(mgr), {
        'project_id': project.id, 'title': 'Wire the lobby', 'assigned_to_id': emp.id, 'priority': 'HIGH',
        'due_date': '2026-11-02',
    })
    assert task.assignee_id == emp.id
    assert task.priority == Task.PRIORITY_HIGH
    assert task.due_date.isoformat() == '2026-11-02'
    notes = get_db().query(Notification).filter_by(user_id=emp.id, type=Notification.TYPE_TASK_ASSIGNED).all()
    assert len(notes) == 1


def test_create_task_validations():
    mgr = make_user('MANAGER')
    project = make_project(mgr)
    with pytest.raises(InvalidInput):
        task_service.create_task(actor_for(mgr), {'project_id': project.id, 'title': 'x', 'assignee_id': 999999})
    with pytest.raises(InvalidInput):
        task_service.create_task(actor_for(mgr), {'project_id': project.id, 'title': 'x', 'priority': 'WHENEVER'})
    with pytest.raises(NotFound):
        task_service.create_task(actor_for(mgr), {'project_id': 999999, 'title': 'x'})
    with pytest.raises(PermissionDenied):
        task_service.create_task(actor_for(make_user('EMPLOYEE')), {'project_id': project.id, 'title': 'x'})


def test_reject_records_event_and_keeps_status():
    mgr, emp, project, task = _setup(status=Task.STATUS_IN_PROGRESS)
    event = task_service.reject(actor_for(emp), task.id, '  Blocked by missing permits  ')
    assert event.reason == 'Blocked by missing permits'
    assert event.actor_id == emp.id
    assert _fresh(task.id).status == Task.STATUS_IN_PROGRESS
    notes = get_db().query(Notification).filter_by(type=Notification.TYPE_TASK_REJECTED).filter(
        Notification.message.contains(f'Task #{task.id} ')).all()
    # project manager is also the task creator: one notification, never to the assignee
    assert [n.user_id for n in notes] == [mgr.id]
    assert get_db().query(ActivityLog).filter_by(action='TASK.REJECT', entity_id=str(task.id)).count() == 1


def test_reject_reason_boundary():
    _, emp, _, task = _setup()
    with pytest.raises(InvalidReason) as exc:
        task_service.reject(actor_for(emp), task.id, 'too short')
    assert exc.value.code == 400
    with pytest.raises(InvalidReason):
        task_service.reject(actor_for(emp), task.id, '   short     ')
    with pytest.raises(InvalidReason):
        task_service.reject(actor_for(emp), task.id, None)
    assert get_db().query(RejectionEvent).filter_by(task_id=task.id).count() == 0
    task_service.reject(actor_for(emp), task.id, '0123456789')
    assert get_db().query(RejectionEvent).filter_by(task_id=task.id).count() == 1


@pytest.mark.parametrize('reason', [12345678901, ['a long enough reason'], {'text': 'a long enough reason'}])
def test_non_text_reason_is_invalid(reason):
    _, emp, _, task = _setup()
    with pytest.raises(InvalidReason) as exc:
        task_service.reject(actor_for(emp), task.id, reason)
    assert exc.value.context() == {'resource': 'TASK', 'action': 'REJECT', 'record_id': task.id}
    assert get_db().query(RejectionEvent).filter_by(task_id=task.id).count() == 0


def test_only_assignee_may_reject():
    mgr, _, _, task = _setup()
    # ownership is checked before the reason
    with pytest.raises(NotAssignee) as exc:
        task_service.reject(actor_for(mgr), task.id, 'nope')
    assert exc.value.code == 403


@pytest.mark.parametrize('status', [Task.STATUS_COMPLETED, Task.STATUS_CANCELLED])
def test_terminal_task_cannot_be_rejected(status):
    _, emp, _, task = _setup(status=status)
    with pytest.raises(TaskNotRejectable):
        task_service.reject(actor_for(emp), task.id, 'a perfectly long reason')


def test_delete_task_ownership():
    mgr, emp, project, task = _setup()
    other_mgr = make_user('MANAGER')
    with pytest.raises(PermissionDenied):
        task_service.delete_task(actor_for(other_mgr), task.id)
    with pytest.raises(PermissionDenied):
        task_service.delete_task(actor_for(emp), task.id)
    task_service.delete_task(actor_for(mgr), task.id)
    assert get_db().get(Task, task.id) is None
    other = make_task(project, emp)
    task_service.delete_task(actor_for(make_user('ADMIN')), other.id)
    assert get_db().get(Task, other.id) is None


def test_assignee_edits_own_open_task():
    _, emp, _, task = _setup(Task.STATUS_IN_PROGRESS)
    edited = task_service.update_task(actor_for(emp), task.id, {'title': 'Pour footings', 'priority': 'HIGH'})
    assert edited.title == 'Pour footings'
    assert edited.priority == Task.PRIORITY_HIGH
    assert edited.status == Task.STATUS_IN_PROGRESS
    log = get_db().query(ActivityLog).filter_by(action='TASK.UPDATE', entity_id=str(task.id)).one()
    assert log.meta['changes']['title'] == {'before': 'Task', 'after': 'Pour footings'}


def test_employee_cannot_edit_someone_elses_task():
    _, _, project, task = _setup()
    stranger = make_user('EMPLOYEE')
    with pytest.raises(PermissionDenied) as exc:
        task_service.update_task(actor_for(stranger), task.id, {'title': 'Mine now'})
    assert exc.value.context()['record_id'] == task.id
    assert _fresh(task.id).title == 'Task'


@pytest.mark.parametrize('status', [Task.STATUS_COMPLETED, Task.STATUS_CANCELLED])
def test_employee_cannot_edit_terminal_task(status):
    _, emp, _, task = _setup(status)
    with pytest.raises(PermissionDenied):
        task_service.update_task(actor_for(emp), task.id, {'description': 'late note'})
    assert _fresh(task.id).description is None


def test_manager_edit_runs_status_through_fsm():
    mgr, emp, _, task = _setup()
    edited = task_service.update_task(actor_for(mgr), task.id, {'status': 'IN_REVIEW', 'assignee_id': None})
    assert edited.status == Task.STATUS_IN_REVIEW
    assert edited.assignee_id is None
    done = task_service.update_task(actor_for(mgr), task.id, {'status': 'COMPLETED'})
    assert done.completed_at is not None
    with pytest.raises(InvalidTransition):
        task_service.update_task(actor_for(mgr), task.id, {'status': 'TODO'})
    with pytest.raises(InvalidInput):
        task_service.update_task(actor_for(mgr), task.id, {'status': 'BOGUS'})


def test_update_task_validations():
    mgr, _, _, task = _setup()
    with pytest.raises(InvalidInput):
        task_service.update_task(actor_for(mgr), task.id, {'project_id': 99})
    with pytest.raises(InvalidInput):
        task_service.update_task(actor_for(mgr), task.id, {'assignee_id': 999999})
    with pytest.raises(InvalidInput):
        task_service.update_task(actor_for(mgr), task.id, {'title': '  '})
    with pytest.raises(NotFound):
        task_service.update_task(actor_for(mgr), 999999, {'title': 'Ghost'})


def test_reassignment_notifies_new_assignee():
    mgr, _, _, task = _setup()
    newcomer = make_user('EMPLOYEE')
    task_service.update_task(actor_for(mgr), task.id, {'assigned_to_id': newcomer.id})
    assert _fresh(task.id).assignee_id == newcomer.id
    notes = get_db().query(Notification).filter_by(user_id=newcomer.id, type=Notification.TYPE_TASK_ASSIGNED).all()
    assert len(notes) == 1


def test_lost_edit_race_is_a_conflict(monkeypatch):
    _, emp, _, task = _setup(Task.STATUS_IN_PROGRESS)
    task_service.transition(actor_for(emp), task.id, Task.STATUS_IN_REVIEW)
    real_load = task_service.load_task

    def stale_load(session, task_id):
        t = real_load(session, task_id)
        # read before the move to IN_REVIEW committed
        set_committed_value(t, 'status', Task.STATUS_IN_PROGRESS)
        return t

    monkeypatch.setattr(task_service, 'load_task', stale_load)
    with pytest.raises(Conflict):
        task_service.update_task(actor_for(emp), task.id, {'title': 'Racing edit'})
    monkeypatch.undo()
    fresh = _fresh(task.id)
    assert fresh.title == 'Task'
    assert fresh.status == Task.STATUS_IN_REVIEW
