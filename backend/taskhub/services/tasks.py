from __future__ import annotations
"""Task lifecycle.

Stateless: every call re-reads the task inside its own transaction, checks the
access gate against that fresh row, then writes with a status-guarded UPDATE
so two concurrent requests cannot both win the same transition.

    TODO <-> IN_PROGRESS <-> IN_REVIEW   (any order, rework allowed)
    any of those -> COMPLETED | CANCELLED (terminal)

Rejection is a side channel: it records a RejectionEvent and notifies the
project's stakeholders but never touches the task status.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from sqlalchemy import select, update
from taskhub import get_db
from taskhub.constants.permissions import Resource, Action
from taskhub.errors import (
    AlreadyCompleted, Conflict, InvalidInput, InvalidReason, NotAssignee, NotFound,
    TaskNotRejectable,
)
from taskhub.models.project import Project
from taskhub.models.stage import Stage
from taskhub.models.task import Task, RejectionEvent
from taskhub.models.authz import User
from taskhub.services.access import Actor, authorize
from taskhub.services.activity import add_activity
from taskhub.services.notifications import dispatch, notify_task_rejected
from taskhub.models.notification import Notification
from taskhub.utils.fsm import TransitionValidator
from taskhub.utils.validation import validate_status, require_text, optional_int, optional_date

log = logging.getLogger(__name__)

MIN_REJECTION_REASON = 10

_OPEN = (Task.STATUS_TODO, Task.STATUS_IN_PROGRESS, Task.STATUS_IN_REVIEW)

TASK_FSM = TransitionValidator({
    state: (set(_OPEN) - {state}) | {Task.STATUS_COMPLETED, Task.STATUS_CANCELLED}
    for state in _OPEN
} | {
    Task.STATUS_COMPLETED: set(),
    Task.STATUS_CANCELLED: set(),
}, resource=Resource.TASK.value)


@dataclass(frozen=True)
class TaskDraft:
    """Fields for a task about to be created; only title is required."""
    title: str
    description: Optional[str] = None
    priority: str = Task.PRIORITY_MEDIUM
    assignee_id: Optional[int] = None
    due_date: Any = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TaskDraft':
        if not isinstance(data, dict):
            raise InvalidInput('task draft must be an object')
        priority = data.get('priority') or Task.PRIORITY_MEDIUM
        return cls(
            title=require_text(data.get('title'), 'title'),
            description=(data.get('description') or None),
            priority=validate_status(priority, Task.ALL_PRIORITIES, 'priority'),
            # legacy clients send assigned_to_id
            assignee_id=optional_int(data.get('assignee_id', data.get('assigned_to_id')), 'assignee_id'),
            due_date=optional_date(data.get('due_date'), 'due_date'),
        )

    def build(self, project_id: int, created_by: int, stage_id: Optional[int] = None,
              status: str = Task.STATUS_TODO) -> Task:
        return Task(
            project_id=project_id,
            stage_id=stage_id,
            assignee_id=self.assignee_id,
            title=self.title,
            description=self.description,
            priority=self.priority,
            due_date=self.due_date,
            status=status,
            created_by=created_by,
        )


def load_task(session, task_id: int) -> Task:
    """Fresh read of the task row; locks it where the backend supports FOR UPDATE."""
    stmt = (
        select(Task).where(Task.id == task_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    task = session.execute(stmt).scalar_one_or_none()
    if task is None:
        raise NotFound(f"Task {task_id} not found", resource=Resource.TASK.value, record_id=task_id)
    return task


def check_assignees(session, drafts) -> None:
    ids = {d.assignee_id for d in drafts if d.assignee_id is not None}
    if not ids:
        return
    found = set(session.execute(select(User.id).where(User.id.in_(ids))).scalars())
    missing = ids - found
    if missing:
        raise InvalidInput(f"Unknown assignee ids: {sorted(missing)}", resource=Resource.USER.value)


def _guarded_status_update(session, task: Task, expected, values: Dict[str, Any]) -> int:
    stmt = (
        update(Task)
        .where(Task.id == task.id, Task.status.in_(expected))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return session.execute(stmt).rowcount


def create_task(actor: Actor, data: Dict[str, Any], session=None) -> Task:
    session = session or get_db()
    authorize(actor, Resource.TASK, Action.CREATE)
    draft = TaskDraft.from_dict(data)
    project_id = optional_int(data.get('project_id'), 'project_id')
    if project_id is None:
        raise InvalidInput('project_id required', resource=Resource.TASK.value)
    status = validate_status(data.get('status') or Task.STATUS_TODO, _OPEN)
    try:
        if session.get(Project, project_id) is None:
            raise NotFound(f"Project {project_id} not found", resource=Resource.PROJECT.value, record_id=project_id)
        stage_id = optional_int(data.get('stage_id'), 'stage_id')
        if stage_id is not None:
            stage = session.get(Stage, stage_id)
            if stage is None or stage.project_id != project_id:
                raise InvalidInput('stage_id does not belong to project', resource=Resource.STAGE.value, record_id=stage_id)
        check_assignees(session, [draft])
        task = draft.build(project_id, actor.identity, stage_id=stage_id, status=status)
        session.add(task)
        session.flush()
        add_activity(actor.identity, 'TASK.CREATE', 'Task', task.id, f"Task '{task.title}' created",
                     {'project_id': project_id, 'status': task.status, 'priority': task.priority}, session=session)
        dispatch([task.assignee_id], Notification.TYPE_TASK_ASSIGNED, f"New task: {task.title}",
                 f"Task #{task.id} was assigned to you.", exclude=actor.identity, session=session)
        session.commit()
    except Exception:
        session.rollback()
        raise
    return task


def mark_completed(actor: Actor, task_id: int, session=None) -> Task:
    """Move an open task to COMPLETED; a second call raises AlreadyCompleted."""
    session = session or get_db()
    authorize(actor, Resource.TASK, Action.UPDATE)
    try:
        task = load_task(session, task_id)
        if task.status == Task.STATUS_COMPLETED:
            raise AlreadyCompleted(f"Task {task.id} is already completed", resource=Resource.TASK.value,
                                   action=Action.UPDATE.value, record_id=task.id)
        TASK_FSM.assert_can_transition(task.status, Task.STATUS_COMPLETED, record_id=task.id)
        authorize(actor, Resource.TASK, Action.UPDATE, task)
        previous = task.status
        now = datetime.now(timezone.utc)
        if _guarded_status_update(session, task, _OPEN, {'status': Task.STATUS_COMPLETED, 'completed_at': now}) != 1:
            # lost the race to a concurrent completion/cancellation
            raise AlreadyCompleted(f"Task {task.id} is already completed", resource=Resource.TASK.value,
                                   action=Action.UPDATE.value, record_id=task.id)
        session.refresh(task)
        add_activity(actor.identity, 'TASK.COMPLETE', 'Task', task.id, f"Task '{task.title}' marked completed",
                     {'changes': {'status': {'before': previous, 'after': task.status}}}, session=session)
        session.commit()
    except Exception:
        session.rollback()
        raise
    log.info('task %s completed by %s', task.id, actor.identity)
    return task


def transition(actor: Actor, task_id: int, target: str, session=None) -> Task:
    """Generic status move (rework between open states, cancel)."""
    validate_status(target, Task.ALL_STATUSES)
    if target == Task.STATUS_COMPLETED:
        return mark_completed(actor, task_id, session=session)
    session = session or get_db()
    authorize(actor, Resource.TASK, Action.UPDATE)
    try:
        task = load_task(session, task_id)
        TASK_FSM.assert_can_transition(task.status, target, record_id=task.id)
        authorize(actor, Resource.TASK, Action.UPDATE, task)
        previous = task.status
        if _guarded_status_update(session, task, (previous,), {'status': target}) != 1:
            raise Conflict(f"Task {task.id} changed concurrently", resource=Resource.TASK.value,
                           action=Action.UPDATE.value, record_id=task.id)
        session.refresh(task)
        add_activity(actor.identity, 'TASK.STATUS', 'Task', task.id, f"Task '{task.title}' moved to {target}",
                     {'changes': {'status': {'before': previous, 'after': target}}}, session=session)
        session.commit()
    except Exception:
        session.rollback()
        raise
    return task


def reject(actor: Actor, task_id: int, reason: Optional[str], session=None) -> RejectionEvent:
    """Assignee declines a task. The task keeps its status; stakeholders are notified."""
    session = session or get_db()
    try:
        task = load_task(session, task_id)
        if task.assignee_id != actor.identity:
            raise NotAssignee(f"Task {task.id} is not assigned to you", resource=Resource.TASK.value,
                              action='REJECT', record_id=task.id)
        if task.is_terminal:
            raise TaskNotRejectable(f"Task {task.id} is {task.status} and cannot be rejected",
                                    resource=Resource.TASK.value, action='REJECT', record_id=task.id)
        if reason is not None and not isinstance(reason, str):
            raise InvalidReason('Rejection reason must be text', resource=Resource.TASK.value, action='REJECT',
                                record_id=task.id)
        cleaned = (reason or '').strip()
        if len(cleaned) < MIN_REJECTION_REASON:
            raise InvalidReason(f"Rejection reason must be at least {MIN_REJECTION_REASON} characters",
                                resource=Resource.TASK.value, action='REJECT', record_id=task.id)
        event = RejectionEvent(task_id=task.id, actor_id=actor.identity, reason=cleaned)
        session.add(event)
        session.flush()
        notify_task_rejected(task, event, session=session)
        add_activity(actor.identity, 'TASK.REJECT', 'Task', task.id, f"Task '{task.title}' rejected by assignee",
                     {'reason': cleaned, 'status': task.status}, session=session)
        session.commit()
    except Exception:
        session.rollback()
        raise
    log.info('task %s rejected by assignee %s', task.id, actor.identity)
    return event


UPDATABLE_FIELDS = ('title', 'description', 'priority', 'assignee_id', 'stage_id', 'due_date', 'status')


def _field_values(session, task: Task, data: Dict[str, Any]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    if 'title' in data:
        values['title'] = require_text(data['title'], 'title')
    if 'description' in data:
        values['description'] = data['description'] or None
    if 'priority' in data:
        values['priority'] = validate_status(data['priority'], Task.ALL_PRIORITIES, 'priority')
    if 'assignee_id' in data or 'assigned_to_id' in data:
        assignee_id = optional_int(data.get('assignee_id', data.get('assigned_to_id')), 'assignee_id')
        if assignee_id is not None:
            check_assignees(session, [TaskDraft(title=task.title, assignee_id=assignee_id)])
        values['assignee_id'] = assignee_id
    if 'stage_id' in data:
        stage_id = optional_int(data['stage_id'], 'stage_id')
        if stage_id is not None:
            stage = session.get(Stage, stage_id)
            if stage is None or stage.project_id != task.project_id:
                raise InvalidInput('stage_id does not belong to project', resource=Resource.STAGE.value,
                                   record_id=stage_id)
        values['stage_id'] = stage_id
    if 'due_date' in data:
        values['due_date'] = optional_date(data['due_date'], 'due_date')
    return {k: v for k, v in values.items() if getattr(task, k) != v}


def update_task(actor: Actor, task_id: int, data: Dict[str, Any], session=None) -> Task:
    """Edit task fields; employees only their own open tasks.

    A `status` key is accepted and goes through the same FSM as `transition`.
    The write is guarded on the status that was read, so an edit cannot
    resurrect a task completed in the meantime.
    """
    session = session or get_db()
    authorize(actor, Resource.TASK, Action.UPDATE)
    if not isinstance(data, dict):
        raise InvalidInput('body must be an object', resource=Resource.TASK.value)
    unknown = sorted(set(data) - set(UPDATABLE_FIELDS) - {'assigned_to_id'})
    if unknown:
        raise InvalidInput(f"unknown fields: {unknown}", resource=Resource.TASK.value, record_id=task_id)
    try:
        task = load_task(session, task_id)
        authorize(actor, Resource.TASK, Action.UPDATE, task)
        previous = task.status
        values = _field_values(session, task, data)
        target = data.get('status')
        if target is not None and target != previous:
            validate_status(target, Task.ALL_STATUSES)
            TASK_FSM.assert_can_transition(previous, target, record_id=task.id)
            values['status'] = target
            if target == Task.STATUS_COMPLETED:
                values['completed_at'] = datetime.now(timezone.utc)
        if not values:
            session.commit()
            return task
        changes = {k: {'before': _plain(getattr(task, k)), 'after': _plain(v)}
                   for k, v in values.items() if k != 'completed_at'}
        old_assignee = task.assignee_id
        if _guarded_status_update(session, task, (previous,), values) != 1:
            raise Conflict(f"Task {task.id} changed concurrently", resource=Resource.TASK.value,
                           action=Action.UPDATE.value, record_id=task.id)
        session.refresh(task)
        add_activity(actor.identity, 'TASK.UPDATE', 'Task', task.id, f"Task '{task.title}' updated",
                     {'changes': changes}, session=session)
        if task.assignee_id != old_assignee:
            dispatch([task.assignee_id], Notification.TYPE_TASK_ASSIGNED, f"New task: {task.title}",
                     f"Task #{task.id} was assigned to you.", exclude=actor.identity, session=session)
        session.commit()
    except Exception:
        session.rollback()
        raise
    return task


def _plain(value):
    return value.isoformat() if hasattr(value, 'isoformat') else value


def delete_task(actor: Actor, task_id: int, session=None) -> None:
    """Admins delete any task; managers only tasks of projects they manage."""
    session = session or get_db()
    authorize(actor, Resource.TASK, Action.DELETE)
    try:
        task = load_task(session, task_id)
        authorize(actor, Resource.TASK, Action.DELETE, task)
        snapshot = {'title': task.title, 'project_id': task.project_id, 'status': task.status}
        session.delete(task)
        add_activity(actor.identity, 'TASK.DELETE', 'Task', task_id, f"Task '{task.title}' deleted", snapshot,
                     session=session)
        session.commit()
    except Exception:
        session.rollback()
        raise

__all__ = [
    'TASK_FSM', 'TaskDraft', 'MIN_REJECTION_REASON', 'load_task', 'check_assignees', 'create_task',
    'mark_completed', 'transition', 'reject', 'update_task', 'UPDATABLE_FIELDS', 'delete_task',
]
