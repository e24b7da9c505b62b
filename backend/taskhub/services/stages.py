from __future__ import annotations
"""Stage lifecycle.

    PENDING -> IN_PROGRESS | BLOCKED | COMPLETED
    IN_PROGRESS -> BLOCKED | COMPLETED
    BLOCKED -> IN_PROGRESS | COMPLETED
    COMPLETED is terminal and reached at most once.

`complete_stage` is the one multi-record write: the stage flips to COMPLETED
and every successor task is inserted in the same transaction. The flip is a
conditional UPDATE (status != COMPLETED); its rowcount picks the single winner
when two requests race, and the loser rolls back without creating anything.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
from sqlalchemy import func, select, update
from taskhub import get_db
from taskhub.constants.permissions import Resource, Action
from taskhub.errors import AlreadyCompleted, Conflict, InvalidInput, InvalidTransition, NotFound
from taskhub.models.project import Project
from taskhub.models.stage import Stage
from taskhub.models.task import Task
from taskhub.services.access import Actor, authorize
from taskhub.services.activity import add_activity
from taskhub.services.notifications import notify_stage_completed
from taskhub.services.tasks import TaskDraft, check_assignees
from taskhub.utils.fsm import TransitionValidator
from taskhub.utils.validation import require_text, optional_int, validate_status

log = logging.getLogger(__name__)

STAGE_FSM = TransitionValidator({
    Stage.STATUS_PENDING: {Stage.STATUS_IN_PROGRESS, Stage.STATUS_BLOCKED, Stage.STATUS_COMPLETED},
    Stage.STATUS_IN_PROGRESS: {Stage.STATUS_BLOCKED, Stage.STATUS_COMPLETED},
    Stage.STATUS_BLOCKED: {Stage.STATUS_IN_PROGRESS, Stage.STATUS_COMPLETED},
    Stage.STATUS_COMPLETED: set(),
}, resource=Resource.STAGE.value)


def load_stage(session, stage_id: int) -> Stage:
    stmt = (
        select(Stage).where(Stage.id == stage_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    stage = session.execute(stmt).scalar_one_or_none()
    if stage is None:
        raise NotFound(f"Stage {stage_id} not found", resource=Resource.STAGE.value, record_id=stage_id)
    return stage


def _already_completed(stage_id) -> AlreadyCompleted:
    return AlreadyCompleted(f"Stage {stage_id} is already completed", resource=Resource.STAGE.value,
                            action=Action.UPDATE.value, record_id=stage_id)


def _lost_race(session, stage_id):
    """Conditional UPDATE matched nothing: the stage was completed or deleted meanwhile."""
    if session.execute(select(Stage.id).where(Stage.id == stage_id)).scalar_one_or_none() is None:
        return NotFound(f"Stage {stage_id} not found", resource=Resource.STAGE.value, record_id=stage_id)
    return _already_completed(stage_id)


def create_stage(actor: Actor, data: Dict[str, Any], session=None) -> Stage:
    session = session or get_db()
    authorize(actor, Resource.STAGE, Action.CREATE)
    name = require_text(data.get('name'), 'name')
    project_id = optional_int(data.get('project_id'), 'project_id')
    if project_id is None:
        raise InvalidInput('project_id required', resource=Resource.STAGE.value)
    try:
        if session.get(Project, project_id) is None:
            raise NotFound(f"Project {project_id} not found", resource=Resource.PROJECT.value, record_id=project_id)
        order = optional_int(data.get('order'), 'order')
        if order is None:
            # append after the existing stages of the project
            count = session.execute(select(func.count(Stage.id)).where(Stage.project_id == project_id)).scalar_one()
            order = count + 1
        stage = Stage(
            project_id=project_id,
            name=name,
            description=data.get('description') or None,
            order=order,
            duration_days=optional_int(data.get('duration_days', data.get('duration')), 'duration_days'),
            status=Stage.STATUS_PENDING,
        )
        session.add(stage)
        session.flush()
        add_activity(actor.identity, 'STAGE.CREATE', 'Stage', stage.id, f"Stage '{stage.name}' created",
                     {'project_id': project_id, 'order': order}, session=session)
        session.commit()
    except Exception:
        session.rollback()
        raise
    return stage


def complete_stage(actor: Actor, stage_id: int,
                   successor_tasks: Optional[Iterable[Union[TaskDraft, Dict[str, Any]]]] = None,
                   session=None) -> Tuple[Stage, List[Task]]:
    """Complete a stage and create its successor tasks, all or nothing.

    Successor tasks land in the stage's project with no stage link (they are
    the next stage's work) and status TODO.
    """
    session = session or get_db()
    authorize(actor, Resource.STAGE, Action.UPDATE)
    drafts = [d if isinstance(d, TaskDraft) else TaskDraft.from_dict(d) for d in (successor_tasks or [])]
    try:
        stage = load_stage(session, stage_id)
        authorize(actor, Resource.STAGE, Action.UPDATE, stage)
        if stage.status == Stage.STATUS_COMPLETED:
            raise _already_completed(stage.id)
        STAGE_FSM.assert_can_transition(stage.status, Stage.STATUS_COMPLETED, record_id=stage.id)
        check_assignees(session, drafts)
        previous = stage.status
        now = datetime.now(timezone.utc)
        flip = (
            update(Stage)
            .where(Stage.id == stage.id, Stage.status != Stage.STATUS_COMPLETED)
            .values(status=Stage.STATUS_COMPLETED, completed_at=now)
            .execution_options(synchronize_session=False)
        )
        if session.execute(flip).rowcount != 1:
            raise _lost_race(session, stage.id)
        created = [d.build(stage.project_id, actor.identity, stage_id=None) for d in drafts]
        session.add_all(created)
        session.flush()
        session.refresh(stage)
        add_activity(
            actor.identity, 'STAGE.COMPLETE', 'Stage', stage.id,
            f"Stage '{stage.name}' completed with {len(created)} new task(s)",
            {
                'changes': {'status': {'before': previous, 'after': stage.status}},
                'created_task_ids': [t.id for t in created],
            },
            session=session,
        )
        notify_stage_completed(stage, created, actor.identity, session=session)
        session.commit()
    except Exception:
        session.rollback()
        log.warning('stage %s completion rolled back', stage_id)
        raise
    log.info('stage %s completed by %s, %s successor task(s)', stage.id, actor.identity, len(created))
    return stage, created


def _move(actor: Actor, stage_id: int, target: str, action_code: str, session=None,
          required_from: Optional[str] = None) -> Stage:
    session = session or get_db()
    authorize(actor, Resource.STAGE, Action.UPDATE)
    try:
        stage = load_stage(session, stage_id)
        authorize(actor, Resource.STAGE, Action.UPDATE, stage)
        if required_from is not None and stage.status != required_from:
            raise InvalidTransition(f"Stage {stage.id} is {stage.status}, expected {required_from}",
                                    resource=Resource.STAGE.value, action=Action.UPDATE.value, record_id=stage.id)
        STAGE_FSM.assert_can_transition(stage.status, target, record_id=stage.id)
        previous = stage.status
        stmt = (
            update(Stage)
            .where(Stage.id == stage.id, Stage.status == previous)
            .values(status=target)
            .execution_options(synchronize_session=False)
        )
        if session.execute(stmt).rowcount != 1:
            raise Conflict(f"Stage {stage.id} changed concurrently", resource=Resource.STAGE.value,
                           action=Action.UPDATE.value, record_id=stage.id)
        session.refresh(stage)
        add_activity(actor.identity, action_code, 'Stage', stage.id, f"Stage '{stage.name}' moved to {target}",
                     {'changes': {'status': {'before': previous, 'after': target}}}, session=session)
        session.commit()
    except Exception:
        session.rollback()
        raise
    return stage


def start_stage(actor: Actor, stage_id: int, session=None) -> Stage:
    return _move(actor, stage_id, Stage.STATUS_IN_PROGRESS, 'STAGE.START', session=session)


def block_stage(actor: Actor, stage_id: int, session=None) -> Stage:
    return _move(actor, stage_id, Stage.STATUS_BLOCKED, 'STAGE.BLOCK', session=session)


def unblock_stage(actor: Actor, stage_id: int, session=None) -> Stage:
    return _move(actor, stage_id, Stage.STATUS_IN_PROGRESS, 'STAGE.UNBLOCK', session=session,
                 required_from=Stage.STATUS_BLOCKED)


def update_stage(actor: Actor, stage_id: int, data: Dict[str, Any], session=None) -> Stage:
    """Partial edit of a stage's fields.

    `status` may move the stage along the FSM except into COMPLETED, which only
    `complete_stage` reaches because it also creates the successor tasks.
    """
    session = session or get_db()
    authorize(actor, Resource.STAGE, Action.UPDATE)
    if not isinstance(data, dict):
        raise InvalidInput('body must be an object', resource=Resource.STAGE.value)
    try:
        stage = load_stage(session, stage_id)
        authorize(actor, Resource.STAGE, Action.UPDATE, stage)
        values: Dict[str, Any] = {}
        if 'name' in data:
            values['name'] = require_text(data['name'], 'name')
        if 'description' in data:
            values['description'] = data['description'] or None
        if 'order' in data:
            order = optional_int(data['order'], 'order')
            if order is None or order < 1:
                raise InvalidInput('order must be a positive int', resource=Resource.STAGE.value, record_id=stage.id)
            values['order'] = order
        if 'duration_days' in data or 'duration' in data:
            values['duration_days'] = optional_int(data.get('duration_days', data.get('duration')), 'duration_days')
        previous = stage.status
        target = data.get('status')
        if target is not None and target != previous:
            validate_status(target, Stage.ALL_STATUSES)
            if target == Stage.STATUS_COMPLETED:
                raise InvalidTransition(f"Stage {stage.id} is completed through its complete action",
                                        resource=Resource.STAGE.value, action=Action.UPDATE.value,
                                        record_id=stage.id)
            STAGE_FSM.assert_can_transition(previous, target, record_id=stage.id)
            values['status'] = target
        values = {k: v for k, v in values.items() if getattr(stage, k) != v}
        if values:
            changes = {k: {'before': getattr(stage, k), 'after': v} for k, v in values.items()}
            stmt = (
                update(Stage)
                .where(Stage.id == stage.id, Stage.status == previous)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if session.execute(stmt).rowcount != 1:
                raise Conflict(f"Stage {stage.id} changed concurrently", resource=Resource.STAGE.value,
                               action=Action.UPDATE.value, record_id=stage.id)
            session.refresh(stage)
            add_activity(actor.identity, 'STAGE.UPDATE', 'Stage', stage.id, f"Stage '{stage.name}' updated",
                         {'changes': changes}, session=session)
        session.commit()
    except Exception:
        session.rollback()
        raise
    return stage


def delete_stage(actor: Actor, stage_id: int, session=None) -> List[int]:
    """Delete a stage, keeping its tasks: they are detached (stage_id cleared), never removed.

    Returns the ids of the detached tasks.
    """
    session = session or get_db()
    authorize(actor, Resource.STAGE, Action.DELETE)
    try:
        stage = load_stage(session, stage_id)
        authorize(actor, Resource.STAGE, Action.DELETE, stage)
        task_ids = list(session.execute(select(Task.id).where(Task.stage_id == stage.id)).scalars())
        session.execute(
            update(Task)
            .where(Task.stage_id == stage.id)
            .values(stage_id=None)
            .execution_options(synchronize_session='fetch')
        )
        session.delete(stage)
        add_activity(actor.identity, 'STAGE.DELETE', 'Stage', stage_id, f"Stage '{stage.name}' deleted",
                     {'project_id': stage.project_id, 'detached_task_ids': task_ids}, session=session)
        session.commit()
    except Exception:
        session.rollback()
        raise
    return task_ids

__all__ = [
    'STAGE_FSM', 'load_stage', 'create_stage', 'complete_stage', 'start_stage', 'block_stage',
    'unblock_stage', 'update_stage', 'delete_stage',
]
