"""Test seeding utilities to reduce duplication.

Every helper commits, so records are visible to requests made through the
test client (same scoped session, same in-memory database). Emails must be
unique per test because the database lives for the whole session.
"""
import itertools
from typing import Optional
from sqlalchemy import select
from taskhub import get_db
from taskhub.models.authz import User
from taskhub.models.project import Project
from taskhub.models.stage import Stage
from taskhub.models.task import Task
from taskhub.services.access import Actor

_seq = itertools.count(1)


def unique_email(prefix: str) -> str:
    return f"{prefix}{next(_seq)}@example.com"


def ensure_user(email: str, role: str = 'EMPLOYEE', name: Optional[str] = None, password: str = 'pw') -> User:
    """Idempotently ensure a user exists (by email) with the given raw role."""
    session = get_db()
    u = session.execute(select(User).where(User.email==email)).scalar_one_or_none()
    if not u:
        u = User(name=name or email.split('@')[0], email=email, role=role, password_hash='')
        u.set_password(password)
        session.add(u); session.commit(); session.refresh(u)
    return u


def make_user(role: str = 'EMPLOYEE', prefix: Optional[str] = None) -> User:
    return ensure_user(unique_email(prefix or role.lower()), role=role)


def actor_for(user: User) -> Actor:
    return Actor.from_raw(user.id, user.role)


def login_headers(client, user: User, password: str = 'pw'):
    resp = client.post('/auth/login', json={'email': user.email, 'password': password})
    assert resp.status_code == 200
    return {'Authorization': f"Bearer {resp.get_json()['access_token']}"}


def make_project(manager: Optional[User] = None, title: str = 'Project', status: str = Project.STATUS_IN_PROGRESS) -> Project:
    session = get_db()
    p = Project(title=title, status=status, manager_id=manager.id if manager else None,
                created_by=manager.id if manager else 0)
    session.add(p); session.commit(); session.refresh(p)
    return p


def make_stage(project: Project, name: str = 'Stage', status: str = Stage.STATUS_PENDING, order: int = 1) -> Stage:
    session = get_db()
    s = Stage(project_id=project.id, name=name, status=status, order=order)
    session.add(s); session.commit(); session.refresh(s)
    return s


def make_task(project: Project, assignee: Optional[User] = None, status: str = Task.STATUS_TODO,
              stage: Optional[Stage] = None, title: str = 'Task', created_by: Optional[int] = None) -> Task:
    session = get_db()
    t = Task(project_id=project.id, stage_id=stage.id if stage else None,
             assignee_id=assignee.id if assignee else None, title=title, status=status,
             created_by=created_by if created_by is not None else project.manager_id)
    session.add(t); session.commit(); session.refresh(t)
    return t


__all__ = [
    'unique_email', 'ensure_user', 'make_user', 'actor_for', 'login_headers', 'make_project', 'make_stage',
    'make_task',
]
