#!/usr/bin/env python
"""Idempotent seed script for demo users and a sample project.

Usage:
    python backend/scripts/seed_demo.py                # seed normally
    python backend/scripts/seed_demo.py --show-matrix  # print role -> resource capabilities
    python backend/scripts/seed_demo.py --dry-run      # run logic then rollback (no DB changes)
    python backend/scripts/seed_demo.py --export-json matrix.json --fail-if-changed <sha256>
"""
from __future__ import annotations
import os, sys, argparse, textwrap, json, hashlib
from sqlalchemy import select, text

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from taskhub import create_app, get_db  # type: ignore
from taskhub.constants.permissions import Role, Resource
from taskhub.models.authz import Base, User
from taskhub.models.project import Project
from taskhub.models.stage import Stage
from taskhub.models.task import Task
import taskhub.models.document, taskhub.models.activity, taskhub.models.notification  # noqa: F401
from taskhub.services.capabilities import capability_table

# email -> (name, raw stored role)
DEMO_USERS = {
    'admin@example.com': ('Admin', 'ADMIN'),
    'manager@example.com': ('Morgan Manager', 'PROJECT_MANAGER'),
    'employee@example.com': ('Eli Employee', 'EMPLOYEE'),
}

DEMO_STAGES = ('Design', 'Foundations', 'Structure', 'Finishing')


def ensure_users(session):
    existing = {u.email: u for u in session.execute(select(User)).scalars().all()}
    created = 0
    password = os.getenv('SEED_DEMO_PASSWORD', 'ChangeMe123!')
    for email, (name, role) in DEMO_USERS.items():
        if email in existing:
            continue
        user = User(name=name, email=email, role=role, password_hash='')
        user.set_password(password)
        session.add(user)
        existing[email] = user
        created += 1
    session.flush()
    return existing, created


def ensure_demo_project(session, users):
    title = 'Demo: Riverside Offices'
    if session.execute(select(Project).where(Project.title==title)).scalar_one_or_none():
        return 0
    manager = users['manager@example.com']
    employee = users['employee@example.com']
    project = Project(title=title, status=Project.STATUS_IN_PROGRESS, manager_id=manager.id, created_by=manager.id)
    session.add(project)
    session.flush()
    stages = [Stage(project_id=project.id, name=name, order=i) for i, name in enumerate(DEMO_STAGES, start=1)]
    session.add_all(stages)
    session.flush()
    session.add_all([
        Task(project_id=project.id, stage_id=stages[0].id, assignee_id=employee.id, title='Site survey',
             priority=Task.PRIORITY_HIGH, created_by=manager.id),
        Task(project_id=project.id, stage_id=stages[0].id, assignee_id=employee.id, title='Draft floor plans',
             created_by=manager.id),
    ])
    return 1


def build_matrix_map():
    return {role.value: capability_table(role) for role in Role}


def matrix_checksum(matrix):
    canonical = json.dumps(matrix, sort_keys=True, separators=(',', ':'))
    return hashlib.sha256(canonical.encode('utf-8')).hexdigest()


def print_matrix(matrix):
    res_w = max(len(r.value) for r in Resource)
    roles = sorted(matrix)
    print(f"{'Resource'.ljust(res_w)} | " + ' | '.join(r.ljust(16) for r in roles))
    print('-' * (res_w + 19 * len(roles)))
    for resource in Resource:
        cells = [','.join(a[0] for a in matrix[r][resource.value]) or '-' for r in roles]
        print(f"{resource.value.ljust(res_w)} | " + ' | '.join(c.ljust(16) for c in cells))


def parse_args():
    p = argparse.ArgumentParser(
        description="Seed demo users & project; inspect the capability matrix",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed normally: seed_demo.py\n  dry run: seed_demo.py --dry-run\n  show matrix: seed_demo.py --show-matrix\n""")
    )
    p.add_argument('--show-matrix', action='store_true', help='Print the role capability matrix')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    p.add_argument('--no-project', action='store_true', help='Seed users only')
    p.add_argument('--export-json', nargs='?', const='-', metavar='FILE', help='Export the capability matrix JSON (to FILE or stdout if omitted)')
    p.add_argument('--fail-if-changed', metavar='CHECKSUM', help='Exit 4 if the matrix checksum differs from the provided value')
    return p.parse_args()


def main():
    args = parse_args()
    app = create_app()
    with app.app_context():
        session = get_db()
        try:
            session.execute(text('SELECT 1 FROM users LIMIT 1'))
        except Exception:
            # Auto-create schema for bootstrap; in real env prefer alembic upgrade
            session.rollback()
            Base.metadata.create_all(session.get_bind())
        finally:
            session.commit()

    matrix = build_matrix_map()
    checksum = matrix_checksum(matrix)
    if args.fail_if_changed and checksum != args.fail_if_changed:
        print(f"[CHECKSUM] MISMATCH: expected {args.fail_if_changed} got {checksum}")
        sys.exit(4)

    with app.app_context():
        session = get_db()
        try:
            users, created_u = ensure_users(session)
            created_p = 0 if args.no_project else ensure_demo_project(session, users)
            if args.dry_run:
                session.rollback()
                print(f"[DRY-RUN] (rolled back) Users would create: {created_u}, Projects would create: {created_p}")
            else:
                session.commit()
                print(f"[DONE] Users created: {created_u}, Projects created: {created_p}")
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    if args.show_matrix:
        print('\nCapability Matrix:')
        print_matrix(matrix)
    if args.export_json is not None:
        payload = {'matrix': matrix, 'meta': {'matrix_checksum_sha256': checksum, 'roles': sorted(matrix)}}
        if args.export_json == '-':
            print(json.dumps(payload, indent=2, sort_keys=True))
        else:
            with open(args.export_json, 'w', encoding='utf-8') as f:
                json.dump(payload, f, indent=2, sort_keys=True)
            print(f"[INFO] Exported JSON to {args.export_json}")

if __name__ == '__main__':
    main()
