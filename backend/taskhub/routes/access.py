from __future__ import annotations
"""Read-only view of the caller's capabilities.

Clients use these to hide buttons and menu entries; the server re-checks
every operation regardless of what the client shows.
"""
from flask import Blueprint, request, abort
from taskhub.services.access import current_actor, can_access_route, accessible_routes
from taskhub.services.capabilities import capability_table

access_bp = Blueprint('access', __name__)


@access_bp.get('/capabilities')
def my_capabilities():
    actor = current_actor()
    return {'role': actor.role.value, 'capabilities': capability_table(actor.role)}


@access_bp.get('/routes')
def my_routes():
    actor = current_actor()
    return {
        'role': actor.role.value,
        'routes': [
            {'path': r.path, 'exact': r.exact, 'allowed_roles': sorted(x.value for x in r.allowed_roles)}
            for r in accessible_routes(actor.role)
        ],
    }


@access_bp.get('/routes/check')
def check_route():
    actor = current_actor()
    path = request.args.get('path')
    if not path:
        abort(400, description='path required')
    return {'path': path, 'allowed': can_access_route(actor.role, path)}
