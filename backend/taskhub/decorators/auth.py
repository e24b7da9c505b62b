from functools import wraps
from flask import g
from taskhub.constants.permissions import Resource, Action
from taskhub.services.access import authorize, current_actor


def require_capability(resource: Resource, action: Action):
    """Role-tier gate for a view; exposes the request actor as flask.g.actor.

    Record-level ownership is checked where the record is loaded.
    """
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            actor = current_actor()
            authorize(actor, resource, action)
            g.actor = actor
            return fn(*args, **kwargs)
        return wrapper
    return outer
