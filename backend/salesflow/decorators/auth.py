from functools import wraps
from typing import Sequence, Union
from flask import g
from flask_jwt_extended import verify_jwt_in_request
from salesflow.services.policy import authz_engine, current_roles


def require_permission(action: Union[str, Sequence[str]], resource: str):
    """Verify the bearer token, resolve its roles and ask the engine.

    ``action`` may be a tuple of alternatives, e.g. ('createAny', 'createOwn'); any grant
    suffices. The resolved roles are left on ``g.roles`` for the view.
    """
    actions = (action,) if isinstance(action, str) else tuple(action)

    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            roles = current_roles()
            authz_engine().check_any(roles, actions, resource)
            g.roles = roles
            return fn(*args, **kwargs)
        return wrapper
    return outer
