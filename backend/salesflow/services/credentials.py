from __future__ import annotations
from datetime import timedelta
from typing import List
from flask import current_app, jsonify
from flask_jwt_extended import create_access_token
from sqlalchemy import select

from salesflow.models.authz import User


def issue_access_token(user: User, roles: List[str]) -> str:
    hours = int(current_app.config.get('JWT_ACCESS_TOKEN_HOURS', 24))
    return create_access_token(
        identity=str(user.id),
        additional_claims={'email': user.email, 'roles': list(roles)},
        expires_delta=timedelta(hours=hours),
    )


def user_json(user: User, roles: List[str] | None = None):
    return {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'short_form': user.short_form,
        'role': roles if roles is not None else user.role_names,
        'is_active': user.is_active,
    }


def token_revoked(jwt_header, jwt_payload) -> bool:
    """Tokens stop working as soon as their user is deactivated or removed."""
    from salesflow import get_db
    try:
        user_id = int(jwt_payload['sub'])
    except (KeyError, TypeError, ValueError):
        return True
    # Column select so a user row cached in this thread's session is never trusted
    active = get_db().execute(select(User.is_active).where(User.id == user_id)).scalar_one_or_none()
    return not active


def revoked_token_response(jwt_header, jwt_payload):
    return jsonify({'error': {'status': 401, 'title': 'Unauthorized', 'detail': 'Token has been revoked'}}), 401
