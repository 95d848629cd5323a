"""Domain rejections raised by the authorization, workflow and OTP layers.

Each is an HTTPException so the application-wide handler renders it like any abort(),
plus a stable ``kind`` clients can branch on.
"""
from __future__ import annotations
from werkzeug.exceptions import HTTPException


class DomainRejection(HTTPException):
    code = 403
    kind = 'rejected'

    def __init__(self, description: str | None = None):
        super().__init__(description=description or self.description)


class Unauthorized(DomainRejection):
    code = 403
    kind = 'unauthorized'
    description = 'Role set is not permitted to perform this action'


class InvalidRole(DomainRejection):
    code = 403
    kind = 'invalid_role'
    description = 'No recognised role in credential'


class WorkflowGateDenied(DomainRejection):
    code = 403
    kind = 'workflow_gate_denied'
    description = 'Workflow rule does not allow this operation'


class NoPendingSession(DomainRejection):
    code = 400
    kind = 'no_pending_session'
    description = 'No one-time code pending; log in again'


class InvalidOrExpiredCode(DomainRejection):
    code = 400
    kind = 'invalid_or_expired_code'
    description = 'Invalid or expired OTP'


__all__ = [
    'DomainRejection', 'Unauthorized', 'InvalidRole', 'WorkflowGateDenied',
    'NoPendingSession', 'InvalidOrExpiredCode',
]
