"""One-time code exchange between password verification and token issuance.

State lives on the user row (otp_code, otp_expires):

    NoSession --issue()--> CodeIssued --verify() ok--> NoSession (consumed)
                               |
                               +--verify() bad code / at-or-after expiry--> unchanged

Both transitions are single conditional UPDATE statements, so a code can only be consumed
once even when duplicate verifications race. Expiry is checked lazily at verification;
nothing evicts stale codes. All timestamps are naive UTC.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
import logging
import secrets

from sqlalchemy import select, update

from salesflow.errors import InvalidOrExpiredCode, NoPendingSession
from salesflow.models.authz import User

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def generate_code(length: int) -> str:
    """Numeric code of exactly ``length`` digits (no leading zero)."""
    low = 10 ** (length - 1)
    return str(low + secrets.randbelow(9 * low))


@dataclass(frozen=True)
class IssuedCode:
    user_id: int
    code: str
    expires_at: datetime


class OtpNegotiator:
    def __init__(self, mailer, ttl: timedelta = timedelta(minutes=5), length: int = 6,
                 clock: Optional[Callable[[], datetime]] = None):
        if length < 4:
            raise ValueError('OTP length must be at least 4 digits')
        self.mailer = mailer
        self.ttl = ttl
        self.length = length
        self.clock = clock or utcnow

    def issue(self, session, user: User) -> IssuedCode:
        """Store a fresh code for ``user`` (replacing any pending one) and mail it.

        The code is committed before delivery is attempted; a delivery failure is logged and
        does not undo issuance.
        """
        user_id, email, name = user.id, user.email, user.name
        code = generate_code(self.length)
        expires_at = self.clock() + self.ttl
        session.execute(
            update(User)
            .where(User.id == user_id)
            .values(otp_code=code, otp_expires=expires_at)
            .execution_options(synchronize_session=False)
        )
        session.commit()
        if user in session:
            session.expire(user)
        logger.info('OTP issued for user %s (expires %s)', user_id, expires_at.isoformat())
        minutes = max(1, int(self.ttl.total_seconds() // 60))
        try:
            self.mailer.send(
                email,
                'Your Login OTP',
                f'<p>Hello {name},</p><p>Your OTP is <b>{code}</b>. It expires in {minutes} minutes.</p>',
            )
        except Exception:
            logger.exception('OTP delivery to user %s failed; code remains valid', user_id)
        return IssuedCode(user_id, code, expires_at)

    def verify(self, session, user: User, submitted: str, issue_token: Callable[[], str]) -> str:
        """Consume the pending code and return the token produced by ``issue_token``.

        The token is written in the same statement that clears the code, and only if the
        code still matches and ``now < otp_expires``.
        """
        user_id = user.id
        now = self.clock()
        pending = session.execute(select(User.otp_code).where(User.id == user_id)).scalar_one_or_none()
        if pending is None:
            raise NoPendingSession()
        token = issue_token()
        result = session.execute(
            update(User)
            .where(User.id == user_id, User.otp_code == str(submitted).strip(), User.otp_expires > now)
            .values(otp_code=None, otp_expires=None, token=token)
            .execution_options(synchronize_session=False)
        )
        session.commit()
        if user in session:
            session.expire(user)
        if result.rowcount != 1:
            logger.info('OTP verification failed for user %s', user_id)
            raise InvalidOrExpiredCode()
        logger.info('OTP consumed for user %s', user_id)
        return token


__all__ = ['OtpNegotiator', 'IssuedCode', 'generate_code', 'utcnow']
