"""Environment-backed settings with defaults.

create_app() loads these into app.config; explicit overrides passed to create_app win.
"""
from __future__ import annotations
from typing import Any, Dict, Iterable, List
import os

DEFAULTS: Dict[str, Any] = {
    'JWT_SECRET_KEY': 'dev-secret',
    'DATABASE_URL': 'sqlite:///dev.db',
    'JWT_ACCESS_TOKEN_HOURS': 24,
    'OTP_TTL_MINUTES': 5,
    'OTP_LENGTH': 6,
    'WORKFLOW_GATE_EXEMPT_ROLES': 'admin,super-admin',
    'SMTP_HOST': '',
    'SMTP_PORT': 587,
    'SMTP_USER': '',
    'SMTP_PASS': '',
    'SMTP_USE_TLS': True,
    'SMTP_TIMEOUT_SECONDS': 10,
    'MAIL_FROM': '',
    'LOG_LEVEL': 'INFO',
}

_INT_KEYS = {'JWT_ACCESS_TOKEN_HOURS', 'OTP_TTL_MINUTES', 'OTP_LENGTH', 'SMTP_PORT', 'SMTP_TIMEOUT_SECONDS'}
_BOOL_KEYS = {'SMTP_USE_TLS'}


def _coerce(key: str, raw: str):
    if key in _INT_KEYS:
        try:
            return int(raw)
        except ValueError:
            raise ValueError(f'{key} must be an integer, got {raw!r}')
    if key in _BOOL_KEYS:
        return raw.strip().lower() in ('1', 'true', 'yes', 'on')
    return raw


def load_settings() -> Dict[str, Any]:
    settings = dict(DEFAULTS)
    for key in DEFAULTS:
        raw = os.getenv(key)
        if raw is not None:
            settings[key] = _coerce(key, raw)
    return settings


def parse_role_list(value: str | Iterable[str] | None) -> List[str]:
    """Accept 'a,b' or ['a', 'b'] (config files and env vars differ); return stripped names."""
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(',')
    else:
        items = list(value)
    return [str(v).strip() for v in items if str(v).strip()]
