"""Central enum-like definitions for roles, actions, resources and RFQ progress.
Extend cautiously; role and permission names are persisted and carried in issued tokens.
"""
from __future__ import annotations
from typing import Dict, List, Tuple

ROLE_USER = 'user'
ROLE_SALES_PERSON = 'sales-person'
ROLE_ADMIN = 'admin'
ROLE_SUPER_ADMIN = 'super-admin'

# Ordered least -> most privileged
ROLES = [ROLE_USER, ROLE_SALES_PERSON, ROLE_ADMIN, ROLE_SUPER_ADMIN]

ACTIONS = [
    'createOwn', 'createAny',
    'readOwn', 'readAny',
    'updateOwn', 'updateAny',
    'deleteOwn', 'deleteAny',
]

RESOURCES = ['rfq', 'customer', 'sales-funnel', 'invoice', 'user', 'role']

# Fallback hierarchy used when the grant store yields nothing.
# Each entry: role -> (parent role or None, own grants). Flattened once at engine build.
FALLBACK_ROLES: Dict[str, Tuple[str | None, List[Tuple[str, str]]]] = {
    ROLE_USER: (None, [
        ('readOwn', 'user'), ('updateOwn', 'user'),
        ('readOwn', 'rfq'), ('createOwn', 'rfq'),
        ('readOwn', 'customer'),
        ('readOwn', 'sales-funnel'),
        ('readOwn', 'invoice'),
    ]),
    ROLE_SALES_PERSON: (ROLE_USER, [
        ('createAny', 'rfq'), ('readAny', 'rfq'), ('updateAny', 'rfq'),
        ('createAny', 'customer'), ('readAny', 'customer'), ('updateAny', 'customer'),
        ('createAny', 'sales-funnel'), ('readAny', 'sales-funnel'), ('updateAny', 'sales-funnel'),
        ('createAny', 'invoice'), ('readAny', 'invoice'), ('updateAny', 'invoice'),
    ]),
    ROLE_ADMIN: (ROLE_SALES_PERSON, [
        ('readAny', 'user'), ('updateAny', 'user'),
        ('deleteAny', 'rfq'), ('deleteAny', 'customer'),
        ('deleteAny', 'sales-funnel'), ('deleteAny', 'invoice'),
    ]),
    # Everything else comes from the unconditional bypass in the engine.
    ROLE_SUPER_ADMIN: (ROLE_ADMIN, []),
}

# Permission catalogue seeded into the store, and the default role mapping.
SEED_PERMISSIONS: List[Tuple[str, str]] = [
    ('createOwn', 'rfq'), ('readAny', 'rfq'), ('updateAny', 'rfq'), ('deleteAny', 'rfq'),
    ('createAny', 'customer'), ('readAny', 'customer'), ('updateAny', 'customer'), ('deleteAny', 'customer'),
    ('createAny', 'sales-funnel'), ('readAny', 'sales-funnel'), ('updateAny', 'sales-funnel'), ('deleteAny', 'sales-funnel'),
    ('createAny', 'invoice'), ('readAny', 'invoice'), ('updateAny', 'invoice'), ('deleteAny', 'invoice'),
    ('readAny', 'user'), ('updateAny', 'user'), ('deleteAny', 'user'),
    ('readAny', 'role'), ('updateAny', 'role'),
]

ROLE_PRESETS: Dict[str, List[Tuple[str, str]]] = {
    ROLE_USER: [('createOwn', 'rfq'), ('readAny', 'rfq')],
    ROLE_SALES_PERSON: [
        ('createOwn', 'rfq'), ('readAny', 'rfq'), ('updateAny', 'rfq'),
        ('createAny', 'customer'), ('readAny', 'customer'), ('updateAny', 'customer'),
        ('createAny', 'sales-funnel'), ('readAny', 'sales-funnel'), ('updateAny', 'sales-funnel'),
        ('createAny', 'invoice'), ('readAny', 'invoice'), ('updateAny', 'invoice'),
    ],
    ROLE_ADMIN: [
        ('createOwn', 'rfq'), ('readAny', 'rfq'), ('updateAny', 'rfq'), ('deleteAny', 'rfq'),
        ('createAny', 'customer'), ('readAny', 'customer'), ('updateAny', 'customer'), ('deleteAny', 'customer'),
        ('createAny', 'sales-funnel'), ('readAny', 'sales-funnel'), ('updateAny', 'sales-funnel'), ('deleteAny', 'sales-funnel'),
        ('createAny', 'invoice'), ('readAny', 'invoice'), ('updateAny', 'invoice'), ('deleteAny', 'invoice'),
        ('readAny', 'user'), ('updateAny', 'user'), ('deleteAny', 'user'),
    ],
    ROLE_SUPER_ADMIN: [('*', '*')],
}

# RFQ progress labels in workflow order (not alphabetical, not numeric)
RFQ_PROGRESS = [
    'Waiting for Drawing',
    "Waiting for Customer's BOM",
    'Waiting for vendor quotation',
    'Waiting for Salesperson',
    'Waiting for Drawing Revision',
    'Salesperson will cover rest',
    'Partially Submitted',
    'Sent to Salesperson (100%)',
    'Sent to Customer (Done)',
]
RFQ_PROGRESS_DEFAULT = RFQ_PROGRESS[0]

# States from which a Sales Funnel may be opened by non-exempt actors
SALES_FUNNEL_ALLOWED_PROGRESS = ('Sent to Salesperson (100%)', 'Sent to Customer (Done)')

INVOICE_CURRENCIES = ('AUD', 'USD')
