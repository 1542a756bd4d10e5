"""Functional modules and CRUD capabilities used by the permission matrix.

The module list is closed and ordered; the permissions page renders columns in
this order and role creation seeds one permission row per entry.
"""
from __future__ import annotations
from typing import Dict, List, Optional

MODULES: List[str] = [
    'dashboard',
    'employees',
    'clients',
    'products',
    'inventory',
    'invoices',
    'branches',
    'finance',
    'reports',
    'settings',
]

CAPABILITIES: List[str] = ['create', 'read', 'update', 'delete']

# capability -> permissions table column
CAPABILITY_COLUMNS: Dict[str, str] = {cap: f'{cap}_permission' for cap in CAPABILITIES}

DEFAULT_CAPABILITIES: Dict[str, bool] = {
    'create': False,
    'read': True,
    'update': False,
    'delete': False,
}

# Optional starter roles offered by the setup script
ROLE_PRESETS: Dict[str, Dict[str, List[str]]] = {
    'Manager': {module: list(CAPABILITIES) for module in MODULES if module != 'settings'},
    'Cashier': {
        'dashboard': ['read'],
        'clients': ['create', 'read', 'update'],
        'products': ['read'],
        'inventory': ['read'],
        'invoices': ['create', 'read'],
    },
    'Stock Keeper': {
        'dashboard': ['read'],
        'products': ['create', 'read', 'update'],
        'inventory': ['read', 'update'],
        'branches': ['read'],
    },
}


def normalize_capability(raw: Optional[str]) -> Optional[str]:
    """Accept both ``create`` and ``create_permission``; None if unknown."""
    if not raw:
        return None
    name = raw[:-len('_permission')] if raw.endswith('_permission') else raw
    return name if name in CAPABILITIES else None


def is_module(raw: Optional[str]) -> bool:
    return raw in MODULES
