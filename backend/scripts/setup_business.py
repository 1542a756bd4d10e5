#!/usr/bin/env python
"""Bootstrap an owner + business and check the permission matrix.

Usage:
    python backend/scripts/setup_business.py --email owner@example.com --business-name "Acme" --owner-name "Ada Owner"
    python backend/scripts/setup_business.py ... --presets            # also create Manager / Cashier / Stock Keeper
    python backend/scripts/setup_business.py --validate               # report roles with missing / duplicated rows
    python backend/scripts/setup_business.py --validate --repair      # fill missing rows with read-only defaults
    python backend/scripts/setup_business.py --show-roles --business-id 1
"""
from __future__ import annotations
import os, sys, argparse, textwrap, json
from sqlalchemy import select
from werkzeug.exceptions import HTTPException

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from bizconsole import create_app, get_db  # type: ignore
from bizconsole.models.authz import Base, Role
from bizconsole.models import business, branch, employee, client, product, invoice, audit  # noqa: F401
from bizconsole.constants.modules import ROLE_PRESETS, MODULES
from bizconsole.services.identity import setup_business
from bizconsole.services.roles import create_role, count_roles
from bizconsole.services.permissions import set_permission, capability_grid, matrix_gaps, fill_missing_permissions


def create_presets(business_id: int):
    created = []
    for role_name, grants in ROLE_PRESETS.items():
        role, _ = create_role(business_id, role_name, f'{role_name} (preset)')
        for module, caps in grants.items():
            for cap in caps:
                set_permission(role.id, module, cap, True)
        created.append(role.name)
    return created


def print_role_summary(business_id: int):
    roles = get_db().execute(
        select(Role).where(Role.business_id == business_id).order_by(Role.id.asc())
    ).scalars().all()
    print(f"[INFO] Business {business_id}: {count_roles(business_id)} role(s)")
    if not roles:
        return
    name_w = max(len(r.name) for r in roles)
    print(f"{'Role'.ljust(name_w)} | " + ' '.join(m[:4].ljust(4) for m in MODULES))
    print('-' * (name_w + 3 + 5 * len(MODULES)))
    for role in roles:
        grid = capability_grid(role.id)
        cells = []
        for m in MODULES:
            cells.append(''.join(c[0].upper() if grid[m][c] else '-' for c in ('create', 'read', 'update', 'delete')))
        print(f"{role.name.ljust(name_w)} | " + ' '.join(cells))


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Bootstrap a business and check its permission matrix",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  setup: setup_business.py --email a@b.co --business-name Acme --owner-name 'Ada Owner'\n  check: setup_business.py --validate\n  fix: setup_business.py --validate --repair\n""")
    )
    p.add_argument('--email', help='Owner login email')
    p.add_argument('--password', default=os.getenv('SETUP_OWNER_PASSWORD', 'ChangeMe123!'), help='Owner password (default from SETUP_OWNER_PASSWORD)')
    p.add_argument('--business-name', help='Business display name')
    p.add_argument('--owner-name', help='Owner full name')
    p.add_argument('--presets', action='store_true', help='Create the preset roles for the new business')
    p.add_argument('--business-id', type=int, help='Limit --validate / --show-roles to one business')
    p.add_argument('--show-roles', action='store_true', help='Print each role\'s capability grid')
    p.add_argument('--validate', action='store_true', help='Report roles with missing or duplicated permission rows; exits 2 on problems')
    p.add_argument('--repair', action='store_true', help='With --validate, insert read-only rows for missing modules')
    p.add_argument('--dry-run', action='store_true', help='Print what would be done without writing')
    return p.parse_args(argv)


def run_setup(args) -> int:
    if not (args.email and args.business_name and args.owner_name):
        print('[ERROR] --email, --business-name and --owner-name are required for setup')
        return 1
    if args.dry_run:
        presets = ', '.join(ROLE_PRESETS) if args.presets else 'none'
        print(f"[DRY-RUN] Would create business '{args.business_name}' for {args.email}; presets: {presets}")
        return 0
    try:
        biz = setup_business(args.email, args.password, args.business_name, args.owner_name)
    except HTTPException as e:
        print(f"[ERROR] {e.description}")
        return 1
    print(f"[DONE] Business {biz.id} '{biz.name}' owned by identity {biz.owner_id}")
    if args.presets:
        names = create_presets(biz.id)
        print(f"[DONE] Preset roles created: {', '.join(names)}")
    args.business_id = args.business_id or biz.id
    return 0


def run_validate(args) -> int:
    session = get_db()
    gaps = matrix_gaps(args.business_id)
    if not gaps:
        print('[VALIDATION] OK: every role has exactly one row per module.')
        return 0
    print('\n[VALIDATION] FAIL:')
    print(json.dumps({str(k): v for k, v in gaps.items()}, indent=2, sort_keys=True))
    if args.repair:
        added = fill_missing_permissions(gaps)
        if args.dry_run:
            session.rollback()
            print(f"[DRY-RUN] (rolled back) Would add {added} permission row(s)")
        else:
            session.commit()
            print(f"[DONE] Added {added} permission row(s)")
        still_duplicated = any(g['duplicated'] for g in gaps.values())
        return 2 if still_duplicated else 0
    return 2


def main(argv=None):
    args = parse_args(argv)
    app = create_app()
    with app.app_context():
        # Lightweight fallback when migrations have not been run yet
        Base.metadata.create_all(get_db().get_bind())
        session = get_db()
        try:
            code = 0
            if args.email or args.business_name or args.owner_name:
                code = run_setup(args)
            if code == 0 and args.validate:
                code = run_validate(args)
            if code == 0 and args.show_roles:
                if args.business_id is None:
                    print('[ERROR] --show-roles needs --business-id')
                    code = 1
                else:
                    print_role_summary(args.business_id)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
    return code


if __name__ == '__main__':
    sys.exit(main())
