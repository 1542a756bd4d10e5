from __future__ import annotations
from flask import Blueprint, request, abort
from sqlalchemy import select
from bizconsole import get_db
from bizconsole.models.branch import Branch
from bizconsole.models.client import Client
from bizconsole.models.invoice import Invoice, InvoiceItem
from bizconsole.models.product import Product
from bizconsole.decorators.auth import require_capability
from bizconsole.decorators.audit import audit_log
from bizconsole.services.scope import current_scope, current_identity_id, get_scoped_or_404
from bizconsole.utils.filters import apply_filters, apply_search
from bizconsole.utils.fsm import TransitionValidator
from bizconsole.utils.listing import list_response, item_response
from bizconsole.utils.sorting import apply_multi_sort
from bizconsole.utils.validation import require_text, optional_text, validate_choice, parse_date, parse_int

invoices_bp = Blueprint('invoices', __name__)

INVOICE_FSM = TransitionValidator({
    Invoice.STATUS_UNPAID: {Invoice.STATUS_PAID, Invoice.STATUS_OVERDUE},
    Invoice.STATUS_OVERDUE: {Invoice.STATUS_PAID, Invoice.STATUS_UNPAID},
    Invoice.STATUS_PAID: {Invoice.STATUS_UNPAID},
}, error_status=409)


def _item_json(item: InvoiceItem):
    return {
        'id': item.id,
        'product_id': item.product_id,
        'quantity': item.quantity,
        'price_cents': item.price_cents,
        'line_total_cents': item.line_total_cents,
    }


def _invoice_json(inv: Invoice):
    return {
        'id': inv.id,
        'invoice_number': inv.invoice_number,
        'client_id': inv.client_id,
        'branch_id': inv.branch_id,
        'issue_date': inv.issue_date.isoformat() if inv.issue_date else None,
        'due_date': inv.due_date.isoformat() if inv.due_date else None,
        'status': inv.status,
        'total_cents': inv.total_cents,
        'notes': inv.notes,
    }


def _invoice_detail(inv: Invoice):
    body = _invoice_json(inv)
    body['items'] = [_item_json(i) for i in inv.items]
    return body


def _owned_id(model, raw, field_name: str, business_id: int) -> int:
    record_id = parse_int(raw, field_name, minimum=1)
    found = get_db().execute(
        select(model.id).where(model.id == record_id, model.business_id == business_id)
    ).scalar_one_or_none()
    if found is None:
        abort(400, description=f'{field_name} does not belong to this business')
    return record_id


def _build_items(raw_items, business_id: int):
    """Validate line payloads against the business's active products."""
    if not isinstance(raw_items, list) or not raw_items:
        abort(400, description='items must be a non-empty list')
    lines = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            abort(400, description='items entries must be objects')
        product_id = parse_int(raw.get('product_id'), 'product_id', minimum=1)
        quantity = parse_int(raw.get('quantity', 1), 'quantity', minimum=1)
        price = raw.get('price_cents')
        lines.append((product_id, quantity, None if price is None else parse_int(price, 'price_cents', minimum=0)))
    wanted = sorted({pid for pid, _, _ in lines})
    products = {
        p.id: p for p in get_db().execute(
            select(Product).where(
                Product.id.in_(wanted),
                Product.business_id == business_id,
                Product.status == Product.STATUS_ACTIVE,
            )
        ).scalars()
    }
    missing = [pid for pid in wanted if pid not in products]
    if missing:
        abort(400, description=f'Unknown or inactive product ids {missing}')
    # Unpriced lines take the catalogue price
    return [
        InvoiceItem(product_id=pid, quantity=qty, price_cents=products[pid].price_cents if price is None else price)
        for pid, qty, price in lines
    ]


def _set_items(inv: Invoice, items):
    inv.items = items
    inv.total_cents = sum(i.line_total_cents for i in items)


def _required_date(data: dict, field_name: str):
    value = parse_date(data.get(field_name), field_name)
    if value is None:
        abort(400, description=f'{field_name} required')
    return value


def _apply_header(inv: Invoice, data: dict, business_id: int, creating: bool):
    if creating or 'client_id' in data:
        inv.client_id = _owned_id(Client, data.get('client_id'), 'client_id', business_id)
    if creating or 'invoice_number' in data:
        inv.invoice_number = require_text(data, 'invoice_number')
    if creating or 'issue_date' in data:
        inv.issue_date = _required_date(data, 'issue_date')
    if creating or 'due_date' in data:
        inv.due_date = _required_date(data, 'due_date')
    if inv.due_date < inv.issue_date:
        abort(400, description='due_date must not be before issue_date')
    if 'notes' in data:
        inv.notes = optional_text(data, 'notes')
    if 'branch_id' in data:
        raw = data.get('branch_id')
        inv.branch_id = None if raw is None else _owned_id(Branch, raw, 'branch_id', business_id)


@invoices_bp.route('', methods=['GET', 'HEAD'])
@require_capability('invoices', 'read')
def list_invoices():
    scope = current_scope()
    q = get_db().query(Invoice).filter(Invoice.business_id == scope.business_id)
    q = apply_search(q, request.args.get('search'), [Invoice.invoice_number, Invoice.notes])
    q = apply_filters(q, {
        'status': {'op': lambda qu, v: qu.filter(Invoice.status == v), 'validate': lambda v: v in Invoice.ALL_STATUSES},
        'client_id': {'op': lambda qu, v: qu.filter(Invoice.client_id == v), 'coerce': int},
        'branch_id': {'op': lambda qu, v: qu.filter(Invoice.branch_id == v), 'coerce': int},
    }, request.args)
    allowed = {
        'invoice_number': Invoice.invoice_number,
        'issue_date': Invoice.issue_date,
        'due_date': Invoice.due_date,
        'total_cents': Invoice.total_cents,
        'status': Invoice.status,
        'updated_at': Invoice.updated_at,
        'id': Invoice.id,
    }
    # newest first unless the caller sorts
    q = apply_multi_sort(q, request.args.get('sort') or '-issue_date', allowed, Invoice.id)
    return list_response(q, _invoice_json)


@invoices_bp.post('')
@require_capability('invoices', 'create')
@audit_log('INVOICE.CREATE', entity='Invoice', entity_id_key='id', meta_keys=['invoice_number', 'client_id', 'total_cents'])
def create_invoice():
    business_id = current_scope().business_id
    data = request.get_json(silent=True) or {}
    inv = Invoice(business_id=business_id, status=Invoice.STATUS_UNPAID, created_by=current_identity_id())
    _apply_header(inv, data, business_id, creating=True)
    _set_items(inv, _build_items(data.get('items'), business_id))
    session = get_db()
    session.add(inv)
    session.commit()
    return _invoice_detail(inv), 201


@invoices_bp.route('/<int:invoice_id>', methods=['GET', 'HEAD'])
@require_capability('invoices', 'read')
def get_invoice(invoice_id: int):
    return item_response(get_scoped_or_404(Invoice, invoice_id), _invoice_detail)


@invoices_bp.put('/<int:invoice_id>')
@require_capability('invoices', 'update')
@audit_log(
    'INVOICE.UPDATE',
    entity='Invoice',
    entity_id_key='id',
    diff_keys=['invoice_number', 'client_id', 'due_date', 'total_cents'],
    pre_fetch=lambda a, kw: _invoice_json(get_scoped_or_404(Invoice, kw['invoice_id'])),
)
def update_invoice(invoice_id: int):
    inv = get_scoped_or_404(Invoice, invoice_id)
    data = request.get_json(silent=True) or {}
    _apply_header(inv, data, inv.business_id, creating=False)
    if 'items' in data:
        if inv.status == Invoice.STATUS_PAID:
            abort(409, description='Paid invoices cannot change items')
        _set_items(inv, _build_items(data.get('items'), inv.business_id))
    get_db().commit()
    return _invoice_detail(inv)


@invoices_bp.post('/<int:invoice_id>/status')
@require_capability('invoices', 'update')
@audit_log(
    'INVOICE.STATUS',
    entity='Invoice',
    entity_id_key='id',
    diff_keys=['status'],
    pre_fetch=lambda a, kw: _invoice_json(get_scoped_or_404(Invoice, kw['invoice_id'])),
    meta_keys=['status'],
)
def set_invoice_status(invoice_id: int):
    inv = get_scoped_or_404(Invoice, invoice_id)
    data = request.get_json(silent=True) or {}
    target = validate_choice(data.get('status'), Invoice.ALL_STATUSES)
    INVOICE_FSM.assert_can_transition(inv.status, target)
    inv.status = target
    get_db().commit()
    return _invoice_json(inv)


@invoices_bp.delete('/<int:invoice_id>')
@require_capability('invoices', 'delete')
@audit_log('INVOICE.DELETE', entity='Invoice', entity_id_key='id', meta_keys=['invoice_number', 'items_deleted'])
def delete_invoice(invoice_id: int):
    session = get_db()
    inv = get_scoped_or_404(Invoice, invoice_id)
    number = inv.invoice_number
    items_deleted = len(inv.items)
    # items go with the invoice through the delete-orphan cascade
    session.delete(inv)
    session.commit()
    return {'status': 'deleted', 'id': invoice_id, 'invoice_number': number, 'items_deleted': items_deleted}
