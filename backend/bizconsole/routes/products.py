from __future__ import annotations
from flask import Blueprint, request, abort
from sqlalchemy import select, func
from bizconsole import get_db
from bizconsole.models.branch import Branch
from bizconsole.models.product import Product
from bizconsole.models.invoice import InvoiceItem
from bizconsole.decorators.auth import require_capability
from bizconsole.decorators.audit import audit_log
from bizconsole.services.scope import current_scope, get_scoped_or_404
from bizconsole.utils.filters import apply_filters, apply_search
from bizconsole.utils.listing import list_response, item_response
from bizconsole.utils.sorting import apply_multi_sort
from bizconsole.utils.validation import require_text, optional_text, validate_choice, parse_int

products_bp = Blueprint('products', __name__)


def _product_json(p: Product):
    return {
        'id': p.id,
        'name': p.name,
        'description': p.description,
        'price_cents': p.price_cents,
        'type': p.type,
        'status': p.status,
        'quantity': p.quantity,
        'branch_id': p.branch_id,
        'low_stock': p.is_low_stock,
    }


def _apply_payload(product: Product, data: dict, business_id: int, creating: bool):
    if creating or 'name' in data:
        product.name = require_text(data, 'name', 2)
    if 'description' in data:
        product.description = optional_text(data, 'description')
    if creating or 'price_cents' in data:
        product.price_cents = parse_int(data.get('price_cents'), 'price_cents', minimum=0)
    if 'type' in data:
        product.type = validate_choice(data.get('type'), Product.ALL_TYPES, 'type')
    if 'status' in data:
        product.status = validate_choice(data.get('status'), Product.ALL_STATUSES)
    if 'quantity' in data:
        product.quantity = parse_int(data.get('quantity'), 'quantity', minimum=0)
    if 'branch_id' in data:
        raw = data.get('branch_id')
        if raw is None:
            product.branch_id = None
        else:
            branch_id = parse_int(raw, 'branch_id', minimum=1)
            owned = get_db().execute(
                select(Branch.id).where(Branch.id == branch_id, Branch.business_id == business_id)
            ).scalar_one_or_none()
            if owned is None:
                abort(400, description='branch_id does not belong to this business')
            product.branch_id = branch_id


@products_bp.route('', methods=['GET', 'HEAD'])
@require_capability('products', 'read')
def list_products():
    scope = current_scope()
    q = get_db().query(Product).filter(Product.business_id == scope.business_id)
    q = apply_search(q, request.args.get('search'), [Product.name, Product.description])
    q = apply_filters(q, {
        'type': {'op': lambda qu, v: qu.filter(Product.type == v), 'validate': lambda v: v in Product.ALL_TYPES},
        'status': {'op': lambda qu, v: qu.filter(Product.status == v), 'validate': lambda v: v in Product.ALL_STATUSES},
        'branch_id': {'op': lambda qu, v: qu.filter(Product.branch_id == v), 'coerce': int},
        'low_stock': {
            'op': lambda qu, v: qu.filter(*Product.low_stock_criteria()) if v == 'true' else qu,
            'validate': lambda v: v in ('true', 'false'),
        },
    }, request.args)
    allowed = {
        'name': Product.name,
        'price_cents': Product.price_cents,
        'quantity': Product.quantity,
        'updated_at': Product.updated_at,
        'id': Product.id,
    }
    q = apply_multi_sort(q, request.args.get('sort'), allowed, Product.id, default=Product.name)
    return list_response(q, _product_json)


@products_bp.post('')
@require_capability('products', 'create')
@audit_log('PRODUCT.CREATE', entity='Product', entity_id_key='id', meta_keys=['name', 'price_cents'])
def create_product():
    business_id = current_scope().business_id
    product = Product(business_id=business_id, type=Product.TYPE_PRODUCT, status=Product.STATUS_ACTIVE, quantity=0)
    _apply_payload(product, request.get_json(silent=True) or {}, business_id, creating=True)
    session = get_db()
    session.add(product)
    session.commit()
    return _product_json(product), 201


@products_bp.route('/<int:product_id>', methods=['GET', 'HEAD'])
@require_capability('products', 'read')
def get_product(product_id: int):
    return item_response(get_scoped_or_404(Product, product_id), _product_json)


@products_bp.put('/<int:product_id>')
@require_capability('products', 'update')
@audit_log(
    'PRODUCT.UPDATE',
    entity='Product',
    entity_id_key='id',
    diff_keys=['name', 'price_cents', 'type', 'status'],
    pre_fetch=lambda a, kw: _product_json(get_scoped_or_404(Product, kw['product_id'])),
)
def update_product(product_id: int):
    product = get_scoped_or_404(Product, product_id)
    _apply_payload(product, request.get_json(silent=True) or {}, product.business_id, creating=False)
    get_db().commit()
    return _product_json(product)


@products_bp.delete('/<int:product_id>')
@require_capability('products', 'delete')
@audit_log('PRODUCT.DELETE', entity='Product', entity_id_key='id', meta_keys=['name'])
def delete_product(product_id: int):
    session = get_db()
    product = get_scoped_or_404(Product, product_id)
    billed = session.execute(select(func.count(InvoiceItem.id)).where(InvoiceItem.product_id == product.id)).scalar_one()
    if billed:
        abort(409, description='Product appears on invoices; set it inactive instead')
    name = product.name
    session.delete(product)
    session.commit()
    return {'status': 'deleted', 'id': product_id, 'name': name}


@products_bp.post('/<int:product_id>/adjust')
@require_capability('inventory', 'update')
@audit_log(
    'PRODUCT.ADJUST',
    entity='Product',
    entity_id_key='id',
    diff_keys=['quantity'],
    pre_fetch=lambda a, kw: _product_json(get_scoped_or_404(Product, kw['product_id'])),
    meta_keys=['quantity'],
)
def adjust_product(product_id: int):
    product = get_scoped_or_404(Product, product_id)
    data = request.get_json(silent=True) or {}
    if data.get('delta') is None:
        abort(400, description='delta required')
    delta = parse_int(data.get('delta'), 'delta')
    if product.quantity + delta < 0:
        abort(409, description=f'Insufficient stock: {product.quantity} on hand')
    product.quantity = product.quantity + delta
    get_db().commit()
    return _product_json(product)
