from flask import Blueprint
from sqlalchemy import select, func
from bizconsole import get_db
from bizconsole.models.authz import Role
from bizconsole.models.branch import Branch
from bizconsole.models.client import Client
from bizconsole.models.employee import Employee
from bizconsole.models.invoice import Invoice
from bizconsole.models.product import Product
from bizconsole.decorators.auth import require_capability
from bizconsole.services.scope import current_scope

dashboard_bp = Blueprint('dashboard', __name__)


def _count(model, *criteria) -> int:
    business_id = current_scope().business_id
    return int(get_db().execute(
        select(func.count(model.id)).where(model.business_id == business_id, *criteria)
    ).scalar_one())


@dashboard_bp.get('/summary')
@require_capability('dashboard', 'read')
def summary():
    """Headline counts for the caller's business."""
    scope = current_scope()
    low_stock = get_db().execute(
        select(Product)
        .where(
            Product.business_id == scope.business_id,
            *Product.low_stock_criteria(),
        )
        .order_by(Product.quantity.asc(), Product.id.asc())
        .limit(10)
    ).scalars().all()
    recent = get_db().execute(
        select(Invoice)
        .where(Invoice.business_id == scope.business_id)
        .order_by(Invoice.issue_date.desc(), Invoice.id.desc())
        .limit(5)
    ).scalars().all()
    return {
        'business_id': scope.business_id,
        'counts': {
            'branches': _count(Branch),
            'employees': _count(Employee),
            'active_employees': _count(Employee, Employee.status == Employee.STATUS_ACTIVE),
            'clients': _count(Client),
            'products': _count(Product),
            'roles': _count(Role),
            'low_stock': _count(Product, *Product.low_stock_criteria()),
            'invoices': _count(Invoice),
            'unpaid_invoices': _count(Invoice, Invoice.status != Invoice.STATUS_PAID),
        },
        'low_stock_products': [
            {'id': p.id, 'name': p.name, 'quantity': p.quantity} for p in low_stock
        ],
        'low_stock_threshold': Product.LOW_STOCK_THRESHOLD,
        'recent_invoices': [
            {'id': i.id, 'invoice_number': i.invoice_number, 'status': i.status, 'total_cents': i.total_cents}
            for i in recent
        ],
    }
