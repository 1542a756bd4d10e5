from flask import Blueprint, request
from bizconsole import get_db
from bizconsole.models.audit import AuditLog
from bizconsole.decorators.auth import require_capability
from bizconsole.services.scope import current_scope
from bizconsole.utils.filters import apply_filters
from bizconsole.utils.listing import list_response, iso_z

audit_bp = Blueprint('audit', __name__)


def _audit_json(r: AuditLog):
    return {
        'id': r.id,
        'actor_identity_id': r.actor_identity_id,
        'action': r.action,
        'entity': r.entity,
        'entity_id': r.entity_id,
        'meta': r.meta or {},
        'created_at': iso_z(r.created_at) if r.created_at else None,
    }


@audit_bp.route('/logs', methods=['GET', 'HEAD'])
@require_capability('settings', 'read')
def list_audit_logs():
    q = get_db().query(AuditLog).filter(AuditLog.business_id == current_scope().business_id)
    q = apply_filters(q, {
        'actor_identity_id': {'op': lambda qu, v: qu.filter(AuditLog.actor_identity_id == v), 'coerce': int},
        'action': {'op': lambda qu, v: qu.filter(AuditLog.action == v)},
        'entity': {'op': lambda qu, v: qu.filter(AuditLog.entity == v)},
        'entity_id': {'op': lambda qu, v: qu.filter(AuditLog.entity_id == v)},
    }, request.args)
    return list_response(q.order_by(AuditLog.id.desc()), _audit_json)
