from flask import Blueprint, request, abort
from sqlalchemy import select, func
from bizconsole import get_db
from bizconsole.models.client import Client
from bizconsole.models.invoice import Invoice
from bizconsole.decorators.auth import require_capability
from bizconsole.decorators.audit import audit_log
from bizconsole.services.scope import current_scope, get_scoped_or_404
from bizconsole.utils.filters import apply_search
from bizconsole.utils.listing import list_response, item_response
from bizconsole.utils.sorting import apply_multi_sort
from bizconsole.utils.validation import require_text, optional_text, validate_email, validate_phone

clients_bp = Blueprint('clients', __name__)

TEXT_FIELDS = ('company', 'address', 'notes')


def _client_json(c: Client):
    return {
        'id': c.id,
        'name': c.name,
        'email': c.email,
        'phone': c.phone,
        'company': c.company,
        'address': c.address,
        'notes': c.notes,
    }


def _apply_payload(client: Client, data: dict, creating: bool):
    if creating or 'name' in data:
        client.name = require_text(data, 'name', 2)
    if 'email' in data:
        client.email = validate_email(optional_text(data, 'email'))
    if 'phone' in data:
        client.phone = validate_phone(optional_text(data, 'phone'))
    for key in TEXT_FIELDS:
        if key in data:
            setattr(client, key, optional_text(data, key))


@clients_bp.route('', methods=['GET', 'HEAD'])
@require_capability('clients', 'read')
def list_clients():
    scope = current_scope()
    q = get_db().query(Client).filter(Client.business_id == scope.business_id)
    q = apply_search(q, request.args.get('search'), [Client.name, Client.email, Client.company])
    allowed = {'name': Client.name, 'company': Client.company, 'updated_at': Client.updated_at, 'id': Client.id}
    q = apply_multi_sort(q, request.args.get('sort'), allowed, Client.id, default=Client.name)
    return list_response(q, _client_json)


@clients_bp.post('')
@require_capability('clients', 'create')
@audit_log('CLIENT.CREATE', entity='Client', entity_id_key='id', meta_keys=['name'])
def create_client():
    client = Client(business_id=current_scope().business_id)
    _apply_payload(client, request.get_json(silent=True) or {}, creating=True)
    session = get_db()
    session.add(client)
    session.commit()
    return _client_json(client), 201


@clients_bp.route('/<int:client_id>', methods=['GET', 'HEAD'])
@require_capability('clients', 'read')
def get_client(client_id: int):
    return item_response(get_scoped_or_404(Client, client_id), _client_json)


@clients_bp.put('/<int:client_id>')
@require_capability('clients', 'update')
@audit_log(
    'CLIENT.UPDATE',
    entity='Client',
    entity_id_key='id',
    diff_keys=['name', 'email', 'phone', 'company'],
    pre_fetch=lambda a, kw: _client_json(get_scoped_or_404(Client, kw['client_id'])),
)
def update_client(client_id: int):
    client = get_scoped_or_404(Client, client_id)
    _apply_payload(client, request.get_json(silent=True) or {}, creating=False)
    get_db().commit()
    return _client_json(client)


@clients_bp.delete('/<int:client_id>')
@require_capability('clients', 'delete')
@audit_log('CLIENT.DELETE', entity='Client', entity_id_key='id', meta_keys=['name'])
def delete_client(client_id: int):
    session = get_db()
    client = get_scoped_or_404(Client, client_id)
    billed = session.execute(select(func.count(Invoice.id)).where(Invoice.client_id == client.id)).scalar_one()
    if billed:
        abort(409, description=f'Client has {billed} invoice(s)')
    name = client.name
    session.delete(client)
    session.commit()
    return {'status': 'deleted', 'id': client_id, 'name': name}
