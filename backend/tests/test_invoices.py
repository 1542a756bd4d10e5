from bizconsole import get_db
from bizconsole.models.invoice import Invoice, InvoiceItem
from bizconsole.models.audit import AuditLog
from test_utils_seed import seed_owner, seed_role, seed_employee, login


def _catalogue(client, headers, prefix):
    cust = client.post('/clients', json={'name': f'{prefix} Customer'}, headers=headers).get_json()
    widget = client.post('/products', json={'name': f'{prefix} Widget', 'price_cents': 1250, 'quantity': 10}, headers=headers).get_json()
    service = client.post('/products', json={'name': f'{prefix} Setup', 'price_cents': 5000, 'type': 'service'}, headers=headers).get_json()
    return cust, widget, service


def _payload(cust, number, items, **extra):
    body = {
        'client_id': cust['id'],
        'invoice_number': number,
        'issue_date': '2026-01-05',
        'due_date': '2026-02-04',
        'items': items,
    }
    body.update(extra)
    return body


def test_invoice_total_is_computed_from_items(client):
    owner, biz = seed_owner('inv_total_owner@example.com')
    headers = login(client, owner.email)
    cust, widget, service = _catalogue(client, headers, 'Total')

    resp = client.post('/invoices', json=_payload(cust, 'INV-001', [
        {'product_id': widget['id'], 'quantity': 3},
        {'product_id': service['id'], 'quantity': 1, 'price_cents': 4500},
    ], total_cents=1, status='paid'), headers=headers)
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body['status'] == 'unpaid'
    assert body['total_cents'] == 3 * 1250 + 4500
    assert [i['line_total_cents'] for i in body['items']] == [3750, 4500]
    assert body['items'][0]['price_cents'] == 1250

    detail = client.get(f"/invoices/{body['id']}", headers=headers).get_json()
    assert detail['invoice_number'] == 'INV-001'
    assert len(detail['items']) == 2

    audit = get_db().query(AuditLog).filter_by(action='INVOICE.CREATE', entity_id=str(body['id'])).one()
    assert audit.meta['total_cents'] == 8250


def test_invoice_validation(client):
    owner, biz = seed_owner('inv_val_owner@example.com')
    other, other_biz = seed_owner('inv_val_other@example.com')
    headers = login(client, owner.email)
    cust, widget, service = _catalogue(client, headers, 'Val')
    foreign_cust, foreign_widget, _ = _catalogue(client, login(client, other.email), 'Foreign')
    retired = client.post('/products', json={'name': 'Retired', 'price_cents': 10, 'status': 'inactive'}, headers=headers).get_json()
    line = [{'product_id': widget['id'], 'quantity': 1}]

    assert client.post('/invoices', json=_payload(cust, 'V-1', []), headers=headers).status_code == 400
    assert client.post('/invoices', json=_payload(cust, 'V-1', [{'product_id': widget['id'], 'quantity': 0}]), headers=headers).status_code == 400
    assert client.post('/invoices', json=_payload(cust, 'V-1', [{'product_id': widget['id'], 'price_cents': -5}]), headers=headers).status_code == 400
    inactive = client.post('/invoices', json=_payload(cust, 'V-1', [{'product_id': retired['id']}]), headers=headers)
    assert inactive.status_code == 400
    assert inactive.get_json()['error']['detail'] == f"Unknown or inactive product ids [{retired['id']}]"
    cross_product = client.post('/invoices', json=_payload(cust, 'V-1', [{'product_id': foreign_widget['id']}]), headers=headers)
    assert cross_product.status_code == 400
    cross_client = client.post('/invoices', json=_payload(foreign_cust, 'V-1', line), headers=headers)
    assert cross_client.get_json()['error']['detail'] == 'client_id does not belong to this business'
    backwards = client.post('/invoices', json=_payload(cust, 'V-1', line, due_date='2025-12-31'), headers=headers)
    assert backwards.status_code == 400
    assert client.post('/invoices', json=_payload(cust, 'V-1', line, issue_date=None), headers=headers).status_code == 400

    assert client.post('/invoices', json=_payload(cust, 'V-1', line), headers=headers).status_code == 201
    duplicate = client.post('/invoices', json=_payload(cust, 'V-1', line), headers=headers)
    assert duplicate.status_code == 409
    # numbers are unique per business only
    other_headers = login(client, other.email)
    other_line = [{'product_id': foreign_widget['id']}]
    assert client.post('/invoices', json=_payload(foreign_cust, 'V-1', other_line), headers=other_headers).status_code == 201


def test_invoice_status_transitions(client):
    owner, biz = seed_owner('inv_status_owner@example.com')
    headers = login(client, owner.email)
    cust, widget, _ = _catalogue(client, headers, 'Status')
    inv_id = client.post('/invoices', json=_payload(cust, 'S-1', [{'product_id': widget['id']}]), headers=headers).get_json()['id']

    paid = client.post(f'/invoices/{inv_id}/status', json={'status': 'paid'}, headers=headers)
    assert paid.status_code == 200
    assert paid.get_json()['status'] == 'paid'
    blocked = client.post(f'/invoices/{inv_id}/status', json={'status': 'overdue'}, headers=headers)
    assert blocked.status_code == 409
    assert blocked.get_json()['error']['detail'] == 'Invalid status transition paid -> overdue'
    assert client.post(f'/invoices/{inv_id}/status', json={'status': 'void'}, headers=headers).status_code == 400
    reopened = client.post(f'/invoices/{inv_id}/status', json={'status': 'unpaid'}, headers=headers)
    assert reopened.get_json()['status'] == 'unpaid'

    unpaid = client.get('/invoices', query_string={'status': 'unpaid'}, headers=headers).get_json()
    assert [i['id'] for i in unpaid['data']] == [inv_id]
    assert client.get('/invoices?status=void', headers=headers).status_code == 400


def test_invoice_item_replacement(client):
    owner, biz = seed_owner('inv_items_owner@example.com')
    headers = login(client, owner.email)
    cust, widget, service = _catalogue(client, headers, 'Items')
    created = client.post('/invoices', json=_payload(cust, 'I-1', [
        {'product_id': widget['id'], 'quantity': 2},
        {'product_id': service['id']},
    ], notes='first draft'), headers=headers).get_json()

    upd = client.put(f"/invoices/{created['id']}", json={'items': [{'product_id': widget['id'], 'quantity': 4}]}, headers=headers)
    assert upd.status_code == 200
    assert upd.get_json()['total_cents'] == 5000
    assert get_db().query(InvoiceItem).filter_by(invoice_id=created['id']).count() == 1

    # a rejected update leaves the stored invoice untouched
    rejected = client.put(f"/invoices/{created['id']}", json={'notes': 'changed', 'items': []}, headers=headers)
    assert rejected.status_code == 400
    assert client.get(f"/invoices/{created['id']}", headers=headers).get_json()['notes'] == 'first draft'

    client.post(f"/invoices/{created['id']}/status", json={'status': 'paid'}, headers=headers)
    locked = client.put(f"/invoices/{created['id']}", json={'items': [{'product_id': widget['id']}]}, headers=headers)
    assert locked.status_code == 409
    notes = client.put(f"/invoices/{created['id']}", json={'notes': 'settled by card'}, headers=headers)
    assert notes.status_code == 200
    assert notes.get_json()['total_cents'] == 5000


def test_invoice_delete_and_references(client):
    owner, biz = seed_owner('inv_delete_owner@example.com')
    headers = login(client, owner.email)
    cust, widget, service = _catalogue(client, headers, 'Delete')
    inv_id = client.post('/invoices', json=_payload(cust, 'D-1', [
        {'product_id': widget['id']}, {'product_id': service['id']},
    ]), headers=headers).get_json()['id']

    assert client.delete(f"/clients/{cust['id']}", headers=headers).status_code == 409
    assert client.delete(f"/products/{widget['id']}", headers=headers).status_code == 409

    gone = client.delete(f'/invoices/{inv_id}', headers=headers)
    assert gone.status_code == 200
    assert gone.get_json()['items_deleted'] == 2
    assert get_db().query(Invoice).filter_by(id=inv_id).count() == 0
    assert get_db().query(InvoiceItem).filter_by(invoice_id=inv_id).count() == 0
    assert client.delete(f"/clients/{cust['id']}", headers=headers).status_code == 200


def test_invoice_capabilities_and_isolation(client):
    owner, biz = seed_owner('inv_gate_owner@example.com')
    intruder, other_biz = seed_owner('inv_gate_intruder@example.com')
    cashier = seed_role(biz.id, 'Invoice Cashier', {'invoices': ['create']})
    viewer = seed_role(biz.id, 'Invoice Viewer')
    seed_employee(biz.id, 'inv_gate_cashier@example.com', roles=[cashier])
    seed_employee(biz.id, 'inv_gate_viewer@example.com', roles=[viewer])
    owner_h = login(client, owner.email)
    cust, widget, _ = _catalogue(client, owner_h, 'Gate')
    body = _payload(cust, 'G-1', [{'product_id': widget['id']}])

    viewer_h = login(client, 'inv_gate_viewer@example.com')
    assert client.post('/invoices', json=body, headers=viewer_h).status_code == 403
    cashier_h = login(client, 'inv_gate_cashier@example.com')
    created = client.post('/invoices', json=body, headers=cashier_h)
    assert created.status_code == 201
    inv_id = created.get_json()['id']
    assert client.get('/invoices', headers=viewer_h).get_json()['pagination']['total'] == 1
    assert client.delete(f'/invoices/{inv_id}', headers=cashier_h).status_code == 403
    assert client.post(f'/invoices/{inv_id}/status', json={'status': 'paid'}, headers=cashier_h).status_code == 403

    intruder_h = login(client, intruder.email)
    assert client.get(f'/invoices/{inv_id}', headers=intruder_h).status_code == 404
    assert client.get('/invoices', headers=intruder_h).get_json()['pagination']['total'] == 0

    summary = client.get('/dashboard/summary', headers=owner_h).get_json()
    assert summary['counts']['invoices'] == summary['counts']['unpaid_invoices'] == 1
    assert summary['recent_invoices'][0]['invoice_number'] == 'G-1'
