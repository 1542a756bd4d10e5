from bizconsole import get_db
from bizconsole.models.audit import AuditLog
from test_utils_seed import seed_owner, seed_role, seed_employee, login


def test_client_crud_and_search(client):
    owner, biz = seed_owner('clients_owner@example.com')
    headers = login(client, owner.email)
    for name, company in [('Alice Stone', 'Stone Corp'), ('Bob Ray', 'Ray Labs'), ('Carol Stone', None)]:
        resp = client.post('/clients', json={'name': name, 'company': company, 'email': f"{name.split()[0].lower()}@clients.test"}, headers=headers)
        assert resp.status_code == 201, resp.get_json()

    stones = client.get('/clients', query_string={'search': 'stone', 'sort': '-name'}, headers=headers).get_json()
    assert [c['name'] for c in stones['data']] == ['Carol Stone', 'Alice Stone']
    by_company = client.get('/clients', query_string={'search': 'ray labs'}, headers=headers).get_json()
    assert [c['name'] for c in by_company['data']] == ['Bob Ray']
    by_email = client.get('/clients', query_string={'search': 'alice@'}, headers=headers).get_json()
    assert by_email['pagination']['total'] == 1

    cid = by_company['data'][0]['id']
    upd = client.put(f'/clients/{cid}', json={'notes': 'prefers email', 'phone': '555-0101'}, headers=headers)
    assert upd.status_code == 200
    assert upd.get_json()['notes'] == 'prefers email'
    assert client.put(f'/clients/{cid}', json={'email': 'broken'}, headers=headers).status_code == 400
    assert client.delete(f'/clients/{cid}', headers=headers).status_code == 200
    assert client.get(f'/clients/{cid}', headers=headers).status_code == 404


def test_client_invalid_sort(client):
    owner, biz = seed_owner('clients_sort_owner@example.com')
    resp = client.get('/clients?sort=password', headers=login(client, owner.email))
    assert resp.status_code == 400
    assert resp.get_json()['error']['detail'] == 'Invalid sort field password'


def test_product_crud_and_validation(client):
    owner, biz = seed_owner('products_owner@example.com')
    headers = login(client, owner.email)
    assert client.post('/products', json={'name': 'Neg', 'price_cents': -1}, headers=headers).status_code == 400
    assert client.post('/products', json={'name': 'Typo', 'price_cents': 10, 'type': 'gadget'}, headers=headers).status_code == 400
    created = client.post('/products', json={'name': 'Widget', 'price_cents': 1299, 'quantity': 12}, headers=headers)
    assert created.status_code == 201
    body = created.get_json()
    assert body['type'] == 'product'
    assert body['status'] == 'active'
    assert body['low_stock'] is False

    service = client.post('/products', json={'name': 'Install', 'price_cents': 5000, 'type': 'service'}, headers=headers).get_json()
    assert service['low_stock'] is False

    only_services = client.get('/products?type=service', headers=headers).get_json()
    assert [p['id'] for p in only_services['data']] == [service['id']]
    upd = client.put(f"/products/{body['id']}", json={'status': 'inactive'}, headers=headers)
    assert upd.get_json()['status'] == 'inactive'


def test_stock_adjust_never_below_zero(client):
    owner, biz = seed_owner('adjust_owner@example.com')
    headers = login(client, owner.email)
    pid = client.post('/products', json={'name': 'Bolt', 'price_cents': 5, 'quantity': 3}, headers=headers).get_json()['id']
    up = client.post(f'/products/{pid}/adjust', json={'delta': 4}, headers=headers)
    assert up.status_code == 200
    assert up.get_json()['quantity'] == 7
    too_far = client.post(f'/products/{pid}/adjust', json={'delta': -8}, headers=headers)
    assert too_far.status_code == 409
    assert client.get(f'/products/{pid}', headers=headers).get_json()['quantity'] == 7
    assert client.post(f'/products/{pid}/adjust', json={}, headers=headers).status_code == 400
    assert client.post(f'/products/{pid}/adjust', json={'delta': 'lots'}, headers=headers).status_code == 400
    down = client.post(f'/products/{pid}/adjust', json={'delta': -7}, headers=headers)
    assert down.get_json()['quantity'] == 0
    assert down.get_json()['low_stock'] is True

    audit = get_db().query(AuditLog).filter_by(action='PRODUCT.ADJUST', entity_id=str(pid)).order_by(AuditLog.id.asc()).first()
    assert audit.meta['changes']['quantity'] == {'before': 3, 'after': 7}


def test_adjust_uses_inventory_capability(client):
    owner, biz = seed_owner('adjust_gate_owner@example.com')
    products_only = seed_role(biz.id, 'Products Editor', {'products': ['update']})
    stock = seed_role(biz.id, 'Stock Mover', {'inventory': ['update']})
    seed_employee(biz.id, 'adjust_products@example.com', roles=[products_only])
    seed_employee(biz.id, 'adjust_stock@example.com', roles=[stock])
    pid = client.post('/products', json={'name': 'Gated', 'price_cents': 1, 'quantity': 1}, headers=login(client, owner.email)).get_json()['id']

    denied = client.post(f'/products/{pid}/adjust', json={'delta': 1}, headers=login(client, 'adjust_products@example.com'))
    assert denied.status_code == 403
    allowed = client.post(f'/products/{pid}/adjust', json={'delta': 1}, headers=login(client, 'adjust_stock@example.com'))
    assert allowed.status_code == 200
    assert allowed.get_json()['quantity'] == 2


def test_low_stock_filter_matches_flag(client):
    owner, biz = seed_owner('low_stock_owner@example.com')
    headers = login(client, owner.email)
    scarce = client.post('/products', json={'name': 'Scarce Item', 'price_cents': 10, 'quantity': 1}, headers=headers).get_json()
    client.post('/products', json={'name': 'Plenty Item', 'price_cents': 10, 'quantity': 40}, headers=headers)
    client.post('/products', json={'name': 'Consulting', 'price_cents': 10, 'type': 'service'}, headers=headers)
    shelved = client.post('/products', json={'name': 'Shelved Item', 'price_cents': 10, 'quantity': 0, 'status': 'inactive'}, headers=headers).get_json()
    assert shelved['low_stock'] is False

    listing = client.get('/products', query_string={'low_stock': 'true'}, headers=headers).get_json()
    assert [p['id'] for p in listing['data']] == [scarce['id']]
    assert all(p['low_stock'] for p in listing['data'])

    summary = client.get('/dashboard/summary', headers=headers).get_json()
    assert summary['counts']['low_stock'] == listing['pagination']['total'] == 1
