from bizconsole import get_db
from bizconsole.models.client import Client
from test_utils_seed import seed_owner, seed_role, seed_employee, login


def test_grant_takes_effect_on_next_request(client):
    owner, biz = seed_owner('gate_owner@example.com')
    role = seed_role(biz.id, 'Gate Clerk')
    seed_employee(biz.id, 'gate_emp@example.com', roles=[role])
    owner_h = login(client, owner.email)
    emp_h = login(client, 'gate_emp@example.com')

    # default rows are read-only, so listing works first
    assert client.get('/clients', headers=emp_h).status_code == 200

    off = client.put(f'/roles/{role.id}/permissions/clients', json={'capability': 'read', 'value': False}, headers=owner_h)
    assert off.status_code == 200
    denied = client.get('/clients', headers=emp_h)
    assert denied.status_code == 403
    assert denied.get_json()['error']['detail'] == 'Missing permission'

    on = client.put(f'/roles/{role.id}/permissions/clients', json={'capability': 'read', 'value': True}, headers=owner_h)
    assert on.status_code == 200
    assert client.get('/clients', headers=emp_h).status_code == 200


def test_employee_write_needs_matching_capability(client):
    owner, biz = seed_owner('gate_write_owner@example.com')
    reader = seed_role(biz.id, 'Reader')
    writer = seed_role(biz.id, 'Writer', {'clients': ['create']})
    seed_employee(biz.id, 'gate_reader@example.com', roles=[reader])
    seed_employee(biz.id, 'gate_writer@example.com', roles=[writer])

    payload = {'name': 'Walk-in Customer'}
    assert client.post('/clients', json=payload, headers=login(client, 'gate_reader@example.com')).status_code == 403
    created = client.post('/clients', json=payload, headers=login(client, 'gate_writer@example.com'))
    assert created.status_code == 201
    # create does not imply delete
    assert client.delete(f"/clients/{created.get_json()['id']}", headers=login(client, 'gate_writer@example.com')).status_code == 403


def test_employee_without_roles_is_denied(client):
    owner, biz = seed_owner('gate_none_owner@example.com')
    seed_employee(biz.id, 'gate_none@example.com')
    headers = login(client, 'gate_none@example.com')
    assert client.get('/dashboard/summary', headers=headers).status_code == 403
    assert client.get('/products', headers=headers).status_code == 403


def test_roles_union_across_assignments(client):
    owner, biz = seed_owner('gate_union_owner@example.com')
    a = seed_role(biz.id, 'Union A', {'products': ['create']})
    b = seed_role(biz.id, 'Union B', {'products': ['update']})
    seed_employee(biz.id, 'gate_union@example.com', roles=[a, b])
    headers = login(client, 'gate_union@example.com')
    created = client.post('/products', json={'name': 'Union Widget', 'price_cents': 100}, headers=headers)
    assert created.status_code == 201
    pid = created.get_json()['id']
    assert client.put(f'/products/{pid}', json={'price_cents': 150}, headers=headers).status_code == 200


def test_cross_business_isolation(client):
    owner_a, biz_a = seed_owner('iso_a@example.com')
    owner_b, biz_b = seed_owner('iso_b@example.com')
    session = get_db()
    secret = Client(business_id=biz_b.id, name='B Only Client')
    session.add(secret); session.commit()

    headers_a = login(client, owner_a.email)
    assert client.get(f'/clients/{secret.id}', headers=headers_a).status_code == 404
    assert client.put(f'/clients/{secret.id}', json={'name': 'Hijacked'}, headers=headers_a).status_code == 404
    assert client.delete(f'/clients/{secret.id}', headers=headers_a).status_code == 404
    listed = client.get('/clients', query_string={'search': 'B Only'}, headers=headers_a).get_json()
    assert listed['pagination']['total'] == 0

    headers_b = login(client, owner_b.email)
    visible = client.get('/clients', query_string={'search': 'B Only'}, headers=headers_b).get_json()
    assert [c['id'] for c in visible['data']] == [secret.id]
    assert session.get(Client, secret.id).name == 'B Only Client'
