from bizconsole import get_db
from bizconsole.models.audit import AuditLog
from test_utils_seed import ensure_identity, seed_owner, seed_role, seed_employee, login


def test_business_settings_update(client):
    owner, biz = seed_owner('settings_owner@example.com', business_name='Old Name')
    headers = login(client, owner.email)
    current = client.get('/settings/business', headers=headers)
    assert current.status_code == 200
    assert current.get_json()['name'] == 'Old Name'

    resp = client.put('/settings/business', json={'name': 'New Name', 'email': 'Shop@Example.com', 'phone': '+44 20 7946 0000'}, headers=headers)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['name'] == 'New Name'
    assert body['email'] == 'shop@example.com'
    assert client.put('/settings/business', json={'phone': 'abc'}, headers=headers).status_code == 400

    audit = get_db().query(AuditLog).filter_by(action='BUSINESS.UPDATE', entity_id=str(biz.id)).first()
    assert audit.meta['changes']['name'] == {'before': 'Old Name', 'after': 'New Name'}


def test_business_settings_owner_only(client):
    owner, biz = seed_owner('settings_emp_owner@example.com')
    role = seed_role(biz.id, 'Settings Reader', {'settings': ['update']})
    seed_employee(biz.id, 'settings_emp@example.com', roles=[role])
    resp = client.put('/settings/business', json={'name': 'Taken Over'}, headers=login(client, 'settings_emp@example.com'))
    assert resp.status_code == 403


def test_profile_roundtrip(client):
    ensure_identity('profile_user@example.com')
    headers = login(client, 'profile_user@example.com')
    assert client.get('/settings/profile', headers=headers).status_code == 404
    resp = client.put('/settings/profile', json={'first_name': 'Pat', 'last_name': 'Doe'}, headers=headers)
    assert resp.status_code == 200
    assert client.get('/settings/profile', headers=headers).get_json()['first_name'] == 'Pat'
