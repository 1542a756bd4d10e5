from flask_jwt_extended import decode_token
from bizconsole import get_db
from bizconsole.models.authz import RevokedToken
from test_utils_seed import seed_owner, seed_role, seed_employee, login


def test_signup_then_login_and_session(client):
    resp = client.post('/auth/signup', json={'email': 'New.User@Example.com', 'password': 'hunter22'})
    assert resp.status_code == 201, resp.get_json()
    assert resp.get_json()['email'] == 'new.user@example.com'

    headers = login(client, 'new.user@example.com', 'hunter22')
    session = client.get('/auth/session', headers=headers)
    assert session.status_code == 200
    body = session.get_json()
    assert body['identity']['email'] == 'new.user@example.com'
    # no business yet: the client is sent to setup
    assert body['state'] == 'uninitialized'
    assert body['business_id'] is None
    assert body['employee'] is None


def test_signup_validation(client):
    assert client.post('/auth/signup', json={'email': 'short@example.com', 'password': '123'}).status_code == 400
    assert client.post('/auth/signup', json={'email': 'not-an-email', 'password': 'longenough'}).status_code == 400
    first = client.post('/auth/signup', json={'email': 'twice@example.com', 'password': 'longenough'})
    assert first.status_code == 201
    again = client.post('/auth/signup', json={'email': 'twice@example.com', 'password': 'longenough'})
    assert again.status_code == 409
    assert again.get_json()['error']['detail'] == 'email already registered'


def test_login_failures(client):
    seed_owner('login_fail@example.com')
    missing = client.post('/auth/login', json={'email': 'login_fail@example.com'})
    assert missing.status_code == 400
    wrong = client.post('/auth/login', json={'email': 'login_fail@example.com', 'password': 'nope-nope'})
    assert wrong.status_code == 401
    assert wrong.get_json()['error']['detail'] == 'invalid credentials'


def test_owner_session_is_ready(client, app_instance):
    owner, biz = seed_owner('session_owner@example.com')
    resp = client.post('/auth/login', json={'email': owner.email, 'password': 'secret-pw'})
    token = resp.get_json()['access_token']
    with app_instance.app_context():
        claims = decode_token(token)
    assert claims['business_id'] == biz.id
    assert claims['is_owner'] is True

    body = client.get('/auth/session', headers={'Authorization': f'Bearer {token}'}).get_json()
    assert body['state'] == 'ready'
    assert body['is_owner'] is True
    assert body['business_id'] == biz.id


def test_employee_session_has_profile(client):
    owner, biz = seed_owner('session_emp_owner@example.com')
    role = seed_role(biz.id, 'Session Role')
    emp = seed_employee(biz.id, 'session_emp@example.com', roles=[role])
    body = client.get('/auth/session', headers=login(client, 'session_emp@example.com')).get_json()
    assert body['state'] == 'ready'
    assert body['is_owner'] is False
    assert body['business_id'] == biz.id
    assert body['employee']['id'] == emp.id
    assert body['employee']['role_ids'] == [role.id]
    assert body['employee']['kind'] == 'employee'


def test_logout_revokes_token(client):
    owner, biz = seed_owner('logout_owner@example.com')
    headers = login(client, owner.email)
    assert client.get('/dashboard/summary', headers=headers).status_code == 200
    out = client.post('/auth/logout', headers=headers)
    assert out.status_code == 200
    assert get_db().query(RevokedToken).count() >= 1
    after = client.get('/dashboard/summary', headers=headers)
    assert after.status_code == 401
    assert after.get_json()['error']['detail'] == 'Token has been revoked'
    # a fresh sign-in works again
    assert client.get('/dashboard/summary', headers=login(client, owner.email)).status_code == 200


def test_missing_token_is_401(client):
    resp = client.get('/roles')
    assert resp.status_code == 401
    assert resp.get_json()['error']['status'] == 401


def test_change_password(client):
    owner, biz = seed_owner('pwchange@example.com')
    headers = login(client, owner.email)
    assert client.put('/auth/password', json={'password': 'x'}, headers=headers).status_code == 400
    assert client.put('/auth/password', json={'password': 'brand-new-pw'}, headers=headers).status_code == 200
    assert client.post('/auth/login', json={'email': owner.email, 'password': 'secret-pw'}).status_code == 401
    login(client, owner.email, 'brand-new-pw')


def test_non_string_email_is_rejected(client):
    signup = client.post('/auth/signup', json={'email': 123, 'password': 'hunter22'})
    assert signup.status_code == 400
    assert signup.get_json()['error']['detail'] == 'email must be a string'
    signin = client.post('/auth/login', json={'email': 123, 'password': 'x'})
    assert signin.status_code == 400
    assert client.post('/auth/login', json={'email': ['a@b.co'], 'password': 'hunter22'}).status_code == 400
    owner, biz = seed_owner('typed_email_owner@example.com')
    headers = login(client, owner.email)
    resp = client.post('/employees', json={'name': 'Typed', 'email': {'x': 1}, 'job_title': 'Clerk'}, headers=headers)
    assert resp.status_code == 400
