from test_utils_seed import seed_owner, seed_role, seed_employee, login


def test_dashboard_summary_counts(client):
    owner, biz = seed_owner('dash_owner@example.com')
    headers = login(client, owner.email)
    client.post('/branches', json={'name': 'Main', 'code': 'M1'}, headers=headers)
    client.post('/clients', json={'name': 'Dash Client'}, headers=headers)
    client.post('/products', json={'name': 'Plenty', 'price_cents': 1, 'quantity': 50}, headers=headers)
    low = client.post('/products', json={'name': 'Scarce', 'price_cents': 1, 'quantity': 2}, headers=headers).get_json()
    client.post('/products', json={'name': 'Consulting', 'price_cents': 1, 'type': 'service'}, headers=headers)
    seed_role(biz.id, 'Dash Role')

    resp = client.get('/dashboard/summary', headers=headers)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['business_id'] == biz.id
    assert body['counts'] == {
        'branches': 1,
        'employees': 0,
        'active_employees': 0,
        'clients': 1,
        'products': 3,
        'roles': 1,
        'low_stock': 1,
        'invoices': 0,
        'unpaid_invoices': 0,
    }
    assert body['low_stock_products'] == [{'id': low['id'], 'name': 'Scarce', 'quantity': 2}]


def test_audit_logs_are_scoped_and_filterable(client):
    owner_a, biz_a = seed_owner('audit_a@example.com')
    owner_b, biz_b = seed_owner('audit_b@example.com')
    headers_a = login(client, owner_a.email)
    headers_b = login(client, owner_b.email)
    role_id = client.post('/roles', json={'name': 'Audited'}, headers=headers_a).get_json()['id']
    client.put(f'/roles/{role_id}/permissions/reports', json={'capability': 'update', 'value': True}, headers=headers_a)
    client.post('/roles', json={'name': 'Other Biz Role'}, headers=headers_b)

    logs = client.get('/audit/logs', headers=headers_a).get_json()
    actions = [r['action'] for r in logs['data']]
    # newest first
    assert actions[:2] == ['PERMISSION.SET', 'ROLE.CREATE']
    assert all(r['actor_identity_id'] == owner_a.id for r in logs['data'])

    perm_logs = client.get('/audit/logs', query_string={'action': 'PERMISSION.SET'}, headers=headers_a).get_json()
    assert perm_logs['pagination']['total'] == 1
    entry = perm_logs['data'][0]
    assert entry['entity'] == 'Role'
    assert entry['entity_id'] == str(role_id)
    assert entry['meta']['module'] == 'reports'
    assert entry['meta']['values']['update_permission'] is True

    by_entity = client.get('/audit/logs', query_string={'entity': 'Role', 'entity_id': str(role_id)}, headers=headers_a).get_json()
    assert by_entity['pagination']['total'] == 2
    assert client.get('/audit/logs?actor_identity_id=abc', headers=headers_a).status_code == 400


def test_audit_logs_need_settings_read(client):
    owner, biz = seed_owner('audit_gate_owner@example.com')
    role = seed_role(biz.id, 'No Settings')
    seed_employee(biz.id, 'audit_gate_emp@example.com', roles=[role])
    owner_h = login(client, owner.email)
    emp_h = login(client, 'audit_gate_emp@example.com')
    assert client.get('/audit/logs', headers=emp_h).status_code == 200
    client.put(f'/roles/{role.id}/permissions/settings', json={'capability': 'read', 'value': False}, headers=owner_h)
    assert client.get('/audit/logs', headers=emp_h).status_code == 403
