from taskhub.models.authz import User
from taskhub import get_db
from tests.test_utils_seed import make_user, login_headers


def test_login_and_me(client):
    # Seed a user manually with an upstream role spelling
    session = get_db()
    u = User(name='T', email='t@example.com', password_hash='', role='PROJECT_MANAGER')
    u.set_password('pw')
    session.add(u)
    session.commit()

    resp = client.post('/auth/login', json={'email': 't@example.com', 'password': 'pw'})
    assert resp.status_code == 200, resp.get_json()
    token = resp.get_json()['access_token']

    me = client.get('/auth/me?locale=fr', headers={'Authorization': f'Bearer {token}'})
    assert me.status_code == 200
    body = me.get_json()
    assert body['email'] == 't@example.com'
    assert body['role'] == 'MANAGER'
    assert body['role_label'] == 'Chef de Projet'


def test_login_rejects_bad_credentials(client):
    user = make_user('EMPLOYEE')
    assert client.post('/auth/login', json={'email': user.email, 'password': 'wrong'}).status_code == 401
    assert client.post('/auth/login', json={'email': user.email}).status_code == 400


def test_inactive_user_cannot_login(client):
    user = make_user('EMPLOYEE')
    user.is_active = False
    get_db().commit()
    assert client.post('/auth/login', json={'email': user.email, 'password': 'pw'}).status_code == 401


def test_protected_endpoint_requires_token(client):
    assert client.get('/projects').status_code == 401
    assert client.get('/access/capabilities').status_code == 401


def test_capabilities_endpoint(client):
    headers = login_headers(client, make_user('VIEWER'))
    body = client.get('/access/capabilities', headers=headers).get_json()
    # unknown-to-us spellings collapse to the least privileged role
    assert body['role'] == 'EMPLOYEE'
    assert body['capabilities']['TASK'] == ['READ', 'UPDATE']
    assert body['capabilities']['USER'] == []
    assert body['capabilities']['SETTING'] == ['READ', 'UPDATE']


def test_route_endpoints(client):
    emp = login_headers(client, make_user('EMPLOYEE'))
    mgr = login_headers(client, make_user('MANAGER'))
    r = client.get('/access/routes/check?path=/dashboard/users/4', headers=emp)
    assert r.get_json() == {'path': '/dashboard/users/4', 'allowed': False}
    r = client.get('/access/routes/check?path=/dashboard/users/4', headers=mgr)
    assert r.get_json()['allowed'] is True
    assert client.get('/access/routes/check', headers=emp).status_code == 400
    paths = [x['path'] for x in client.get('/access/routes', headers=emp).get_json()['routes']]
    assert '/dashboard/tasks' in paths
    assert '/dashboard/reports' not in paths


def test_healthz(client):
    assert client.get('/healthz').get_json() == {'status': 'ok'}
