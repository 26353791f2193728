from repairdesk.models.authz import User
from repairdesk.constants.permissions import ROLE_TECHNICIAN, ROLE_PRESETS
from repairdesk import get_db
from tests.test_utils_seed import seed_user_with_role


def test_login_and_me(client):
    # Seed a user manually
    session = get_db()
    u = User(full_name='T', email='t@example.com', password_hash='')
    u.set_password('pw')
    session.add(u)
    session.commit()

    # Login
    resp = client.post('/auth/login', json={'email': 't@example.com', 'password': 'pw'})
    assert resp.status_code == 200, resp.get_json()
    token = resp.get_json()['access_token']

    me = client.get('/auth/me', headers={'Authorization': f'Bearer {token}'})
    assert me.status_code == 200
    body = me.get_json()
    assert body['email'] == 't@example.com'
    assert body['roles'] == []


def test_login_carries_role_permissions(client):
    tech = seed_user_with_role('login-tech', ROLE_TECHNICIAN, ROLE_PRESETS[ROLE_TECHNICIAN])
    resp = client.post('/auth/login', json={'email': tech.email, 'password': 'pw'})
    assert resp.status_code == 200, resp.get_json()
    token = resp.get_json()['access_token']
    body = client.get('/auth/me', headers={'Authorization': f'Bearer {token}'}).get_json()
    assert body['roles'] == [ROLE_TECHNICIAN]
    assert 'SPR.REQUEST' in body['perms']
    assert 'SPR.MANAGE' not in body['perms']
    # token works against a permission-guarded endpoint
    listed = client.get('/spare-parts', headers={'Authorization': f'Bearer {token}'})
    assert listed.status_code == 200


def test_login_failures(client):
    session = get_db()
    u = User(full_name='Off', email='off@example.com', password_hash='', is_active=False)
    u.set_password('pw')
    session.add(u)
    session.commit()
    assert client.post('/auth/login', json={'email': 'off@example.com'}).status_code == 400
    assert client.post('/auth/login', json={'email': 'off@example.com', 'password': 'nope'}).status_code == 401
    assert client.post('/auth/login', json={'email': 'ghost@example.com', 'password': 'pw'}).status_code == 401
    assert client.post('/auth/login', json={'email': 'off@example.com', 'password': 'pw'}).status_code == 403
