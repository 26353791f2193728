from tests.test_utils_seed import ensure_user, unique_email, create_service
from tests.test_lifecycle_helpers import jwt_headers, admin_headers


def test_unknown_path_returns_error_json(client):
    resp = client.get('/non-existent-path')
    # Flask default 404 should be wrapped by error handler
    assert resp.status_code == 404
    body = resp.get_json()
    assert 'error' in body
    assert body['error']['status'] == 404
    assert 'detail' in body['error']
    assert 'field' not in body['error']


def test_validation_error_names_field(client):
    user = ensure_user(unique_email('err'))
    resp = client.post('/clients', json={'phone': '064'}, headers=admin_headers(user.id))
    assert resp.status_code == 400
    body = resp.get_json()
    assert body['error']['title'] == 'Bad Request'
    assert body['error']['field'] == 'full_name'


def test_forbidden_shape(client):
    user = ensure_user(unique_email('err'))
    resp = client.get('/services', headers=jwt_headers(user.id, []))
    assert resp.status_code == 403
    assert resp.get_json()['error']['detail'] == 'Missing permission'


def test_internal_error_shape(client, monkeypatch):
    user = ensure_user(unique_email('err'))
    service = create_service('in_progress')
    import repairdesk.routes.services as services_mod

    def boom(*a, **k):
        raise RuntimeError('explode')

    monkeypatch.setattr(services_mod, 'service_json', boom)
    resp = client.get(f'/services/{service.id}', headers=admin_headers(user.id))
    assert resp.status_code == 500
    body = resp.get_json()
    assert body['error']['status'] == 500
    assert body['error']['title'] == 'Internal Server Error'


def test_health(client):
    assert client.get('/healthz').get_json() == {'status': 'ok'}
