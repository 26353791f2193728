import pytest
from flask import Flask
from repairdesk import get_db
from repairdesk.constants.permissions import ROLE_TECHNICIAN, ROLE_CUSTOMER, ROLE_PRESETS
from repairdesk.models.spare_part_order import SparePartOrder
from tests.test_utils_seed import seed_user_with_role, create_service, create_client, ensure_user, unique_email
from tests.test_lifecycle_helpers import technician_headers, admin_headers, jwt_headers, request_part, service_status


@pytest.fixture()
def app_context(app_instance):
    with app_instance.app_context():
        yield app_instance


def _tech():
    return seed_user_with_role('tech', ROLE_TECHNICIAN, ROLE_PRESETS[ROLE_TECHNICIAN])


def _admin():
    return ensure_user(unique_email('admin'))


def test_create_service_and_manual_lifecycle(app_context: Flask):
    client = app_context.test_client()
    admin = _admin()
    tech = _tech()
    headers = admin_headers(admin.id)
    c = client.post('/clients', json={'fullName': 'Jelena Ilić', 'phone': '067 100 200', 'city': 'Budva'}, headers=headers)
    assert c.status_code == 201, c.get_json()
    client_id = c.get_json()['id']
    a = client.post(f'/clients/{client_id}/appliances', json={'category': 'Frižider', 'manufacturer': 'Gorenje'}, headers=headers)
    assert a.status_code == 201, a.get_json()
    s = client.post('/services', json={'clientId': client_id, 'applianceId': a.get_json()['id'], 'description': 'Ne hladi'}, headers=headers)
    assert s.status_code == 201, s.get_json()
    service = s.get_json()
    assert service['status'] == 'pending'
    assert service['status_label'] == 'Na čekanju'
    sid = service['id']
    # start before assignment is not a valid step
    assert client.post(f'/services/{sid}/start', headers=headers).status_code == 400
    assigned = client.post(f'/services/{sid}/assign', json={'technicianId': tech.id}, headers=headers)
    assert assigned.status_code == 200, assigned.get_json()
    assert assigned.get_json()['status'] == 'assigned'
    assert assigned.get_json()['technician_id'] == tech.id
    started = client.post(f'/services/{sid}/start', headers=technician_headers(tech.id))
    assert started.status_code == 200, started.get_json()
    assert started.get_json()['status'] == 'in_progress'


def test_create_service_with_technician_is_assigned(app_context: Flask):
    client = app_context.test_client()
    admin = _admin()
    tech = _tech()
    customer = create_client()
    headers = admin_headers(admin.id)
    a = client.post(f'/clients/{customer.id}/appliances', json={'category': 'Šporet'}, headers=headers)
    s = client.post('/services', json={'client_id': customer.id, 'appliance_id': a.get_json()['id'],
                                       'description': 'Ne greje', 'technician_id': tech.id}, headers=headers)
    assert s.status_code == 201, s.get_json()
    assert s.get_json()['status'] == 'assigned'


def test_create_service_rejects_foreign_appliance(app_context: Flask):
    client = app_context.test_client()
    admin = _admin()
    other = create_service('pending')
    customer = create_client()
    resp = client.post('/services', json={'clientId': customer.id, 'applianceId': other.appliance_id, 'description': 'x'},
                       headers=admin_headers(admin.id))
    assert resp.status_code == 400
    assert resp.get_json()['error']['field'] == 'appliance_id'


def test_status_endpoint_rejects_coordinator_owned_targets(app_context: Flask):
    client = app_context.test_client()
    tech = _tech()
    service = create_service('in_progress', technician=tech)
    headers = technician_headers(tech.id)
    for target in ('waiting_parts', 'device_parts_removed', 'completed'):
        resp = client.post(f'/services/{service.id}/status', json={'status': target}, headers=headers)
        assert resp.status_code == 400
        assert resp.get_json()['error']['field'] == 'status'
    ok = client.post(f'/services/{service.id}/status', json={'status': 'client_not_home', 'technicianNotes': 'Niko ne otvara'},
                     headers=headers)
    assert ok.status_code == 200, ok.get_json()
    assert ok.get_json()['status'] == 'client_not_home'
    assert ok.get_json()['technician_notes'] == 'Niko ne otvara'


def test_complete_validation(app_context: Flask):
    client = app_context.test_client()
    tech = _tech()
    service = create_service('in_progress', technician=tech)
    url = f'/services/{service.id}/complete'
    headers = technician_headers(tech.id)
    full = {'cost': '4500', 'technicianNotes': 'Zamenjena pumpa', 'isCompletelyFixed': True}
    for missing, field in (('cost', 'cost'), ('technicianNotes', 'technician_notes'), ('isCompletelyFixed', 'is_completely_fixed')):
        payload = {k: v for k, v in full.items() if k != missing}
        resp = client.post(url, json=payload, headers=headers)
        assert resp.status_code == 400
        assert resp.get_json()['error']['field'] == field
    assert service_status(service.id) == 'in_progress'
    resp = client.post(url, json=full, headers=headers)
    assert resp.status_code == 200, resp.get_json()
    body = resp.get_json()
    assert body['status'] == 'completed'
    assert body['cost'] == '4500'
    assert body['is_completely_fixed'] is True
    assert body['completed_date']
    # terminal: a second completion is an invalid transition
    assert client.post(url, json=full, headers=headers).status_code == 400


def test_complete_from_waiting_parts_with_numeric_cost(app_context: Flask):
    client = app_context.test_client()
    tech = _tech()
    service = create_service('waiting_parts', technician=tech)
    resp = client.post(f'/services/{service.id}/complete', json={'cost': 120, 'technician_notes': 'ok', 'is_completely_fixed': False},
                       headers=technician_headers(tech.id))
    assert resp.status_code == 200, resp.get_json()
    assert resp.get_json()['cost'] == '120'
    assert resp.get_json()['is_completely_fixed'] is False


def test_deliver_and_cancel(app_context: Flask):
    client = app_context.test_client()
    admin = _admin()
    headers = admin_headers(admin.id)
    done = create_service('completed')
    assert client.post(f'/services/{done.id}/deliver', headers=headers).get_json()['status'] == 'delivered'
    assert client.post(f'/services/{done.id}/cancel', headers=headers).status_code == 400
    pending = create_service('pending')
    assert client.post(f'/services/{pending.id}/cancel', headers=headers).get_json()['status'] == 'cancelled'


def test_technician_sees_only_own_services(app_context: Flask):
    client = app_context.test_client()
    tech = _tech()
    other = _tech()
    mine = create_service('in_progress', technician=tech)
    theirs = create_service('in_progress', technician=other)
    headers = technician_headers(tech.id)
    listed = client.get('/services?limit=200', headers=headers)
    ids = [r['id'] for r in listed.get_json()['data']]
    assert mine.id in ids and theirs.id not in ids
    assert client.get(f'/services/{theirs.id}', headers=headers).status_code == 403
    assert client.post(f'/services/{theirs.id}/start', headers=headers).status_code == 403


def test_customer_scope(app_context: Flask):
    client = app_context.test_client()
    customer_user = seed_user_with_role('cust', ROLE_CUSTOMER, ROLE_PRESETS[ROLE_CUSTOMER])
    own_client = create_client(full_name='Vlasnik', user_id=customer_user.id)
    own = create_service('pending', client=own_client)
    foreign = create_service('pending')
    headers = jwt_headers(customer_user.id, ROLE_PRESETS[ROLE_CUSTOMER], [ROLE_CUSTOMER])
    ids = [r['id'] for r in client.get('/services?limit=200', headers=headers).get_json()['data']]
    assert ids == [own.id]
    assert client.get(f'/services/{foreign.id}', headers=headers).status_code == 403


def test_delete_service_removes_orders(app_context: Flask):
    client = app_context.test_client()
    tech = _tech()
    admin = _admin()
    service = create_service('in_progress', technician=tech)
    request_part(client, technician_headers(tech.id), service.id)
    resp = client.delete(f'/services/{service.id}', headers=admin_headers(admin.id))
    assert resp.status_code == 200, resp.get_json()
    assert resp.get_json()['deleted'] is True
    assert get_db().query(SparePartOrder).filter_by(service_id=service.id).count() == 0
    assert client.get(f'/services/{service.id}', headers=admin_headers(admin.id)).status_code == 404
    assert client.delete(f'/services/{service.id}', headers=technician_headers(tech.id)).status_code == 403


def test_list_services_filters_and_sort(app_context: Flask):
    client = app_context.test_client()
    admin = _admin()
    tech = _tech()
    a = create_service('waiting_parts', technician=tech)
    b = create_service('in_progress', technician=tech)
    headers = admin_headers(admin.id)
    resp = client.get(f'/services?technician_id={tech.id}&sort=-id', headers=headers)
    assert [r['id'] for r in resp.get_json()['data']] == [b.id, a.id]
    resp = client.get(f'/services?technician_id={tech.id}&status=waiting_parts', headers=headers)
    assert [r['id'] for r in resp.get_json()['data']] == [a.id]
    assert client.get('/services?status=broken', headers=headers).status_code == 400
    assert client.get('/services?sort=color', headers=headers).status_code == 400
