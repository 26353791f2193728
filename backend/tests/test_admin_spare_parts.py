import pytest
from io import BytesIO
from flask import Flask
from openpyxl import load_workbook
from repairdesk.constants.permissions import ROLE_TECHNICIAN, ROLE_SUPPLIER, ROLE_PRESETS
from tests.test_utils_seed import seed_user_with_role, create_service, create_client, ensure_user, unique_email
from tests.test_lifecycle_helpers import technician_headers, admin_headers, jwt_headers, request_part, service_status


@pytest.fixture()
def app_context(app_instance):
    with app_instance.app_context():
        yield app_instance


def _actors():
    tech = seed_user_with_role('tech', ROLE_TECHNICIAN, ROLE_PRESETS[ROLE_TECHNICIAN])
    admin = ensure_user(unique_email('admin'))
    return tech, admin


def _update(client, admin, order_id, expected=200, **payload):
    resp = client.put(f'/admin/spare-parts/{order_id}', json=payload, headers=admin_headers(admin.id))
    assert resp.status_code == expected, resp.get_json()
    return resp.get_json()


def test_delivered_then_return_from_waiting(app_context: Flask):
    client = app_context.test_client()
    tech, admin = _actors()
    service = create_service('in_progress', technician=tech)
    order = request_part(client, technician_headers(tech.id), service.id)
    body = _update(client, admin, order['id'], status='delivered')
    assert body['status'] == 'delivered'
    assert body['service_status'] == 'in_progress'
    resp = client.post(f'/admin/services/{service.id}/return-from-waiting', json={}, headers=admin_headers(admin.id))
    assert resp.status_code == 200, resp.get_json()
    assert resp.get_json()['changed'] is False
    got = client.get(f'/services/{service.id}', headers=admin_headers(admin.id))
    assert got.get_json()['status'] == 'in_progress'


def test_service_waits_until_last_open_order_closes(app_context: Flask):
    client = app_context.test_client()
    tech, admin = _actors()
    service = create_service('in_progress', technician=tech)
    first = request_part(client, technician_headers(tech.id), service.id)
    second = request_part(client, technician_headers(tech.id), service.id, partName='Remen')
    assert _update(client, admin, first['id'], status='ordered')['service_status'] == 'waiting_parts'
    assert _update(client, admin, first['id'], status='delivered')['service_status'] == 'waiting_parts'
    assert _update(client, admin, second['id'], status='cancelled')['service_status'] == 'in_progress'


def test_return_from_waiting_conflicts_with_open_orders(app_context: Flask):
    client = app_context.test_client()
    tech, admin = _actors()
    service = create_service('in_progress', technician=tech)
    request_part(client, technician_headers(tech.id), service.id)
    url = f'/admin/services/{service.id}/return-from-waiting'
    conflict = client.post(url, json={}, headers=admin_headers(admin.id))
    assert conflict.status_code == 409
    assert service_status(service.id) == 'waiting_parts'
    forced = client.post(url, json={'force': True}, headers=admin_headers(admin.id))
    assert forced.status_code == 200, forced.get_json()
    assert forced.get_json()['changed'] is True
    assert forced.get_json()['status'] == 'in_progress'


def test_return_from_waiting_force_query_param(app_context: Flask):
    client = app_context.test_client()
    tech, admin = _actors()
    service = create_service('in_progress', technician=tech)
    request_part(client, technician_headers(tech.id), service.id)
    resp = client.post(f'/admin/services/{service.id}/return-from-waiting?force=true', headers=admin_headers(admin.id))
    assert resp.status_code == 200, resp.get_json()
    assert service_status(service.id) == 'in_progress'


def test_return_from_waiting_rejects_other_statuses(app_context: Flask):
    client = app_context.test_client()
    _, admin = _actors()
    service = create_service('completed')
    resp = client.post(f'/admin/services/{service.id}/return-from-waiting', json={}, headers=admin_headers(admin.id))
    assert resp.status_code == 400
    assert service_status(service.id) == 'completed'


def test_order_status_transitions_are_validated(app_context: Flask):
    client = app_context.test_client()
    tech, admin = _actors()
    service = create_service('in_progress', technician=tech)
    order = request_part(client, technician_headers(tech.id), service.id)
    _update(client, admin, order['id'], status='delivered')
    body = _update(client, admin, order['id'], expected=400, status='ordered')
    assert 'delivered -> ordered' in body['error']['detail']
    body = _update(client, admin, order['id'], expected=400, status='lost')
    assert body['error']['field'] == 'status'


def test_update_appends_timestamped_note_and_details(app_context: Flask):
    client = app_context.test_client()
    tech, admin = _actors()
    service = create_service('in_progress', technician=tech)
    order = request_part(client, technician_headers(tech.id), service.id)
    _update(client, admin, order['id'], notes='poručeno kod dobavljača')
    body = _update(client, admin, order['id'], status='ordered', notes='stiže u petak',
                   supplierName='Frigo Parts', estimatedDelivery='2026-10-23')
    lines = body['notes'].split('\n')
    assert len(lines) == 2
    assert lines[0].startswith('[') and lines[0].endswith('poručeno kod dobavljača')
    assert lines[1].endswith('stiže u petak')
    assert body['supplier_name'] == 'Frigo Parts'
    assert body['estimated_delivery'] == '2026-10-23'
    assert body['service_status'] == 'waiting_parts'


def test_admin_endpoints_require_manage_permission(app_context: Flask):
    client = app_context.test_client()
    tech, _ = _actors()
    service = create_service('in_progress', technician=tech)
    order = request_part(client, technician_headers(tech.id), service.id)
    headers = technician_headers(tech.id)
    assert client.put(f"/admin/spare-parts/{order['id']}", json={'status': 'delivered'}, headers=headers).status_code == 403
    assert client.post(f'/admin/services/{service.id}/return-from-waiting', json={}, headers=headers).status_code == 403
    assert client.get('/admin/spare-parts/export', headers=headers).status_code == 403


def test_supplier_moves_orders_but_cannot_return_service(app_context: Flask):
    client = app_context.test_client()
    tech, _ = _actors()
    supplier = seed_user_with_role('supplier', ROLE_SUPPLIER, ROLE_PRESETS[ROLE_SUPPLIER])
    headers = jwt_headers(supplier.id, ROLE_PRESETS[ROLE_SUPPLIER], [ROLE_SUPPLIER])
    service = create_service('in_progress', technician=tech)
    order = request_part(client, technician_headers(tech.id), service.id)
    ordered = client.put(f"/admin/spare-parts/{order['id']}", json={'status': 'ordered'}, headers=headers)
    assert ordered.status_code == 200, ordered.get_json()
    assert ordered.get_json()['service_status'] == 'waiting_parts'
    forced = client.post(f'/admin/services/{service.id}/return-from-waiting?force=true', json={}, headers=headers)
    assert forced.status_code == 403
    assert client.get('/admin/waiting-for-parts', headers=headers).status_code == 403
    assert service_status(service.id) == 'waiting_parts'


def test_unknown_order_is_404(app_context: Flask):
    client = app_context.test_client()
    _, admin = _actors()
    _update(client, admin, 999999, expected=404, status='delivered')


def test_waiting_for_parts_lists_open_orders(app_context: Flask):
    client = app_context.test_client()
    tech, admin = _actors()
    service = create_service('in_progress', technician=tech)
    order = request_part(client, technician_headers(tech.id), service.id)
    resp = client.get('/admin/waiting-for-parts?limit=200', headers=admin_headers(admin.id))
    assert resp.status_code == 200
    rows = {row['id']: row for row in resp.get_json()['data']}
    assert service.id in rows
    assert [o['id'] for o in rows[service.id]['open_orders']] == [order['id']]


def test_export_spare_parts_workbook(app_context: Flask):
    client = app_context.test_client()
    tech, admin = _actors()
    service = create_service('in_progress', technician=tech)
    order = request_part(client, technician_headers(tech.id), service.id, partName='Termostat')
    resp = client.get('/admin/spare-parts/export', headers=admin_headers(admin.id))
    assert resp.status_code == 200
    assert resp.mimetype == 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
    assert 'attachment' in resp.headers['Content-Disposition']
    wb = load_workbook(BytesIO(resp.data))
    sheet = wb['Rezervni delovi']
    rows = list(sheet.iter_rows(values_only=True))
    assert rows[0][0] == 'ID'
    exported = {r[0]: r for r in rows[1:]}
    assert exported[order['id']][3] == 'Termostat'
    assert exported[order['id']][2] == 'Čeka delove'


def test_appointment_reminder(app_context: Flask, sinks):
    client = app_context.test_client()
    tech, admin = _actors()
    customer = create_client(full_name='Ana Jovanović', phone='069 555 0101', email='ana@example.com')
    service = create_service('scheduled', technician=tech, client=customer)
    resp = client.post(f'/admin/services/{service.id}/remind', headers=admin_headers(admin.id))
    assert resp.status_code == 200, resp.get_json()
    assert resp.get_json()['queued'] == 3
    assert resp.get_json()['warnings'] == []
    assert sinks['sms'].sent[-1]['recipient'] == '069 555 0101'
    assert 'Podsetnik' in sinks['sms'].sent[-1]['body']
    assert sinks['email'].sent[-1]['subject'] == f'Podsetnik za servis #{service.id}'
    done = create_service('completed', technician=tech)
    assert client.post(f'/admin/services/{done.id}/remind', headers=admin_headers(admin.id)).status_code == 400
