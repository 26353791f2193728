import pytest
from flask import Flask
from repairdesk import get_db
from repairdesk.constants.permissions import ROLE_TECHNICIAN, ROLE_PRESETS
from repairdesk.models.audit import AuditLog
from repairdesk.models.spare_part_order import SparePartOrder
from tests.test_utils_seed import seed_user_with_role, create_service, unique_email, ensure_user
from tests.test_lifecycle_helpers import (
    technician_headers, admin_headers, jwt_headers, request_part, service_status,
)


@pytest.fixture()
def app_context(app_instance):
    with app_instance.app_context():
        yield app_instance


def seed_technician():
    return seed_user_with_role('tech', ROLE_TECHNICIAN, ROLE_PRESETS[ROLE_TECHNICIAN], phone='065 222 3333')


def _order_count():
    return get_db().query(SparePartOrder).count()


def test_request_for_in_progress_service_waits_for_parts(app_context: Flask):
    client = app_context.test_client()
    tech = seed_technician()
    service = create_service('in_progress', technician=tech)
    body = request_part(client, technician_headers(tech.id), service.id)
    assert body['id']
    assert body['status'] == 'pending'
    assert body['service_status'] == 'waiting_parts'
    resp = client.get(f'/services/{service.id}', headers=technician_headers(tech.id))
    assert resp.status_code == 200
    assert resp.get_json()['status'] == 'waiting_parts'


def test_request_for_assigned_service_waits_for_parts(app_context: Flask):
    client = app_context.test_client()
    tech = seed_technician()
    service = create_service('assigned', technician=tech)
    request_part(client, technician_headers(tech.id), service.id, urgency='urgent', quantity=2)
    assert service_status(service.id) == 'waiting_parts'


def test_second_request_keeps_waiting_parts(app_context: Flask):
    client = app_context.test_client()
    tech = seed_technician()
    service = create_service('in_progress', technician=tech)
    headers = technician_headers(tech.id)
    request_part(client, headers, service.id)
    second = request_part(client, headers, service.id, partName='Grejač')
    assert second['service_status'] == 'waiting_parts'
    resp = client.get(f'/services/{service.id}/spare-parts', headers=headers)
    assert len(resp.get_json()['data']) == 2


def test_request_for_pending_service_leaves_status(app_context: Flask):
    client = app_context.test_client()
    tech = seed_technician()
    service = create_service('pending', technician=tech)
    body = request_part(client, technician_headers(tech.id), service.id)
    assert body['service_status'] == 'pending'
    assert service_status(service.id) == 'pending'


@pytest.mark.parametrize('overrides,field', [
    ({'partName': ''}, 'part_name'),
    ({'partName': '   '}, 'part_name'),
    ({'warrantyStatus': None}, 'warranty_status'),
    ({'warrantyStatus': 'maybe'}, 'warranty_status'),
    ({'quantity': 0}, 'quantity'),
    ({'quantity': 'two'}, 'quantity'),
    ({'urgency': 'asap'}, 'urgency'),
])
def test_invalid_request_creates_nothing(app_context: Flask, overrides, field):
    client = app_context.test_client()
    tech = seed_technician()
    service = create_service('in_progress', technician=tech)
    before = _order_count()
    body = request_part(client, technician_headers(tech.id), service.id, expected_status=400, **overrides)
    assert body['error']['status'] == 400
    assert body['error']['field'] == field
    assert _order_count() == before
    assert service_status(service.id) == 'in_progress'


def test_snake_case_payload_accepted(app_context: Flask):
    client = app_context.test_client()
    tech = seed_technician()
    service = create_service('in_progress', technician=tech)
    resp = client.post('/spare-parts', json={
        'service_id': service.id, 'part_name': 'Ležaj', 'warranty_status': 'u garanciji', 'part_number': 'BK-77',
    }, headers=technician_headers(tech.id))
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body['part_number'] == 'BK-77'
    assert body['quantity'] == 1
    assert body['urgency'] == 'normal'


def test_service_id_required_for_technician(app_context: Flask):
    client = app_context.test_client()
    tech = seed_technician()
    body = request_part(client, technician_headers(tech.id), None, expected_status=400)
    assert body['error']['field'] == 'service_id'


def test_admin_may_order_stock_part_without_service(app_context: Flask):
    client = app_context.test_client()
    admin = ensure_user(unique_email('stock-admin'))
    body = request_part(client, admin_headers(admin.id), None)
    assert body['service_id'] is None
    assert body['service_status'] is None


def test_unknown_service_is_404(app_context: Flask):
    client = app_context.test_client()
    tech = seed_technician()
    before = _order_count()
    body = request_part(client, technician_headers(tech.id), 999999, expected_status=404)
    assert body['error']['status'] == 404
    assert _order_count() == before


def test_other_technicians_service_is_forbidden(app_context: Flask):
    client = app_context.test_client()
    owner = seed_technician()
    other = seed_technician()
    service = create_service('in_progress', technician=owner)
    request_part(client, technician_headers(other.id), service.id, expected_status=403)
    assert service_status(service.id) == 'in_progress'


def test_request_requires_permission(app_context: Flask):
    client = app_context.test_client()
    user = ensure_user(unique_email('noperm'))
    service = create_service('in_progress')
    request_part(client, jwt_headers(user.id, ['SPR.READ']), service.id, expected_status=403)


def test_request_is_audited(app_context: Flask):
    client = app_context.test_client()
    tech = seed_technician()
    service = create_service('in_progress', technician=tech)
    body = request_part(client, technician_headers(tech.id), service.id)
    log = get_db().query(AuditLog).filter_by(action='SPR.ORDER.CREATE', entity_id=str(body['id'])).one()
    assert log.actor_user_id == tech.id
    assert log.meta['service_status'] == 'waiting_parts'
    assert log.meta['part_name'] == 'Pumpa za vodu'


def test_list_and_get_spare_parts(app_context: Flask):
    client = app_context.test_client()
    tech = seed_technician()
    service = create_service('in_progress', technician=tech)
    headers = technician_headers(tech.id)
    created = request_part(client, headers, service.id)
    listed = client.get(f'/spare-parts?service_id={service.id}&status=pending', headers=headers)
    assert listed.status_code == 200
    assert [r['id'] for r in listed.get_json()['data']] == [created['id']]
    single = client.get(f"/spare-parts/{created['id']}", headers=headers)
    assert single.status_code == 200
    assert single.headers.get('ETag')
    assert client.get('/spare-parts?status=bogus', headers=headers).status_code == 400
    assert client.get('/spare-parts/999999', headers=headers).status_code == 404
