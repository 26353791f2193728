from __future__ import annotations
from flask import Blueprint, request, abort
from repairdesk import get_db
from repairdesk.models.client import Client, Appliance
from repairdesk.decorators.auth import require_permissions
from repairdesk.decorators.audit import audit_log
from repairdesk.services.policy import current_principal
from repairdesk.utils.listing import list_response, resource_response, apply_filters, iso_z
from repairdesk.utils.validation import pick, require_text, optional_text

clients_bp = Blueprint('clients', __name__)


@clients_bp.get('')
@require_permissions('CLI.READ')
def list_clients():
    session = get_db()
    q = session.query(Client)
    principal = current_principal()
    if principal.is_customer and not principal.is_admin:
        q = q.filter(Client.user_id == principal.user_id)
    q = apply_filters(q, {
        'q': {'op': lambda qu, v: qu.filter(Client.full_name.ilike(f'%{v}%') | Client.phone.ilike(f'%{v}%'))},
        'city': {'op': lambda qu, v: qu.filter(Client.city == v)},
    }, request.args)
    allowed = {'full_name': Client.full_name, 'city': Client.city, 'updated_at': Client.updated_at, 'id': Client.id}
    return list_response(q, _client_json, allowed, Client.id, Client.updated_at)


@clients_bp.post('')
@require_permissions('CLI.MANAGE')
@audit_log('CLI.CLIENT.CREATE', entity='Client', entity_id_key='id', meta_keys=['full_name', 'city'])
def create_client():
    session = get_db()
    data = request.json or {}
    user_id = pick(data, 'user_id')
    client = Client(
        full_name=require_text(pick(data, 'full_name'), 'full_name'),
        phone=optional_text(pick(data, 'phone'), 'phone'),
        email=optional_text(pick(data, 'email'), 'email'),
        address=optional_text(pick(data, 'address'), 'address'),
        city=optional_text(pick(data, 'city'), 'city'),
        user_id=int(user_id) if user_id not in (None, '') else None,
    )
    session.add(client)
    session.commit()
    return _client_json(client), 201


@clients_bp.get('/<int:client_id>')
@require_permissions('CLI.READ')
def get_client(client_id: int):
    client = _load_client(client_id)
    return resource_response(_client_json(client), client.updated_at)


@clients_bp.get('/<int:client_id>/appliances')
@require_permissions('CLI.READ')
def list_appliances(client_id: int):
    session = get_db()
    _load_client(client_id)
    q = session.query(Appliance).filter(Appliance.client_id == client_id)
    allowed = {'category': Appliance.category, 'manufacturer': Appliance.manufacturer, 'id': Appliance.id}
    return list_response(q, _appliance_json, allowed, Appliance.id, Appliance.updated_at)


@clients_bp.post('/<int:client_id>/appliances')
@require_permissions('CLI.MANAGE')
@audit_log('CLI.APPLIANCE.CREATE', entity='Appliance', entity_id_key='id', meta_keys=['client_id', 'category'])
def create_appliance(client_id: int):
    session = get_db()
    _load_client(client_id)
    data = request.json or {}
    appliance = Appliance(
        client_id=client_id,
        category=require_text(pick(data, 'category'), 'category'),
        manufacturer=optional_text(pick(data, 'manufacturer'), 'manufacturer'),
        model=optional_text(pick(data, 'model'), 'model'),
        serial_number=optional_text(pick(data, 'serial_number'), 'serial_number'),
    )
    session.add(appliance)
    session.commit()
    return _appliance_json(appliance), 201


def _load_client(client_id: int) -> Client:
    session = get_db()
    client = session.get(Client, client_id)
    if not client:
        abort(404)
    principal = current_principal()
    if principal.is_customer and not principal.is_admin and client.user_id != principal.user_id:
        abort(403, description='Client access denied')
    return client


def _client_json(c: Client):
    return {
        'id': c.id,
        'full_name': c.full_name,
        'phone': c.phone,
        'email': c.email,
        'address': c.address,
        'city': c.city,
        'user_id': c.user_id,
        'updated_at': iso_z(c.updated_at),
    }


def _appliance_json(a: Appliance):
    return {
        'id': a.id,
        'client_id': a.client_id,
        'category': a.category,
        'manufacturer': a.manufacturer,
        'model': a.model,
        'serial_number': a.serial_number,
    }
