# Overview: Flask API routes for customer records.

from flask import Blueprint, g, request

from ..decorators import require_admin, require_auth
from ..responses import created, ok, paginated
from ..services import directory_service


clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")


@clients_bp.get("")
@require_auth
def list_clients_route():
    items, pagination = directory_service.list_clients(g.restaurant_id, request.args)
    return paginated("clients", items, pagination)


@clients_bp.post("")
@require_auth
@require_admin
def create_client_route():
    client = directory_service.create_client(g.restaurant_id, request.get_json(silent=True) or {})
    return created(client.to_dict(), "Client created")


@clients_bp.get("/<int:client_id>")
@require_auth
def get_client_route(client_id: int):
    return ok(directory_service.get_client(g.restaurant_id, client_id).to_dict())


@clients_bp.put("/<int:client_id>")
@require_auth
@require_admin
def update_client_route(client_id: int):
    client = directory_service.update_client(g.restaurant_id, client_id, request.get_json(silent=True) or {})
    return ok(client.to_dict(), message="Client updated")


@clients_bp.delete("/<int:client_id>")
@require_auth
@require_admin
def delete_client_route(client_id: int):
    client = directory_service.archive_client(g.restaurant_id, client_id)
    return ok(client.to_dict(), message="Client archived")
