# Overview: Flask API routes for dining tables and their status board.

from flask import Blueprint, g, request

from .. import realtime
from ..decorators import require_admin, require_auth
from ..responses import created, ok, paginated
from ..services import table_service


tables_bp = Blueprint("tables", __name__, url_prefix="/api/tables")


@tables_bp.get("")
@require_auth
def list_tables_route():
    items, pagination = table_service.list_tables(g.restaurant_id, request.args)
    return paginated("tables", items, pagination)


@tables_bp.post("")
@require_auth
@require_admin
def create_table_route():
    table = table_service.create_table(g.restaurant_id, request.get_json(silent=True) or {})
    return created(table.to_dict(), "Table created")


@tables_bp.get("/status")
@require_auth
def table_status_route():
    return ok(table_service.status_summary(g.restaurant_id))


@tables_bp.get("/<int:table_id>")
@require_auth
def get_table_route(table_id: int):
    return ok(table_service.get_table(g.restaurant_id, table_id).to_dict())


@tables_bp.put("/<int:table_id>")
@require_auth
@require_admin
def update_table_route(table_id: int):
    table = table_service.update_table(g.restaurant_id, table_id, request.get_json(silent=True) or {})
    realtime.emit(realtime.EVENT_TABLE_UPDATED, table.to_dict())
    return ok(table.to_dict(), message="Table updated")


@tables_bp.delete("/<int:table_id>")
@require_auth
@require_admin
def delete_table_route(table_id: int):
    table = table_service.archive_table(g.restaurant_id, table_id)
    return ok(table.to_dict(), message="Table archived")


@tables_bp.patch("/<int:table_id>/status")
@require_auth
def update_table_status_route(table_id: int):
    status = (request.get_json(silent=True) or {}).get("status")
    table = table_service.set_status(g.restaurant_id, table_id, status)
    realtime.emit(realtime.EVENT_TABLE_UPDATED, table.to_dict())
    return ok(table.to_dict(), message="Table status updated")
