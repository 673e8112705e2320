# Overview: Flask API routes for production areas (kitchen, bar, ...).

from flask import Blueprint, g, request

from ..decorators import require_admin, require_auth
from ..responses import created, ok, paginated
from ..services import catalog_service


production_areas_bp = Blueprint("production_areas", __name__, url_prefix="/api/production-areas")


@production_areas_bp.get("")
@require_auth
def list_production_areas_route():
    items, pagination = catalog_service.list_production_areas(g.restaurant_id, request.args)
    return paginated("production_areas", items, pagination)


@production_areas_bp.post("")
@require_auth
@require_admin
def create_production_area_route():
    area = catalog_service.create_production_area(g.restaurant_id, request.get_json(silent=True) or {})
    return created(area.to_dict(), "Production area created")


@production_areas_bp.get("/<int:area_id>")
@require_auth
def get_production_area_route(area_id: int):
    return ok(catalog_service.get_production_area(g.restaurant_id, area_id).to_dict())


@production_areas_bp.put("/<int:area_id>")
@require_auth
@require_admin
def update_production_area_route(area_id: int):
    area = catalog_service.update_production_area(g.restaurant_id, area_id, request.get_json(silent=True) or {})
    return ok(area.to_dict(), message="Production area updated")


@production_areas_bp.delete("/<int:area_id>")
@require_auth
@require_admin
def delete_production_area_route(area_id: int):
    area = catalog_service.archive_production_area(g.restaurant_id, area_id)
    return ok(area.to_dict(), message="Production area archived")
