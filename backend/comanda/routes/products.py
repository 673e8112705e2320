# Overview: Flask API routes for products; cost roll-up, margin pricing and cost analysis.

"""
Product routes

Products carry gross/net quantities per component and a margin; the
final price is base_price * (1 + margin / 100). Reads are open to every
role, writes are admin-only.
"""

from flask import Blueprint, g, request

from ..decorators import require_admin, require_auth
from ..responses import created, ok, paginated
from ..services import catalog_service, costing_service


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _payload() -> dict:
    return request.get_json(silent=True) or {}


@products_bp.get("")
@require_auth
def list_products_route():
    items, pagination = catalog_service.list_products(g.restaurant_id, request.args)
    return paginated("products", items, pagination)


@products_bp.post("")
@require_auth
@require_admin
def create_product_route():
    product = catalog_service.create_product(g.restaurant_id, _payload())
    return created(product.to_dict(), "Product created")


@products_bp.get("/cost-analysis")
@require_auth
def cost_analysis_route():
    return ok(catalog_service.cost_analysis(g.restaurant_id, "products"))


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    return ok(catalog_service.get_product(g.restaurant_id, product_id).to_dict())


@products_bp.put("/<int:product_id>")
@require_auth
@require_admin
def update_product_route(product_id: int):
    product = catalog_service.update_product(g.restaurant_id, product_id, _payload())
    return ok(product.to_dict(), message="Product updated")


@products_bp.delete("/<int:product_id>")
@require_auth
@require_admin
def delete_product_route(product_id: int):
    product = catalog_service.archive_product(g.restaurant_id, product_id)
    return ok(product.to_dict(), message="Product archived")


@products_bp.post("/<int:product_id>/calculate-cost")
@require_auth
@require_admin
def calculate_product_cost_route(product_id: int):
    product = catalog_service.recalculate_product(g.restaurant_id, product_id)
    return ok({"product": product.to_dict(), "breakdown": costing_service.cost_breakdown(product)})


@products_bp.put("/<int:product_id>/price")
@require_auth
@require_admin
def update_product_price_route(product_id: int):
    product = catalog_service.update_product_price(g.restaurant_id, product_id, _payload())
    return ok(product.to_dict(), message="Price updated")
