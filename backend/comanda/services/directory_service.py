# Overview: Service-layer operations for suppliers and clients.

from __future__ import annotations

from ..models import Client, Supplier
from ..models.inventory import PAYMENT_TERMS
from ..validation import ModelValidationPolicy, enforce_rules_rating
from . import crud_service
from .tenant_service import get_scoped_or_404


SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "business_name", "tax_id", "contact_name", "phone", "email",
        "address", "payment_terms", "rating", "notes",
    },
    required_on_create={"name"},
    choices={"payment_terms": PAYMENT_TERMS},
    uppercase_fields={"name"},
)

CLIENT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email", "address", "notes"},
    required_on_create={"name"},
)


def create_supplier(restaurant_id: int, payload: dict) -> Supplier:
    return crud_service.create_entity(
        Supplier, restaurant_id, payload, SUPPLIER_POLICY,
        duplicate_message="A supplier with that name already exists",
        rules=enforce_rules_rating,
    )


def update_supplier(restaurant_id: int, supplier_id: int, payload: dict) -> Supplier:
    return crud_service.update_entity(
        get_supplier(restaurant_id, supplier_id), payload, SUPPLIER_POLICY,
        duplicate_message="A supplier with that name already exists",
        rules=enforce_rules_rating,
    )


def get_supplier(restaurant_id: int, supplier_id: int) -> Supplier:
    return get_scoped_or_404(Supplier, supplier_id, restaurant_id, "Supplier")


def list_suppliers(restaurant_id: int, args):
    terms = args.get("payment_terms")
    return crud_service.list_entities(
        Supplier, restaurant_id, args,
        search_column=Supplier.name,
        order_by=(Supplier.name.asc(),),
        filters=(lambda q: q.filter(Supplier.payment_terms == terms)) if terms else None,
    )


def archive_supplier(restaurant_id: int, supplier_id: int) -> Supplier:
    return crud_service.archive_entity(get_supplier(restaurant_id, supplier_id))


def create_client(restaurant_id: int, payload: dict) -> Client:
    return crud_service.create_entity(
        Client, restaurant_id, payload, CLIENT_POLICY,
        duplicate_message="Client already exists",
    )


def update_client(restaurant_id: int, client_id: int, payload: dict) -> Client:
    return crud_service.update_entity(
        get_client(restaurant_id, client_id), payload, CLIENT_POLICY,
        duplicate_message="Client already exists",
    )


def get_client(restaurant_id: int, client_id: int) -> Client:
    return get_scoped_or_404(Client, client_id, restaurant_id, "Client")


def list_clients(restaurant_id: int, args):
    return crud_service.list_entities(
        Client, restaurant_id, args,
        search_column=Client.name,
        order_by=(Client.name.asc(),),
    )


def archive_client(restaurant_id: int, client_id: int) -> Client:
    return crud_service.archive_entity(get_client(restaurant_id, client_id))
