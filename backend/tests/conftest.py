"""
Pytest fixtures for comanda backend tests.

Every test gets a fresh in-memory database with two restaurants (tenants)
so isolation can be checked from either side.
"""

import pytest
from sqlalchemy.exc import OperationalError

from comanda import create_app
from comanda.extensions import db
from comanda.realtime import hub
from comanda.services.auth_service import create_user, register_restaurant
from comanda.services.session_service import create_session


PASSWORD = "Password123!"


@pytest.fixture(scope='function')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'APP_ENV': 'testing',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'BCRYPT_ROUNDS': 4,
    })

    with app.app_context():
        db.create_all()
        hub.clear()
        yield app
        db.session.remove()
        db.drop_all()
        hub.clear()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def tenant_a(app):
    """Restaurant A with its admin user."""
    restaurant, admin = register_restaurant(
        restaurant_name="Casa Roma",
        name="Owner A",
        email="owner@casaroma.test",
        password=PASSWORD,
    )
    return restaurant, admin


@pytest.fixture(scope='function')
def tenant_b(app):
    """Restaurant B with its admin user."""
    restaurant, admin = register_restaurant(
        restaurant_name="El Fogon",
        name="Owner B",
        email="owner@elfogon.test",
        password=PASSWORD,
    )
    return restaurant, admin


@pytest.fixture(scope='function')
def admin_token(tenant_a):
    _, admin = tenant_a
    _, token = create_session(admin.id)
    return token


@pytest.fixture(scope='function')
def other_admin_token(tenant_b):
    _, admin = tenant_b
    _, token = create_session(admin.id)
    return token


@pytest.fixture(scope='function')
def waiter(tenant_a):
    restaurant, _ = tenant_a
    return create_user(
        restaurant_id=restaurant.id,
        email="waiter@casaroma.test",
        name="Ana",
        password=PASSWORD,
        role="waiter",
    )


@pytest.fixture(scope='function')
def waiter_token(waiter):
    _, token = create_session(waiter.id)
    return token


def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


def login(client, email, password=PASSWORD):
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.get_json()
    return response.get_json()["data"]["token"]


def fail_commits(monkeypatch, failures):
    """Make the next `failures` commits raise a lock error; returns the call log."""
    real_commit = db.session.commit
    calls = []

    def commit():
        calls.append(1)
        if len(calls) <= failures:
            raise OperationalError("COMMIT", {}, Exception("database is locked"))
        real_commit()

    monkeypatch.setattr(db.session, "commit", commit)
    monkeypatch.setattr("comanda.services.concurrency.time.sleep", lambda _: None)
    return calls


# =============================================================================
# Catalog builders shared by several modules
# =============================================================================

def create_ingredient(client, token, **overrides):
    payload = {
        "name": "flour",
        "unit": "kg",
        "category": "granos",
        "current_stock": 10,
        "min_stock": 2,
        "unit_cost": 1.00,
    }
    payload.update(overrides)
    response = client.post("/api/inventory/ingredients", json=payload, headers=auth_headers(token))
    assert response.status_code == 201, response.get_json()
    return response.get_json()["data"]


def create_dough(client, token, flour_id):
    response = client.post(
        "/api/inventory/semifinished",
        json={
            "name": "dough",
            "category": "masas",
            "yield_quantity": 1,
            "ingredients": [{"ingredient_id": flour_id, "quantity": 2}],
        },
        headers=auth_headers(token),
    )
    assert response.status_code == 201, response.get_json()
    return response.get_json()["data"]


def create_pizza(client, token, dough_id):
    response = client.post(
        "/api/recipes",
        json={
            "name": "pizza",
            "category": "platos_principales",
            "selling_price": 10,
            "semifinished": [{"semifinished_id": dough_id, "quantity": 1}],
        },
        headers=auth_headers(token),
    )
    assert response.status_code == 201, response.get_json()
    return response.get_json()["data"]


@pytest.fixture(scope='function')
def pizza_menu(client, admin_token):
    """FLOUR (10 kg, min 2, 1.00/kg) -> DOUGH (2 kg flour per batch) -> PIZZA (1 dough)."""
    flour = create_ingredient(client, admin_token)
    dough = create_dough(client, admin_token, flour["id"])
    pizza = create_pizza(client, admin_token, dough["id"])
    return {"flour": flour, "dough": dough, "pizza": pizza}
