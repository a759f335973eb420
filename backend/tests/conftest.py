"""
Pytest fixtures for sales operations backend tests.

Provides the in-memory application, per-test cleanup, seeded users with
tokens, a small catalog (driver, route, customers, products, loss reasons)
and an in-memory stand-in for the HTTP API used by the client-side tests.
"""

import asyncio
from datetime import date
from types import SimpleNamespace

import pytest

from salesops import create_app
from salesops.extensions import db
from salesops.models import Driver, DeliveryRoute, Customer, Product, LossReason, RouteAssignment
from salesops.services.auth_service import create_user
from salesops.services import summary_service


PASSWORD = "Password123!"
SALE_DATE = date(2026, 10, 19)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Empty every table before the test; schema is kept."""
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()
    db.session.remove()


@pytest.fixture(scope='function')
def users(db_session):
    """One account per role used by the tests."""
    return SimpleNamespace(
        admin=create_user("admin", PASSWORD, role="admin"),
        manager=create_user("manager", PASSWORD, role="manager"),
        clerk=create_user("office", PASSWORD, role="clerk"),
    )


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, users):
    return auth_headers(get_auth_token(client, "admin"))


@pytest.fixture(scope='function')
def manager_headers(client, users):
    return auth_headers(get_auth_token(client, "manager"))


@pytest.fixture(scope='function')
def clerk_headers(client, users):
    return auth_headers(get_auth_token(client, "office"))


@pytest.fixture(scope='function')
def catalog(db_session):
    """
    Driver, one route with three customers in stop order, one customer off
    the route, three products, one inactive product and two loss reasons.
    """
    driver = Driver(first_name="Somchai", last_name="K", is_active=True)
    route = DeliveryRoute(route_name="North Loop", is_active=True)
    alpha = Customer(customer_name="Alpha Mart", phone="0811111111")
    bravo = Customer(customer_name="Bravo Shop", phone="0822222222")
    charlie = Customer(customer_name="Charlie Cafe", phone="0833333333")
    walk_in = Customer(customer_name="Delta Kiosk", phone="0844444444")
    ice = Product(product_name="Ice Cream Tub", default_unit_price_cents=1000)
    cone = Product(product_name="Cone", default_unit_price_cents=500)
    bar = Product(product_name="Ice Bar", default_unit_price_cents=250)
    retired = Product(product_name="Old Popsicle", default_unit_price_cents=100, is_active=False)
    melted = LossReason(reason_description="Melted")
    damaged = LossReason(reason_description="Damaged packaging")
    db_session.add_all([driver, route, alpha, bravo, charlie, walk_in, ice, cone, bar, retired, melted, damaged])
    db_session.flush()

    for sequence, customer in enumerate([alpha, bravo, charlie], start=1):
        db_session.add(RouteAssignment(route_id=route.id, customer_id=customer.id, route_sequence=sequence))
    db_session.commit()

    return SimpleNamespace(
        driver=driver,
        route=route,
        alpha=alpha,
        bravo=bravo,
        charlie=charlie,
        walk_in=walk_in,
        ice=ice,
        cone=cone,
        bar=bar,
        retired=retired,
        melted=melted,
        damaged=damaged,
    )


@pytest.fixture(scope='function')
def summary(catalog):
    """Pending driver-day on the catalog route."""
    summary, _ = summary_service.get_or_create_summary(
        catalog.driver.id, SALE_DATE, route_id=catalog.route.id
    )
    return summary


# =============================================================================
# CLIENT-SIDE FAKE API
# =============================================================================


class FakeSalesOpsApi:
    """
    In-memory stand-in for SalesOpsClient.

    Every call is recorded in `calls`. Setting fail[name] makes that method
    raise; setting gates[name] to an asyncio.Event holds it until the event
    is set; setting delays[name] makes it take that many seconds (a list is
    consumed one entry per call).
    """

    def __init__(self):
        self.calls = []
        self.fail = {}
        self.gates = {}
        self.delays = {}
        self.route_customers = {}
        self.debounce_seconds = 0.8
        self.products = [
            {"id": 1, "product_name": "Ice Cream Tub", "default_unit_price_cents": 1000},
            {"id": 2, "product_name": "Cone", "default_unit_price_cents": 500},
            {"id": 3, "product_name": "Ice Bar", "default_unit_price_cents": 250},
        ]
        self.customer_prices = {}
        self.views = {}
        self.sales = {}
        self.next_sale_id = 100

    def calls_to(self, name):
        return [args for called, args in self.calls if called == name]

    async def _enter(self, name, *args):
        self.calls.append((name, args))
        gate = self.gates.get(name)
        if gate is not None:
            await gate.wait()
        delay = self.delays.get(name)
        if isinstance(delay, list):
            delay = delay.pop(0) if delay else None
        if delay:
            await asyncio.sleep(delay)
        exc = self.fail.get(name)
        if exc is not None:
            raise exc

    def _customers(self, route_id):
        return [
            {"customer_id": cid, "customer_name": f"Customer {cid}", "route_sequence": i}
            for i, cid in enumerate(self.route_customers.get(route_id, []), start=1)
        ]

    async def load_route(self, route_id):
        await self._enter("load_route", route_id)
        return {
            "route_id": route_id,
            "customers": self._customers(route_id),
            "debounce_seconds": self.debounce_seconds,
        }

    async def list_route_customers(self, route_id):
        await self._enter("list_route_customers", route_id)
        return self._customers(route_id)

    async def add_route_customer(self, route_id, customer_id):
        await self._enter("add_route_customer", route_id, customer_id)
        order = self.route_customers.setdefault(route_id, [])
        if customer_id not in order:
            order.append(customer_id)
        return self._customers(route_id)

    async def remove_route_customer(self, route_id, customer_id):
        await self._enter("remove_route_customer", route_id, customer_id)
        self.route_customers[route_id].remove(customer_id)
        return self._customers(route_id)

    async def save_customer_order(self, route_id, customer_ids):
        await self._enter("save_customer_order", route_id, list(customer_ids))
        self.route_customers[route_id] = list(customer_ids)
        return self._customers(route_id)

    async def list_products(self):
        await self._enter("list_products")
        return list(self.products)

    async def get_customer_prices(self, customer_id, as_of=None):
        await self._enter("get_customer_prices", customer_id, as_of)
        return [
            {"customer_id": customer_id, "product_id": pid, "unit_price_cents": cents}
            for pid, cents in self.customer_prices.get(customer_id, {}).items()
        ]

    async def commit_batch(self, summary_id, sales_data):
        await self._enter("commit_batch", summary_id, sales_data)
        return {
            "summary": {"id": summary_id, "reconciliation_status": "Pending"},
            "processed_sales": len(sales_data),
            "total_amount_cents": 0,
            "sales": [],
        }

    async def create_sale(self, summary_id, sale):
        await self._enter("create_sale", summary_id, sale)
        self.next_sale_id += 1
        return {"sale": {"id": self.next_sale_id, **sale}, "summary": {"id": summary_id}}

    async def update_sale(self, sale_id, sale):
        await self._enter("update_sale", sale_id, sale)
        return {"sale": {"id": sale_id, **sale}, "summary": {"id": 1}}

    async def delete_sale(self, sale_id):
        await self._enter("delete_sale", sale_id)
        return {"deleted_sale_id": sale_id, "summary": {"id": 1}}

    async def get_reconciliation(self, driver_id, sale_date):
        await self._enter("get_reconciliation", driver_id, sale_date)
        return self.views[(driver_id, sale_date)]

    async def list_sales(self, summary_id):
        await self._enter("list_sales", summary_id)
        return list(self.sales.get(summary_id, []))

    async def finalize(self, summary_id, cash_collected_cents, status, notes=None, version_id=None):
        await self._enter("finalize", summary_id, cash_collected_cents, status, notes, version_id)
        return {
            "id": summary_id,
            "reconciliation_status": status,
            "cash_collected_cents": cash_collected_cents,
            "is_locked": status != "Pending",
            "version_id": (version_id or 1) + 1,
        }

    async def unlock(self, summary_id, note=None):
        await self._enter("unlock", summary_id, note)
        return {"id": summary_id, "is_locked": False}


@pytest.fixture(scope='function')
def fake_api():
    return FakeSalesOpsApi()


def run(coro):
    """Run a client coroutine to completion."""
    return asyncio.run(coro)
