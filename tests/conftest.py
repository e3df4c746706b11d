from urllib.parse import urlsplit

import pytest
import requests
from fastapi.testclient import TestClient

from catalog.app.main import create_app as create_catalog_app
from gateway.app.main import Backend, create_app as create_gateway_app
from orders.app.clients import ProductCatalog, UserDirectory
from orders.app.errors import ProductNotFound, UpstreamError, UserNotFound
from orders.app.main import create_app as create_orders_app
from users.app.main import create_app as create_users_app

# Use in-memory SQLite for testing
TEST_DATABASE_URL = "sqlite://"


class FakeUsers:
    """In-process stand-in for the user service."""

    def __init__(self, users=None, down=False):
        self.users = dict(users or {})
        self.down = down
        self.calls = []
        self.closed = False

    def get_user(self, user_id):
        self.calls.append(user_id)
        if self.down:
            raise UpstreamError("user", "connection refused")
        if user_id not in self.users:
            raise UserNotFound(user_id)
        return self.users[user_id]

    def close(self):
        self.closed = True


class FakeProducts:
    """In-process stand-in for the product service."""

    def __init__(self, products=None, down=False):
        self.products = dict(products or {})
        self.down = down
        self.calls = []
        self.closed = False

    def get_product(self, product_id):
        self.calls.append(product_id)
        if self.down:
            raise UpstreamError("product", "connection refused")
        if product_id not in self.products:
            raise ProductNotFound(product_id)
        return self.products[product_id]

    def close(self):
        self.closed = True


class ASGISession:
    """
    Minimal requests.Session look-alike that routes by host to TestClients,
    so service-to-service calls stay in process.
    """

    def __init__(self, clients):
        self.clients = clients
        self.sent = []

    def _client(self, url):
        host = urlsplit(url).hostname
        if host not in self.clients:
            raise requests.ConnectionError(f"connection refused: {host}")
        return self.clients[host]

    def request(self, method, url, params=None, headers=None, data=None, timeout=None, allow_redirects=True):
        self.sent.append((method, url, headers, data))
        return self._client(url).request(method, url, params=params, headers=headers,
                                         content=data, follow_redirects=allow_redirects)

    def get(self, url, timeout=None):
        return self.request("GET", url, timeout=timeout)

    def close(self):
        pass


@pytest.fixture
def catalog_client():
    with TestClient(create_catalog_app(TEST_DATABASE_URL)) as client:
        yield client


@pytest.fixture
def users_client():
    with TestClient(create_users_app(TEST_DATABASE_URL)) as client:
        yield client


@pytest.fixture
def fake_users():
    return FakeUsers({1: {"id": 1, "email": "a@x.com", "name": "Alice"}})


@pytest.fixture
def fake_products():
    return FakeProducts({
        1: {"id": 1, "name": "Widget", "price": 10.0, "stock": 5},
        2: {"id": 2, "name": "Gadget", "price": 2.5, "stock": 100},
    })


@pytest.fixture
def orders_app(fake_users, fake_products):
    return create_orders_app(TEST_DATABASE_URL, users=fake_users, products=fake_products)


@pytest.fixture
def orders_client(orders_app):
    with TestClient(orders_app, raise_server_exceptions=False) as client:
        yield client


@pytest.fixture
def stack(users_client, catalog_client):
    """
    Gateway + all three services wired together in process.
    """
    wire = ASGISession({"users": users_client, "products": catalog_client})
    orders_app = create_orders_app(
        TEST_DATABASE_URL,
        users=UserDirectory("http://users", session=wire),
        products=ProductCatalog("http://products", session=wire),
    )
    with TestClient(orders_app) as orders_client:
        wire.clients["orders"] = orders_client
        gateway = create_gateway_app(
            backends={
                "users": Backend("User", "/api/users", "http://users", "User management"),
                "products": Backend("Product", "/api/products", "http://products", "Product catalog"),
                "orders": Backend("Order", "/api/orders", "http://orders", "Order management"),
            },
            http=wire,
        )
        with TestClient(gateway) as client:
            yield client
