import requests
from fastapi.testclient import TestClient

from gateway.app.main import Backend, create_app


class RecordedResponse:
    def __init__(self, status_code=200, content=b"{}", headers=None):
        self.status_code = status_code
        self.content = content
        self.headers = headers or {"content-type": "application/json"}


class RecordingSession:
    def __init__(self, response=None, error=None):
        self.response = response or RecordedResponse()
        self.error = error
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append(dict(kwargs, method=method, url=url))
        if self.error:
            raise self.error
        return self.response

    def close(self):
        pass


BACKENDS = {
    "users": Backend("User", "/api/users", "http://user-service:3001", "User management"),
    "products": Backend("Product", "/api/products", "http://product-service:8080", "Product catalog"),
    "orders": Backend("Order", "/api/orders", "http://order-service:3002", "Order management"),
}


def gateway(session):
    return TestClient(create_app(backends=BACKENDS, http=session))


def test_root_documents_services():
    client = gateway(RecordingSession())
    data = client.get("/").json()
    assert data["message"] == "Microservice API Gateway"
    assert [s["path"] for s in data["services"]] == ["/api/users", "/api/products", "/api/orders"]
    assert data["endpoints"]["orders"] == "/api/orders"


def test_forwards_method_path_query_headers_and_body():
    session = RecordingSession(RecordedResponse(201, b'{"ok": true}'))
    client = gateway(session)

    response = client.post(
        "/api/orders?dryRun=1",
        content=b'{"userId": 1}',
        headers={"content-type": "application/json", "x-request-id": "abc"},
    )

    assert response.status_code == 201
    assert response.json() == {"ok": True}
    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "http://order-service:3002/api/orders"
    assert call["params"] == [("dryRun", "1")]
    assert call["data"] == b'{"userId": 1}'
    assert call["headers"]["x-request-id"] == "abc"
    assert "host" not in {k.lower() for k in call["headers"]}
    assert call["allow_redirects"] is False


def test_nested_paths_reach_the_right_backend():
    session = RecordingSession()
    client = gateway(session)
    client.get("/api/products/12")
    client.delete("/api/users/3")
    assert session.calls[0]["url"] == "http://product-service:8080/api/products/12"
    assert session.calls[1]["method"] == "DELETE"
    assert session.calls[1]["url"] == "http://user-service:3001/api/users/3"


def test_backend_errors_pass_through():
    session = RecordingSession(RecordedResponse(404, b'{"error": "Order not found"}'))
    response = gateway(session).get("/api/orders/9")
    assert response.status_code == 404
    assert response.json() == {"error": "Order not found"}


def test_unreachable_backend_is_503():
    session = RecordingSession(error=requests.ConnectionError("connection refused"))
    response = gateway(session).get("/api/products")
    assert response.status_code == 503
    body = response.json()
    assert body["error"] == "Product service unavailable"
    assert "connection refused" in body["details"]
    # no retry
    assert len(session.calls) == 1


def test_timeout_is_503():
    session = RecordingSession(error=requests.Timeout("read timed out"))
    response = gateway(session).get("/api/users/1")
    assert response.status_code == 503
    assert response.json()["error"] == "User service unavailable"


def test_unknown_route():
    response = gateway(RecordingSession()).get("/api/carts")
    assert response.status_code == 404
    assert response.json() == {"error": "Route not found"}


def test_health():
    response = gateway(RecordingSession()).get("/health")
    assert response.json()["service"] == "API Gateway"


def test_preflight_is_answered_without_proxying():
    session = RecordingSession()
    response = gateway(session).options("/api/orders", headers={
        "Origin": "http://shop.example",
        "Access-Control-Request-Method": "PUT",
    })
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
    assert session.calls == []
