from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import DataError, IntegrityError

from svckit.errors import install_error_handlers


def make_app():
    app = FastAPI()
    install_error_handlers(app, "test")

    @app.post("/check")
    def check():
        raise IntegrityError("INSERT INTO products", {}, Exception("CHECK constraint failed: price > 0"))

    @app.post("/range")
    def out_of_range():
        raise DataError("INSERT INTO products", {}, Exception("numeric field overflow"))

    @app.get("/boom")
    def boom():
        raise RuntimeError("boom")

    return app


def test_constraint_violation_is_400():
    response = TestClient(make_app()).post("/check")
    assert response.status_code == 400
    assert response.json() == {"error": "Request violates a data constraint"}


def test_out_of_range_value_is_400():
    response = TestClient(make_app()).post("/range")
    assert response.status_code == 400
    assert response.json() == {"error": "Request violates a data constraint"}


def test_other_failures_stay_500():
    response = TestClient(make_app(), raise_server_exceptions=False).get("/boom")
    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}
