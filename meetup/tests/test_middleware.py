import logging

from fastapi import FastAPI
from fastapi.testclient import TestClient

from meetup.middleware import HTTPLogMiddleware


def _app(**kwargs):
    app = FastAPI()
    app.add_middleware(HTTPLogMiddleware, **kwargs)

    @app.get("/ping")
    async def ping():
        return {"ok": True}

    return app


def test_response_time_header(caplog):
    client = TestClient(_app())
    with caplog.at_level(logging.DEBUG, logger="meetup.http"):
        res = client.get("/ping", headers={"X-User-Id": "user-1"})

    assert res.status_code == 200
    assert int(res.headers["X-Response-Time-Ms"]) >= 0
    assert any("path=/ping user=user-1 status=200" in r.getMessage() for r in caplog.records)


def test_slow_requests_log_a_warning(caplog):
    client = TestClient(_app(slow_ms=0))
    with caplog.at_level(logging.DEBUG, logger="meetup.http"):
        client.get("/ping")

    assert [r.levelno for r in caplog.records if r.name == "meetup.http"] == [logging.WARNING]
