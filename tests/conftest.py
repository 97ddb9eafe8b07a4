import os
import sys
import tempfile

# Settings are read once at import, so the environment goes first.
_tmp = tempfile.mkdtemp(prefix="fee-tests-")
os.environ["FEE_DATABASE_URL"] = f"sqlite:///{os.path.join(_tmp, 'fee.db')}"
os.environ["DB_AUTO_CREATE"] = "true"
os.environ["AUTH_JWT_SECRET"] = "test-secret"
os.environ["AI_GATEWAY_API_KEY"] = "test-key"
os.environ["AI_GATEWAY_URL"] = "https://gateway.test"
os.environ.pop("QUERY_CACHE_REDIS_URL", None)
os.environ.pop("AUTH_JWT_AUDIENCE", None)

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import text

from libs.security.jwt import create_access_token
from fee_service.app.db import get_engine, session_scope
from fee_service.app.session import SessionContext, revoked_tokens
from fee_service.db.schema import init_schema


TEST_SECRET = "test-secret"
USER_ID = "11111111-1111-1111-1111-111111111111"


def make_token(user_id: str = USER_ID, **kwargs) -> str:
    return create_access_token(user_id, key=TEST_SECRET, **kwargs)


@pytest.fixture
def db_tables():
    init_schema(get_engine())
    with session_scope() as db:
        db.execute(text("DELETE FROM payments"))
        db.execute(text("DELETE FROM students"))
    revoked_tokens.clear()
    yield


@pytest.fixture
def ctx():
    token = make_token()
    return SessionContext(user_id=USER_ID, access_token=token, claims={"sub": USER_ID})


@pytest.fixture
def token():
    return make_token()


@pytest.fixture
def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def fee_app(db_tables):
    from fee_service.app.main import app

    app.state.query_cache.clear()
    return app


@pytest.fixture
def client(fee_app):
    with TestClient(fee_app) as c:
        yield c


@pytest.fixture
def predictor_client():
    from predictor_service.app.main import app

    with TestClient(app) as c:
        yield c
