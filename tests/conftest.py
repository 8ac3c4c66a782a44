import os

os.environ.setdefault("ENVIRONMENT", "testing")

import pytest


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    from app.main import app

    # Not used as a context manager, so the lifespan (index creation) never runs
    return TestClient(app)
