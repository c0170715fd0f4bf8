"""
Shared fixtures: an app bound to an in-memory SQLite database, a fake Gemini
client behind the real VisionClient, and a logged-in test client.
"""
import base64
from io import BytesIO
from types import SimpleNamespace

import pytest
from PIL import Image

from app import create_app
from extensions import db
from verification import VisionClient


class FakeModels:
    def __init__(self, text="", error=None):
        self.text = text
        self.error = error
        self.calls = []

    def generate_content(self, model, contents):
        self.calls.append((model, contents))
        if self.error is not None:
            raise self.error
        return SimpleNamespace(text=self.text)


class FakeGenAI:
    def __init__(self, text="", error=None):
        self.models = FakeModels(text, error)


GOOD_RESPONSE = '```json\n{"wasteType": "Organic Waste", "quantity": "2 kg", "confidence": 0.9}\n```'


@pytest.fixture
def genai_client():
    return FakeGenAI(GOOD_RESPONSE)


@pytest.fixture
def app(genai_client):
    app = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test",
            "SQLALCHEMY_DATABASE_URI": "sqlite://",
            "GOOGLE_MAPS_API_KEY": "",
        },
        vision_client=VisionClient(client=genai_client, model="test-model"),
    )
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def png_bytes():
    buf = BytesIO()
    Image.new("RGB", (8, 8), (0, 128, 0)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png_data_uri(png_bytes):
    return "data:image/png;base64," + base64.b64encode(png_bytes).decode()


@pytest.fixture
def logged_in(client):
    r = client.post("/signup", json={"email": "asha@example.com", "name": "Asha", "password": "pw123"})
    assert r.status_code == 201
    return client
