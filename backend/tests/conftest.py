"""
Pytest fixtures for PressDesk backend tests.

Provides the Flask app on an in-memory database, operator profiles with
bearer tokens, and a GatewayClient whose HTTP transport is the Flask test
client, so console-side code runs against the real gateway routes.
"""

import asyncio
from decimal import Decimal

import httpx
import pytest

from pressdesk import create_app
from pressdesk.cli import seed_defaults
from pressdesk.client.gateway import GatewayClient
from pressdesk.extensions import db
from pressdesk.models import Profile
from pressdesk.services import session_service, signing_service


API_KEY = "test-gateway-key"
GATEWAY_URL = "http://gateway.test"


@pytest.fixture(scope='session')
def signing_material():
    """(private key PEM, certificate PEM), generated once per run."""
    return signing_service.generate_signing_material(common_name="pressdesk-test", days=30)


@pytest.fixture(scope='session')
def certificate_path(signing_material, tmp_path_factory):
    path = tmp_path_factory.mktemp("qz") / "qz-digital-certificate.txt"
    path.write_text(signing_material[1], encoding="utf-8")
    return path


@pytest.fixture(scope='session')
def app(signing_material, certificate_path):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'GATEWAY_API_KEY': API_KEY,
        'QZ_PRIVATE_KEY': signing_material[0],
        'QZ_CERTIFICATE_PATH': str(certificate_path),
        'REALTIME_KEEPALIVE_SECONDS': 0.05,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def admin(db_session):
    profile = Profile(name="Avery Admin", email="avery@pressdesk.test", role="ADMIN")
    db_session.add(profile)
    db_session.commit()
    return profile


@pytest.fixture(scope='function')
def staff(db_session):
    profile = Profile(name="Sam Staff", email="sam@pressdesk.test", role="STAFF")
    db_session.add(profile)
    db_session.commit()
    return profile


@pytest.fixture(scope='function')
def admin_token(admin):
    _, token = session_service.create_session(admin.id)
    return token


@pytest.fixture(scope='function')
def staff_token(staff):
    _, token = session_service.create_session(staff.id)
    return token


@pytest.fixture(scope='function')
def seeded(db_session, admin):
    """Default pipeline, catalog and one store."""
    seed_defaults(store_name="Main Street", admin_name="unused", admin_email=None)
    return db_session


def gateway_headers(token: str | None = None) -> dict:
    """Helper to create gateway request headers."""
    headers = {'apikey': API_KEY}
    if token:
        headers['Authorization'] = f'Bearer {token}'
    return headers


def flask_transport(client, log: list | None = None) -> httpx.MockTransport:
    """Route httpx requests into the Flask test client. Appends (method, path) to `log` when given."""
    def handler(request: httpx.Request) -> httpx.Response:
        if log is not None:
            log.append((request.method, request.url.path))
        headers = [
            (name, value) for name, value in request.headers.items()
            if name.lower() not in ("host", "content-length")
        ]
        resp = client.open(
            request.url.path,
            method=request.method,
            query_string=request.url.query.decode("ascii"),
            headers=headers,
            data=request.content,
        )
        return httpx.Response(
            resp.status_code,
            headers={"content-type": resp.content_type or "text/plain"},
            content=resp.get_data(),
        )

    return httpx.MockTransport(handler)


def make_gateway(client, token: str | None = None, api_key: str = API_KEY, log: list | None = None) -> GatewayClient:
    gateway = GatewayClient(
        GATEWAY_URL,
        api_key,
        http=httpx.AsyncClient(transport=flask_transport(client, log)),
    )
    gateway.set_access_token(token)
    return gateway


@pytest.fixture(scope='function')
def gateway(client, admin_token):
    """GatewayClient signed in as the admin profile."""
    return make_gateway(client, admin_token)


def run(coro):
    """Drive one coroutine to completion from a sync test."""
    return asyncio.run(coro)


def money(value: str) -> Decimal:
    return Decimal(value)


class FakePrintAgent:
    """Local print agent double; records submitted jobs."""

    def __init__(self, *, printers=("Receipt", "Front Counter"), fail_connect=False, fail_print=False):
        self.printers = list(printers)
        self.fail_connect = fail_connect
        self.fail_print = fail_print
        self.active = False
        self.jobs = []
        self.certificate_provider = None
        self.signature_provider = None

    async def connect(self):
        if self.fail_connect:
            raise ConnectionRefusedError("agent not running")
        self.active = True

    def is_active(self):
        return self.active

    async def find_printers(self):
        return self.printers

    def set_certificate_provider(self, provider):
        self.certificate_provider = provider

    def set_signature_provider(self, provider):
        self.signature_provider = provider

    async def print(self, printer, data):
        if self.fail_print:
            raise RuntimeError("printer offline")
        self.jobs.append((printer, data))
