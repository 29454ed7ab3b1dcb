"""Shared pytest fixtures: in-memory Supabase, Twilio and Stripe stand-ins."""

import copy
import hashlib
import hmac
import json
import time
import uuid
from types import SimpleNamespace

import pytest
import stripe

import database
from app import create_app
from database import DatabaseService
from payment_service import PaymentService
from sms_service import SmsService

WEBHOOK_SECRET = "whsec_test_secret"
USER_TOKEN = "token-renter"
USER = {"id": "user-1", "email": "renter@example.com"}


class FakeQuery:
    """Enough of the postgrest query builder for DatabaseService."""

    def __init__(self, client, table):
        self.client = client
        self.table = table
        self.action = "select"
        self.payload = None
        self.filters = []
        self.order_by = None
        self.row_limit = None
        self.on_conflict = None
        self.ignore_duplicates = False

    def select(self, *columns, count=None):
        self.action = "select"
        return self

    def insert(self, payload):
        self.action = "insert"
        self.payload = payload
        return self

    def upsert(self, payload, on_conflict="", ignore_duplicates=False, **kwargs):
        self.action = "upsert"
        self.payload = payload
        self.on_conflict = on_conflict or "id"
        self.ignore_duplicates = ignore_duplicates
        return self

    def update(self, payload):
        self.action = "update"
        self.payload = payload
        return self

    def delete(self):
        self.action = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self.filters.append(lambda row: row.get(column) != value)
        return self

    def in_(self, column, values):
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, size):
        self.row_limit = size
        return self

    def _new_row(self, record):
        row = copy.deepcopy(record)
        row.setdefault("id", str(uuid.uuid4()))
        return row

    def execute(self):
        if self.table in self.client.failing_tables:
            raise Exception(f"{self.table} is unavailable")

        self.client.calls.append((self.table, self.action))
        rows = self.client.tables.setdefault(self.table, [])
        matched = [row for row in rows if all(check(row) for check in self.filters)]

        if self.action == "select":
            result = matched
            if self.order_by:
                column, desc = self.order_by
                result = sorted(result, key=lambda row: (row.get(column) is None, row.get(column) or ""), reverse=desc)
            if self.row_limit is not None:
                result = result[:self.row_limit]
            return SimpleNamespace(data=copy.deepcopy(result), count=len(result))

        self.client.mutations.append((self.table, self.action))
        records = self.payload if isinstance(self.payload, list) else [self.payload]
        result = []

        if self.action == "insert":
            for record in records:
                row = self._new_row(record)
                rows.append(row)
                result.append(row)
        elif self.action == "upsert":
            for record in records:
                existing = [row for row in rows if row.get(self.on_conflict) == record.get(self.on_conflict)]
                if existing:
                    if self.ignore_duplicates:
                        continue
                    existing[0].update(copy.deepcopy(record))
                    result.append(existing[0])
                else:
                    row = self._new_row(record)
                    rows.append(row)
                    result.append(row)
        elif self.action == "update":
            for row in matched:
                row.update(copy.deepcopy(self.payload))
                result.append(row)
        elif self.action == "delete":
            for row in matched:
                rows.remove(row)
                result.append(row)

        return SimpleNamespace(data=copy.deepcopy(result), count=len(result))


class FakeAuth:
    def __init__(self):
        self.users = {}

    def get_user(self, jwt=None):
        if jwt not in self.users:
            raise Exception("invalid JWT")
        return SimpleNamespace(user=SimpleNamespace(**self.users[jwt]))


class FakeSupabase:
    def __init__(self):
        self.tables = {"cars": [], "bookings": []}
        self.auth = FakeAuth()
        self.failing_tables = set()
        self.calls = []
        self.mutations = []

    def table(self, name):
        return FakeQuery(self, name)


class FakeTwilio:
    def __init__(self):
        self.sent = []
        self.fail = False
        self.messages = self

    def create(self, body=None, from_=None, to=None):
        if self.fail:
            raise Exception("Twilio is down")
        self.sent.append({"body": body, "from_": from_, "to": to})
        return SimpleNamespace(sid=f"SM{len(self.sent)}", status="queued")


@pytest.fixture
def fake_supabase():
    supabase = FakeSupabase()
    supabase.auth.users[USER_TOKEN] = dict(USER)
    return supabase


@pytest.fixture
def db_service(monkeypatch, fake_supabase):
    monkeypatch.setattr(database, "create_client", lambda url, key: fake_supabase)
    return DatabaseService("https://test.supabase.co", "anon-key", "service-role-key")


@pytest.fixture
def fake_twilio():
    return FakeTwilio()


@pytest.fixture
def sms_service(fake_twilio):
    return SmsService(
        account_sid="AC123",
        auth_token="auth-token",
        from_number="+15550000000",
        admin_number="+15551111111",
        client=fake_twilio,
    )


@pytest.fixture
def payment_service():
    return PaymentService(
        secret_key="sk_test_123",
        webhook_secret=WEBHOOK_SECRET,
        currency="usd",
        base_url="https://luxe.example",
    )


@pytest.fixture
def checkout_sessions(monkeypatch):
    """Record every Checkout session request instead of calling Stripe."""
    created = []

    def fake_create(**kwargs):
        created.append(kwargs)
        session_id = f"cs_test_{len(created)}"
        return stripe.checkout.Session.construct_from(
            {"id": session_id, "object": "checkout.session", "url": f"https://checkout.stripe.test/{session_id}"},
            kwargs.get("api_key"),
        )

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)
    return created


@pytest.fixture
def stripe_event(monkeypatch):
    """Make signature verification succeed and return the given event."""
    def use(event):
        monkeypatch.setattr(
            stripe.Webhook,
            "construct_event",
            lambda payload, sig_header, secret: stripe.Event.construct_from(event, secret),
        )
        return event
    return use


@pytest.fixture
def app(db_service, payment_service, sms_service):
    app = create_app(db_service=db_service, payment_service=payment_service, sms_service=sms_service)
    app.config.update(TESTING=True, SECRET_KEY="test-secret", SESSION_COOKIE_SECURE=False)
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {USER_TOKEN}"}


@pytest.fixture
def car(fake_supabase):
    row = {
        "id": str(uuid.uuid4()),
        "make": "Lamborghini",
        "model": "Huracan",
        "price_per_day": 1200.0,
        "price_per_hour": 300.0,
        "location": "Miami",
        "image_urls": ["https://cdn.example/huracan.jpg"],
        "available": True,
        "color": "Verde Mantis",
        "horsepower": 631,
        "top_speed": "202 mph",
        "acceleration": "2.9s",
        "created_at": "2026-01-01T00:00:00",
    }
    fake_supabase.tables["cars"].append(row)
    return dict(row)


@pytest.fixture
def completed_event():
    """Build a checkout.session.completed event carrying the given metadata."""
    def build(metadata):
        return {
            "id": "evt_test_1",
            "type": "checkout.session.completed",
            "data": {"object": {"id": "cs_test_1", "object": "checkout.session", "metadata": metadata}},
        }
    return build


@pytest.fixture
def signed_webhook(client):
    """POST an event signed with the test webhook secret; Stripe's own verification runs."""
    def send(event, path="/webhook"):
        payload = json.dumps(event)
        timestamp = int(time.time())
        signature = hmac.new(
            WEBHOOK_SECRET.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256
        ).hexdigest()
        return client.post(
            path,
            data=payload,
            headers={"stripe-signature": f"t={timestamp},v1={signature}", "Content-Type": "application/json"},
        )
    return send
