"""
Shared pytest fixtures for the QuoteFlow test suite.

IMPORTANT: QUOTEFLOW_DATA_DIR is pointed at a throwaway directory BEFORE any
src.* import, so importing app.py (which builds an app at module level) never
touches the real data/ folder. Each test then gets its own SQLite file.
"""
import base64
import os
import sys
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

_PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
if _PROJECT_ROOT not in sys.path:
    sys.path.insert(0, _PROJECT_ROOT)

os.environ.setdefault("QUOTEFLOW_DATA_DIR", tempfile.mkdtemp(prefix="quoteflow-test-"))
os.environ["DISABLE_RATE_LIMIT"] = "true"
os.environ["DISABLE_CSRF"] = "true"
os.environ.pop("ANTHROPIC_API_KEY", None)
os.environ.pop("AGENT_RFQ_EXTRACT_KEY", None)

from werkzeug.security import generate_password_hash

from src.core import db
from src.core.models import RFQ, Product, Quote, User, utcnow
from src.knowledge.corpus import corpus_provider
from src.agents.notify_agent import MemoryNotificationStore

TEST_PASSWORD = "secret123"
# cheap hash so every authenticated request stays fast
_FAST_HASH = generate_password_hash(TEST_PASSWORD, method="pbkdf2:sha256:1000")


# ── Temp database (per-test isolation) ────────────────────────────────────────

@pytest.fixture(autouse=True)
def temp_db(tmp_path, monkeypatch):
    """Point the DB layer at a fresh SQLite file and drop cached corpus."""
    path = str(tmp_path / "data" / "quoteflow.db")
    monkeypatch.setattr(db, "DB_PATH", path)
    db.init_db()
    corpus_provider.invalidate()
    yield path
    corpus_provider.invalidate()


# ── Users ─────────────────────────────────────────────────────────────────────

def make_user(user_id, role, name=None, email=None, language="en", status="Active"):
    user = User(id=user_id, email=email or f"{user_id}@quoteflow.test",
                name=name or user_id.title(), role=role, language=language,
                status=status)
    return db.insert_user(user, _FAST_HASH)


@pytest.fixture
def admin_user(temp_db):
    return make_user("admin", "Admin", name="Ada Admin")


@pytest.fixture
def sales_user(temp_db):
    return make_user("sales", "Sales", name="Sam Sales", language="de")


@pytest.fixture
def purchaser(temp_db):
    return make_user("buyer1", "Purchasing", name="Li Wei", language="zh")


@pytest.fixture
def purchaser2(temp_db):
    return make_user("buyer2", "Purchasing", name="Maria Lopez")


@pytest.fixture
def users(admin_user, sales_user, purchaser, purchaser2):
    return {"admin": admin_user, "sales": sales_user,
            "buyer1": purchaser, "buyer2": purchaser2}


@pytest.fixture
def store():
    return MemoryNotificationStore()


# ── Flask test clients ────────────────────────────────────────────────────────

def _basic_auth_header(user, pw=TEST_PASSWORD):
    creds = base64.b64encode(f"{user}:{pw}".encode()).decode()
    return {"Authorization": f"Basic {creds}"}


class AuthenticatedClient:
    """Wraps Flask test client to add Basic Auth headers to every request."""
    def __init__(self, client, headers):
        self._client = client
        self._headers = headers

    def get(self, *args, **kwargs):
        kwargs.setdefault("headers", {}).update(self._headers)
        return self._client.get(*args, **kwargs)

    def post(self, *args, **kwargs):
        kwargs.setdefault("headers", {}).update(self._headers)
        return self._client.post(*args, **kwargs)


@pytest.fixture
def app(temp_db):
    """Flask app configured for testing, backed by the per-test database."""
    from app import create_app
    return create_app({"TESTING": True})


def _client_for(app, user):
    return AuthenticatedClient(app.test_client(), _basic_auth_header(user.email))


@pytest.fixture
def admin_client(app, admin_user):
    return _client_for(app, admin_user)


@pytest.fixture
def sales_client(app, sales_user):
    return _client_for(app, sales_user)


@pytest.fixture
def buyer_client(app, purchaser):
    return _client_for(app, purchaser)


@pytest.fixture
def anon_client(app):
    return app.test_client()


# ── Sample data factories ─────────────────────────────────────────────────────

def ts(day, hour=0):
    """2024-03-<day> <hour>:00 UTC."""
    return datetime(2024, 3, day, hour, tzinfo=timezone.utc)


def make_product(pid="p1", series="Wig", **attrs):
    values = {
        "hair_fiber": "Remy Human Hair", "cap": "Lace Front", "cap_size": "Average",
        "length": "18 inches", "density": "150%", "color": "Natural Black",
        "curl_style": "Body Wave",
    }
    values.update(attrs)
    return Product(id=pid, wlid="", product_series=series, sku=f"SKU-{pid}", **values)


def make_quote(rfq_id, product_id, purchaser_id, when, price=100.0, status="Pending Acceptance", qid=None):
    return Quote(id=qid or f"q-{rfq_id}-{product_id}-{purchaser_id}-{when:%d%H}",
                 rfq_id=rfq_id, product_id=product_id, purchaser_id=purchaser_id,
                 price=price, quote_time=when, delivery_date=when + timedelta(days=14),
                 status=status)


def make_rfq(rid="r1", products=None, quotes=None, creator_id="sales",
             purchasers=("buyer1",), status="Waiting for Quote", inquiry=None):
    return RFQ(id=rid, code=rid.upper(), creator_id=creator_id,
               inquiry_time=inquiry or utcnow(), status=status,
               assigned_purchaser_ids=list(purchasers),
               customer_email="customer@example.com",
               products=list(products or []), quotes=list(quotes or []))


@pytest.fixture
def sample_rfq_payload():
    """JSON body the new-RFQ form posts."""
    return {
        "customerType": "New",
        "customerEmail": "jane@shop.example",
        "assignedPurchaserIds": ["buyer1"],
        "products": [{
            "productSeries": "Wig", "sku": "W-200", "hairFiber": "Remy Human Hair",
            "cap": "Lace Front", "capSize": "Average", "length": "18 inches",
            "density": "150%", "color": "Natural Black", "curlStyle": "Body Wave",
            "images": ["https://img.example/1.jpg"],
        }],
    }
