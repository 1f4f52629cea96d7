"""
tests/test_stats.py: dashboard statistics + corpus cache
Run: python -m pytest tests/test_stats.py -v
"""
from conftest import make_product, make_quote, make_rfq, make_user, ts
from src.core import db
from src.core.models import QuoteStatus, RFQStatus, User
from src.knowledge import stats
from src.knowledge.corpus import CorpusProvider


def _sales(uid="sales"):
    return User(id=uid, email=f"{uid}@x.test", name=uid, role="Sales")


def _buyer(uid="buyer1"):
    return User(id=uid, email=f"{uid}@x.test", name=uid, role="Purchasing")


def _corpus():
    return [
        make_rfq("r1", [make_product("p1")],
                 [make_quote("r1", "p1", "buyer1", ts(1), price=100.0,
                             status=QuoteStatus.ACCEPTED.value)],
                 status=RFQStatus.COMPLETED.value, inquiry=ts(1)),
        make_rfq("r2", [make_product("p2")],
                 [make_quote("r2", "p2", "buyer1", ts(5), price=50.0),
                  make_quote("r2", "p2", "buyer2", ts(6), price=60.0)],
                 purchasers=("buyer1", "buyer2"),
                 status=RFQStatus.IN_PROGRESS.value, inquiry=ts(4)),
        make_rfq("r3", [make_product("p3")],
                 [make_quote("r3", "p3", "buyer1", ts(8), price=0.0,
                             status=QuoteStatus.WITHDRAWN.value)],
                 inquiry=ts(7)),
        make_rfq("r4", [make_product("p4")], creator_id="other", inquiry=ts(9)),
    ]


class TestSalesStats:

    def test_counts(self):
        s = stats.sales_stats(_sales(), _corpus(), year=2024)
        assert s["total_rfqs"] == 3
        assert s["completed_rfqs"] == 1
        assert s["completion_rate"] == 33.3
        assert s["status_breakdown"][RFQStatus.WAITING.value] == 1
        assert s["status_breakdown"][RFQStatus.ARCHIVED.value] == 0

    def test_monthly_series(self):
        s = stats.sales_stats(_sales(), _corpus(), year=2024)
        assert list(s["monthly_rfqs"]) == list(stats.MONTHS)
        assert s["monthly_rfqs"]["Mar"] == 3
        assert sum(s["monthly_rfqs"].values()) == 3

    def test_other_year_is_empty(self):
        s = stats.sales_stats(_sales(), _corpus(), year=2023)
        assert sum(s["monthly_rfqs"].values()) == 0

    def test_no_rfqs(self):
        s = stats.sales_stats(_sales("nobody"), _corpus(), year=2024)
        assert s["total_rfqs"] == 0
        assert s["completion_rate"] == 0.0


class TestPurchasingStats:

    def test_withdrawn_excluded(self):
        s = stats.purchasing_stats(_buyer(), _corpus(), year=2024)
        assert s["total_assigned"] == 4
        assert s["total_quoted"] == 2
        assert s["accepted_quotes"] == 1
        assert s["avg_quote_value"] == 75.0
        assert s["quoted_rfqs"] == 2
        # r3 only has a withdrawn quote, r4 has nothing
        assert s["pending_rfqs"] == 2
        assert s["monthly_quotes"]["Mar"] == 2

    def test_second_buyer(self):
        s = stats.purchasing_stats(_buyer("buyer2"), _corpus(), year=2024)
        assert s["total_assigned"] == 1
        assert s["avg_quote_value"] == 60.0
        assert s["pending_rfqs"] == 0


class TestOverview:

    def test_counts(self, users):
        make_user("retired", "Sales", status="Inactive")
        o = stats.overview(_corpus(), db.list_users())
        assert o["users"] == 5
        assert o["active_users"] == 4
        assert o["users_by_role"] == {"Admin": 1, "Sales": 2, "Purchasing": 2}
        assert o["rfqs"] == 4
        assert o["quotes"] == 4
        assert o["rfqs_by_status"][RFQStatus.COMPLETED.value] == 1


class TestCorpusProvider:

    def test_cached_until_invalidated(self):
        calls = []

        def loader():
            calls.append(1)
            return [make_rfq("r1")]

        provider = CorpusProvider(loader=loader, ttl=60)
        first = provider.get()
        assert provider.get() is first
        assert len(calls) == 1
        provider.invalidate()
        provider.get()
        assert len(calls) == 2

    def test_zero_ttl_always_reloads(self):
        calls = []
        provider = CorpusProvider(loader=lambda: calls.append(1) or [], ttl=0)
        provider.get()
        provider.get()
        assert len(calls) == 2

    def test_snapshot_is_tuple(self):
        db.save_rfq(make_rfq("r1", [make_product("p1")]))
        snapshot = CorpusProvider().get()
        assert isinstance(snapshot, tuple)
        assert [r.id for r in snapshot] == ["r1"]
