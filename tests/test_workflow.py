"""
tests/test_workflow.py: RFQ lifecycle, quotes, accounts
Run: python -m pytest tests/test_workflow.py -v
"""
import threading
import time
from datetime import datetime, timezone

import pytest

from conftest import make_product, make_rfq, make_user, TEST_PASSWORD
from src.core import db, workflow
from src.core.models import QuoteStatus, RFQStatus, UserStatus
from src.core.workflow import WorkflowError, NotFound, PermissionDenied
from src.forms.rfq_form import FormValidationError, validate_rfq_form
from src.knowledge.corpus import corpus_provider

DELIVERY = datetime(2024, 5, 1, tzinfo=timezone.utc)


def _quote_form(product_id, price=120.0):
    return {"product_id": product_id, "price": price,
            "delivery_date": DELIVERY, "notes": ""}


@pytest.fixture
def rfq(users, store, sample_rfq_payload):
    payload = dict(sample_rfq_payload, assignedPurchaserIds=["buyer1", "buyer2"])
    return workflow.create_rfq(users["sales"], validate_rfq_form(payload), store=store)


def _titles(store, user_id):
    return [n.title_key for n in store.list_for(user_id)]


# ═══════════════════════════════════════════════════════════════════════════════
# Creating RFQs
# ═══════════════════════════════════════════════════════════════════════════════

class TestCreateRfq:

    def test_assigns_ids_wlids_and_code(self, rfq):
        assert rfq.status == RFQStatus.WAITING.value
        assert rfq.creator_id == "sales"
        assert len(rfq.code) == 12 and rfq.code.isdigit()
        product = rfq.products[0]
        assert product.id
        assert product.wlid == "FTCV0001"

    def test_persisted(self, rfq):
        stored = db.get_rfq(rfq.id)
        assert stored.products[0].wlid == "FTCV0001"
        assert stored.assigned_purchaser_ids == ["buyer1", "buyer2"]

    def test_notifies_each_purchaser(self, rfq, store):
        assert _titles(store, "buyer1") == ["notification_rfq_assigned_title"]
        assert _titles(store, "buyer2") == ["notification_rfq_assigned_title"]
        assert store.list_for("sales") == []

    def test_purchasing_cannot_create(self, users, store, sample_rfq_payload):
        with pytest.raises(PermissionDenied):
            workflow.create_rfq(users["buyer1"], validate_rfq_form(sample_rfq_payload), store=store)

    def test_unknown_purchaser_rejected(self, users, store, sample_rfq_payload):
        payload = dict(sample_rfq_payload, assignedPurchaserIds=["sales"])
        with pytest.raises(FormValidationError) as exc:
            workflow.create_rfq(users["sales"], validate_rfq_form(payload), store=store)
        assert "assigned_purchaser_ids" in exc.value.errors

    def test_inactive_purchaser_rejected(self, users, store, sample_rfq_payload):
        make_user("gone", "Purchasing", status=UserStatus.INACTIVE.value)
        payload = dict(sample_rfq_payload, assignedPurchaserIds=["gone"])
        with pytest.raises(FormValidationError):
            workflow.create_rfq(users["sales"], validate_rfq_form(payload), store=store)

    def test_invalidates_corpus(self, users, store, sample_rfq_payload):
        assert corpus_provider.get() == ()
        workflow.create_rfq(users["sales"], validate_rfq_form(sample_rfq_payload), store=store)
        assert len(corpus_provider.get()) == 1


class TestVisibility:

    def test_roles(self, rfq, users):
        assert workflow.can_view(users["admin"], rfq)
        assert workflow.can_view(users["sales"], rfq)
        assert workflow.can_view(users["buyer1"], rfq)
        other_sales = make_user("sales2", "Sales")
        assert not workflow.can_view(other_sales, rfq)

    def test_unassigned_purchaser(self, users):
        db.save_rfq(make_rfq("r1", [make_product("p1")], purchasers=("buyer1",)))
        assert [r.id for r in workflow.visible_rfqs(users["buyer1"])] == ["r1"]
        assert workflow.visible_rfqs(users["buyer2"]) == []
        with pytest.raises(PermissionDenied):
            workflow.get_rfq_for(users["buyer2"], "r1")

    def test_missing(self, users):
        with pytest.raises(NotFound):
            workflow.get_rfq_for(users["admin"], "nope")


# ═══════════════════════════════════════════════════════════════════════════════
# Quotes
# ═══════════════════════════════════════════════════════════════════════════════

class TestSubmitQuote:

    def test_first_quote_moves_to_in_progress(self, rfq, users, store):
        pid = rfq.products[0].id
        quote = workflow.submit_quote(users["buyer1"], rfq.id, _quote_form(pid), store=store)
        assert quote.status == QuoteStatus.PENDING.value
        assert quote.key == (rfq.id, pid, "buyer1")
        assert db.get_rfq(rfq.id).status == RFQStatus.IN_PROGRESS.value
        assert _titles(store, "sales") == ["notification_new_quote_title"]
        n = store.list_for("sales")[0]
        assert n.body_params["purchaserName"] == "Li Wei"
        assert n.href == f"/rfq/{rfq.id}"

    def test_requote_updates_in_place(self, rfq, users, store):
        pid = rfq.products[0].id
        first = workflow.submit_quote(users["buyer1"], rfq.id, _quote_form(pid, 100), store=store)
        second = workflow.submit_quote(users["buyer1"], rfq.id, _quote_form(pid, 90), store=store)
        assert second.id == first.id
        stored = db.get_rfq(rfq.id)
        assert len(stored.quotes) == 1
        assert stored.quotes[0].price == 90
        assert "notification_quote_updated_title" in _titles(store, "sales")

    def test_unassigned_purchaser_denied(self, users, store):
        db.save_rfq(make_rfq("r1", [make_product("p1")], purchasers=("buyer1",)))
        with pytest.raises(PermissionDenied):
            workflow.submit_quote(users["buyer2"], "r1", _quote_form("p1"), store=store)

    def test_sales_cannot_quote(self, rfq, users, store):
        with pytest.raises(PermissionDenied):
            workflow.submit_quote(users["sales"], rfq.id, _quote_form(rfq.products[0].id), store=store)

    def test_unknown_product(self, rfq, users, store):
        with pytest.raises(NotFound):
            workflow.submit_quote(users["buyer1"], rfq.id, _quote_form("zzz"), store=store)

    def test_archived_rfq_closed(self, rfq, users, store):
        workflow.archive_rfq(users["sales"], rfq.id, "customer cancelled")
        with pytest.raises(WorkflowError):
            workflow.submit_quote(users["buyer1"], rfq.id, _quote_form(rfq.products[0].id), store=store)


class TestAcceptQuote:

    def test_accept_completes_and_rejects_siblings(self, rfq, users, store):
        pid = rfq.products[0].id
        q1 = workflow.submit_quote(users["buyer1"], rfq.id, _quote_form(pid, 100), store=store)
        q2 = workflow.submit_quote(users["buyer2"], rfq.id, _quote_form(pid, 95), store=store)
        updated = workflow.accept_quote(users["sales"], rfq.id, q2.id, store=store)
        statuses = {q.id: q.status for q in updated.quotes}
        assert statuses == {q1.id: QuoteStatus.REJECTED.value, q2.id: QuoteStatus.ACCEPTED.value}
        assert updated.status == RFQStatus.COMPLETED.value
        assert "notification_quote_accepted_title" in _titles(store, "buyer2")

    def test_only_pending_can_be_accepted(self, rfq, users, store):
        pid = rfq.products[0].id
        q = workflow.submit_quote(users["buyer1"], rfq.id, _quote_form(pid), store=store)
        workflow.withdraw_quote(users["buyer1"], rfq.id, pid, "no stock", store=store)
        with pytest.raises(WorkflowError):
            workflow.accept_quote(users["sales"], rfq.id, q.id, store=store)

    def test_other_sales_cannot_accept(self, rfq, users, store):
        q = workflow.submit_quote(users["buyer1"], rfq.id, _quote_form(rfq.products[0].id), store=store)
        intruder = make_user("sales2", "Sales")
        with pytest.raises(PermissionDenied):
            workflow.accept_quote(intruder, rfq.id, q.id, store=store)

    def test_accepted_quote_is_final(self, rfq, users, store):
        pid = rfq.products[0].id
        q = workflow.submit_quote(users["buyer1"], rfq.id, _quote_form(pid), store=store)
        workflow.accept_quote(users["admin"], rfq.id, q.id, store=store)
        with pytest.raises(WorkflowError):
            workflow.submit_quote(users["buyer1"], rfq.id, _quote_form(pid, 1), store=store)

    def test_unknown_quote(self, rfq, users, store):
        with pytest.raises(NotFound):
            workflow.accept_quote(users["sales"], rfq.id, "nope", store=store)


class TestWithdrawQuote:

    def test_without_quote_creates_no_quote(self, rfq, users, store):
        pid = rfq.products[0].id
        w = workflow.withdraw_quote(users["buyer1"], rfq.id, pid, " no supplier ", store=store)
        assert (w.product_id, w.purchaser_id, w.reason) == (pid, "buyer1", "no supplier")
        stored = db.get_rfq(rfq.id)
        assert stored.quotes == []
        assert [x.reason for x in stored.withdrawals_for(pid)] == ["no supplier"]
        assert stored.status == RFQStatus.WAITING.value
        n = store.list_for("sales")[0]
        assert n.title_key == "notification_quote_withdrawn_title"
        assert n.body_params["reason"] == "no supplier"

    def test_withdrawn_only_rfq_offers_nothing_to_matcher(self, rfq, users, store):
        from src.knowledge.similar_quotes import find_similar_quotes
        workflow.withdraw_quote(users["buyer1"], rfq.id, rfq.products[0].id, "no stock", store=store)
        query = make_product("query", "Wig")
        assert find_similar_quotes(query, corpus_provider.get()) == []

    def test_withdrawing_only_quote_recomputes_status(self, rfq, users, store):
        pid = rfq.products[0].id
        workflow.submit_quote(users["buyer1"], rfq.id, _quote_form(pid), store=store)
        assert db.get_rfq(rfq.id).status == RFQStatus.IN_PROGRESS.value
        workflow.withdraw_quote(users["buyer1"], rfq.id, pid, "price changed", store=store)
        stored = db.get_rfq(rfq.id)
        assert stored.status == RFQStatus.WAITING.value
        # archive then restore lands on the same status
        workflow.archive_rfq(users["sales"], rfq.id, "pause")
        assert workflow.restore_rfq(users["sales"], rfq.id).status == stored.status

    def test_withdraw_keeps_other_purchasers_quote_in_progress(self, rfq, users, store):
        pid = rfq.products[0].id
        workflow.submit_quote(users["buyer1"], rfq.id, _quote_form(pid), store=store)
        workflow.submit_quote(users["buyer2"], rfq.id, _quote_form(pid, 90), store=store)
        workflow.withdraw_quote(users["buyer1"], rfq.id, pid, "too slow", store=store)
        assert db.get_rfq(rfq.id).status == RFQStatus.IN_PROGRESS.value

    def test_withdraw_existing_then_requote(self, rfq, users, store):
        pid = rfq.products[0].id
        workflow.submit_quote(users["buyer1"], rfq.id, _quote_form(pid), store=store)
        workflow.withdraw_quote(users["buyer1"], rfq.id, pid, "price changed", store=store)
        withdrawn = db.get_rfq(rfq.id).quotes[0]
        assert withdrawn.status == QuoteStatus.WITHDRAWN.value
        assert withdrawn.withdraw_reason == "price changed"
        again = workflow.submit_quote(users["buyer1"], rfq.id, _quote_form(pid, 80), store=store)
        assert again.status == QuoteStatus.PENDING.value
        assert again.withdraw_reason is None
        stored = db.get_rfq(rfq.id)
        assert len(stored.quotes) == 1
        assert stored.status == RFQStatus.IN_PROGRESS.value

    def test_refused_withdraw_leaves_rfq_untouched(self, rfq, users, store):
        pid = rfq.products[0].id
        q = workflow.submit_quote(users["buyer1"], rfq.id, _quote_form(pid), store=store)
        workflow.accept_quote(users["sales"], rfq.id, q.id, store=store)
        with pytest.raises(WorkflowError):
            workflow.withdraw_quote(users["buyer1"], rfq.id, pid, "late", store=store)
        stored = db.get_rfq(rfq.id)
        assert stored.withdrawals == []
        assert stored.quotes[0].status == QuoteStatus.ACCEPTED.value

    def test_reason_required(self, rfq, users, store):
        with pytest.raises(FormValidationError):
            workflow.withdraw_quote(users["buyer1"], rfq.id, rfq.products[0].id, "", store=store)


class TestConcurrentEdits:

    def _slow_fetch(self, monkeypatch):
        real_fetch = db._fetch_rfq

        def slow_fetch(conn, rfq_id):
            found = real_fetch(conn, rfq_id)
            time.sleep(0.05)  # hold the read open so writers overlap
            return found

        monkeypatch.setattr(db, "_fetch_rfq", slow_fetch)

    def _run(self, *jobs):
        errors = []

        def wrap(job):
            try:
                job()
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=wrap, args=(job,)) for job in jobs]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return errors

    def test_parallel_quotes_both_saved(self, rfq, users, store, monkeypatch):
        pid = rfq.products[0].id
        self._slow_fetch(monkeypatch)
        errors = self._run(
            lambda: workflow.submit_quote(users["buyer1"], rfq.id, _quote_form(pid, 100), store=store),
            lambda: workflow.submit_quote(users["buyer2"], rfq.id, _quote_form(pid, 95), store=store),
        )
        assert errors == []
        saved = db.get_rfq(rfq.id)
        assert sorted(q.purchaser_id for q in saved.quotes) == ["buyer1", "buyer2"]
        assert saved.status == RFQStatus.IN_PROGRESS.value

    def test_quote_and_withdraw_race(self, rfq, users, store, monkeypatch):
        pid = rfq.products[0].id
        self._slow_fetch(monkeypatch)
        errors = self._run(
            lambda: workflow.submit_quote(users["buyer1"], rfq.id, _quote_form(pid), store=store),
            lambda: workflow.withdraw_quote(users["buyer2"], rfq.id, pid, "no stock", store=store),
        )
        assert errors == []
        saved = db.get_rfq(rfq.id)
        assert [q.purchaser_id for q in saved.quotes] == ["buyer1"]
        assert [w.purchaser_id for w in saved.withdrawals] == ["buyer2"]

    def test_missing_rfq(self, users, store):
        with pytest.raises(NotFound):
            workflow.submit_quote(users["buyer1"], "nope", _quote_form("p1"), store=store)
        assert db.get_rfq("nope") is None


# ═══════════════════════════════════════════════════════════════════════════════
# Archive / restore / delete
# ═══════════════════════════════════════════════════════════════════════════════

class TestArchive:

    def test_archive_and_restore(self, rfq, users, store):
        workflow.submit_quote(users["buyer1"], rfq.id, _quote_form(rfq.products[0].id), store=store)
        archived = workflow.archive_rfq(users["sales"], rfq.id, "duplicate")
        assert archived.status == RFQStatus.ARCHIVED.value
        assert archived.archive_reason == "duplicate"
        assert workflow.visible_rfqs(users["sales"]) == []
        assert [r.id for r in workflow.visible_rfqs(users["sales"], archived=True)] == [rfq.id]

        restored = workflow.restore_rfq(users["sales"], rfq.id)
        assert restored.status == RFQStatus.IN_PROGRESS.value
        assert restored.archive_reason is None

    def test_double_archive(self, rfq, users):
        workflow.archive_rfq(users["sales"], rfq.id, "x")
        with pytest.raises(WorkflowError):
            workflow.archive_rfq(users["sales"], rfq.id, "x")

    def test_restore_requires_archived(self, rfq, users):
        with pytest.raises(WorkflowError):
            workflow.restore_rfq(users["sales"], rfq.id)

    def test_delete_admin_only_and_archived_only(self, rfq, users):
        with pytest.raises(WorkflowError):
            workflow.delete_rfq(users["admin"], rfq.id)
        workflow.archive_rfq(users["sales"], rfq.id, "old")
        with pytest.raises(PermissionDenied):
            workflow.delete_rfq(users["sales"], rfq.id)
        assert workflow.delete_rfq(users["admin"], rfq.id) is True
        assert db.get_rfq(rfq.id) is None


class TestStatusFromQuotes:

    def test_no_products_is_waiting(self):
        assert workflow.status_from_quotes(make_rfq("r1")) == RFQStatus.WAITING.value

    def test_partial_acceptance_in_progress(self, users, store):
        rfq = make_rfq("r1", [make_product("p1"), make_product("p2")],
                       purchasers=("buyer1",), creator_id="sales")
        db.save_rfq(rfq)
        q = workflow.submit_quote(users["buyer1"], "r1", _quote_form("p1"), store=store)
        updated = workflow.accept_quote(users["sales"], "r1", q.id, store=store)
        assert updated.status == RFQStatus.IN_PROGRESS.value


# ═══════════════════════════════════════════════════════════════════════════════
# Accounts
# ═══════════════════════════════════════════════════════════════════════════════

class TestUsers:

    def _form(self, **kw):
        form = {"email": "new@quoteflow.test", "name": "Nora", "password": "pw12345",
                "role": "Purchasing", "language": "de"}
        form.update(kw)
        return form

    def test_admin_creates_user(self, users):
        user = workflow.create_user(users["admin"], self._form())
        assert user.must_change_password
        assert user.created_by == "admin"
        assert workflow.authenticate("new@quoteflow.test", "pw12345").id == user.id

    def test_duplicate_email(self, users):
        with pytest.raises(FormValidationError):
            workflow.create_user(users["admin"], self._form(email="sales@quoteflow.test"))

    def test_non_admin_cannot_create(self, users):
        with pytest.raises(PermissionDenied):
            workflow.create_user(users["sales"], self._form())

    def test_self_language_and_password(self, users):
        updated = workflow.update_user(users["sales"], "sales",
                                       {"language": "zh", "password": "changed1"})
        assert updated.language == "zh"
        assert not updated.must_change_password
        assert workflow.authenticate("sales@quoteflow.test", "changed1") is not None

    def test_self_cannot_change_role(self, users):
        with pytest.raises(PermissionDenied):
            workflow.update_user(users["sales"], "sales", {"role": "Admin"})

    def test_cannot_edit_others(self, users):
        with pytest.raises(PermissionDenied):
            workflow.update_user(users["sales"], "buyer1", {"language": "en"})

    def test_admin_reset_forces_change(self, users):
        updated = workflow.update_user(users["admin"], "buyer1", {"password": "reset99"})
        assert updated.must_change_password
        assert updated.updated_by == "admin"

    def test_admin_cannot_deactivate_self(self, users):
        with pytest.raises(WorkflowError):
            workflow.update_user(users["admin"], "admin", {"status": "Inactive"})

    def test_missing_user(self, users):
        with pytest.raises(NotFound):
            workflow.update_user(users["admin"], "ghost", {"language": "en"})


class TestAuthenticate:

    def test_valid(self, users):
        user = workflow.authenticate("SALES@quoteflow.test", TEST_PASSWORD)
        assert user.id == "sales"
        assert db.get_user("sales").last_login_time is not None

    def test_wrong_password(self, users):
        assert workflow.authenticate("sales@quoteflow.test", "wrong") is None

    def test_unknown_email(self, users):
        assert workflow.authenticate("who@quoteflow.test", TEST_PASSWORD) is None

    def test_inactive(self, users):
        db.update_user("buyer2", status=UserStatus.INACTIVE.value)
        assert workflow.authenticate("buyer2@quoteflow.test", TEST_PASSWORD) is None


class TestBootstrapAdmin:

    def test_creates_when_empty(self):
        user = workflow.bootstrap_admin("Boss@Example.com", "pw12345")
        assert user.email == "boss@example.com"
        assert user.role == "Admin"

    def test_noop_when_users_exist(self, users):
        assert workflow.bootstrap_admin("boss@example.com", "pw12345") is None

    def test_noop_without_credentials(self):
        assert workflow.bootstrap_admin("", "") is None
