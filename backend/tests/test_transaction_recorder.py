"""Tests for the transaction recorder — complete action history, no zero commissions."""

from decimal import Decimal

import pytest

from rentflow.core.exceptions import NotFoundError
from rentflow.models.commission import (
    AgentCommission, AgentTransaction, CommissionStatus, CommissionType,
)
from rentflow.models.tenant import Tenant
from rentflow.services.transaction_recorder import TransactionRecorder

from conftest import action


@pytest.fixture
def payment_rule(make_rule):
    return make_rule("record_payment", CommissionType.PERCENTAGE, "5", "500", "50000")


class TestRecordAction:
    def test_percentage_commission_within_clamp(self, db, agent, payment_rule):
        result = TransactionRecorder(db).record_action(action(agent.id, "record_payment", Decimal("20000")))

        assert result.commission_amount == Decimal("1000.00")
        assert result.commission.amount == Decimal("1000.00")
        assert result.commission.status == CommissionStatus.PENDING
        assert result.commission.transaction_id == result.transaction.id
        assert result.commission.commission_rule_id == payment_rule.id
        assert result.commission.agent_id == agent.id
        assert result.commission.paid_at is None

    def test_percentage_commission_raised_to_min(self, db, agent, payment_rule):
        result = TransactionRecorder(db).record_action(action(agent.id, "record_payment", Decimal("5000")))
        assert result.commission.amount == Decimal("500.00")

    def test_transaction_fields_persisted(self, db, agent, payment_rule):
        tenant = Tenant(first_name="Jean", last_name="Uwase", email="jean@example.test")
        db.add(tenant)
        db.commit()

        data = action(
            agent.id,
            "record_payment",
            Decimal("20000"),
            target_tenant_id=tenant.id,
            related_entity_type="payment",
            related_entity_id="pay-77",
            description="March rent",
            metadata={"method": "mobile_money", "months": ["2026-03"]},
        )
        result = TransactionRecorder(db).record_action(data)

        stored = db.query(AgentTransaction).filter(AgentTransaction.id == result.transaction.id).one()
        assert stored.agent_id == agent.id
        assert stored.target_tenant_id == tenant.id
        assert stored.target_tenant.first_name == "Jean"
        assert stored.related_entity_type == "payment"
        assert stored.related_entity_id == "pay-77"
        assert stored.description == "March rent"
        assert stored.metadata_ == {"method": "mobile_money", "months": ["2026-03"]}
        assert stored.transaction_amount == Decimal("20000.00")
        assert stored.commission.id == result.commission.id

    def test_no_rule_records_transaction_only(self, db, agent):
        result = TransactionRecorder(db).record_action(action(agent.id, "update_tenant"))

        assert result.commission is None
        assert result.commission_amount == Decimal("0")
        assert db.query(AgentTransaction).count() == 1
        assert db.query(AgentCommission).count() == 0

    def test_unknown_action_type_is_not_an_error(self, db, agent):
        result = TransactionRecorder(db).record_action(action(agent.id, "water_the_plants"))
        assert result.transaction.id is not None
        assert result.commission is None

    def test_zero_result_creates_no_commission(self, db, agent, make_rule):
        # A percentage rule with no amount computes zero, and min is not applied
        make_rule("add_tenant", CommissionType.PERCENTAGE, "5", min_amount="500")
        result = TransactionRecorder(db).record_action(action(agent.id, "add_tenant"))

        assert result.commission is None
        assert result.commission_amount == Decimal("0")
        assert db.query(AgentTransaction).count() == 1
        assert db.query(AgentCommission).count() == 0

    def test_inactive_rule_is_ignored(self, db, agent, make_rule):
        make_rule("onboard_tenant", CommissionType.FIXED, "5000", is_active=False)
        result = TransactionRecorder(db).record_action(action(agent.id, "onboard_tenant"))
        assert result.commission is None

    def test_fixed_rule(self, db, agent, make_rule):
        make_rule("onboard_tenant", CommissionType.FIXED, "5000")
        result = TransactionRecorder(db).record_action(action(agent.id, "onboard_tenant", Decimal("99")))
        assert result.commission.amount == Decimal("5000.00")

    def test_rule_is_reread_on_every_call(self, db, agent, make_rule):
        recorder = TransactionRecorder(db)
        assert recorder.record_action(action(agent.id, "add_property")).commission is None

        make_rule("add_property", CommissionType.FIXED, "2000")
        assert recorder.record_action(action(agent.id, "add_property")).commission_amount == Decimal("2000.00")

    def test_failed_commission_write_keeps_transaction(self, db, agent, payment_rule, monkeypatch):
        recorder = TransactionRecorder(db)
        original_commit = db.commit
        calls = {"n": 0}

        def flaky_commit():
            calls["n"] += 1
            if calls["n"] == 2:
                raise RuntimeError("connection lost")
            return original_commit()

        monkeypatch.setattr(db, "commit", flaky_commit)
        with pytest.raises(RuntimeError):
            recorder.record_action(action(agent.id, "record_payment", Decimal("20000")))
        monkeypatch.undo()

        assert db.query(AgentTransaction).count() == 1
        assert db.query(AgentCommission).count() == 0


class TestHistory:
    def test_list_agent_transactions_paginates_newest_first(self, db, agent, agent2, payment_rule):
        recorder = TransactionRecorder(db)
        for amount in ("10000", "20000", "30000"):
            recorder.record_action(action(agent.id, "record_payment", Decimal(amount)))
        recorder.record_action(action(agent2.id, "record_payment", Decimal("40000")))

        first = recorder.list_agent_transactions(agent.id, page=1, limit=2)
        assert first["pagination"] == {"total": 3, "page": 1, "pages": 2}
        amounts = [t.transaction_amount for t in first["transactions"]]
        assert amounts == [Decimal("30000.00"), Decimal("20000.00")]
        assert first["transactions"][0].commission.amount == Decimal("1500.00")

        second = recorder.list_agent_transactions(agent.id, page=2, limit=2)
        assert [t.transaction_amount for t in second["transactions"]] == [Decimal("10000.00")]

    def test_history_carries_targets(self, db, agent, admin):
        tenant = Tenant(first_name="Jean", last_name="Uwase", email="jean@example.test")
        db.add(tenant)
        db.commit()

        recorder = TransactionRecorder(db)
        recorder.record_action(action(agent.id, "onboard_tenant", target_tenant_id=tenant.id))
        recorder.record_action(action(agent.id, "add_property", target_user_type="owner", target_user_id=admin.id))

        owner_action, tenant_action = recorder.list_agent_transactions(agent.id)["transactions"]
        assert owner_action.target_user.email == admin.email
        assert owner_action.target_tenant is None
        assert tenant_action.target_tenant.last_name == "Uwase"
        assert recorder.recent_transactions(agent.id)[1].target_tenant.id == tenant.id

    def test_limit_is_capped(self, db, agent):
        result = TransactionRecorder(db).list_agent_transactions(agent.id, page=1, limit=10_000)
        assert result["pagination"] == {"total": 0, "page": 1, "pages": 0}

    def test_recent_transactions(self, db, agent):
        recorder = TransactionRecorder(db)
        for _ in range(7):
            recorder.record_action(action(agent.id, "update_property", target_user_type="owner"))
        assert len(recorder.recent_transactions(agent.id)) == 5

    def test_get_transaction_missing(self, db):
        with pytest.raises(NotFoundError):
            TransactionRecorder(db).get_transaction(123)
