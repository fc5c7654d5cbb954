"""
Tests for PennyPath models

Test strategy:
1. Unit tests for individual models (validation, derived values)
2. Ledger state and batch behaviour
3. No storage or logging involved
"""

import pytest
from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

from pennypath.models import (
    Account,
    AccountDeletionImpact,
    AccountType,
    ArrangementType,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    BNPLPlan,
    CascadeResult,
    Event,
    FlexibleArrangement,
    LedgerBatch,
    LedgerState,
    Transaction,
    Transfer,
    TransferLegs,
)

from tests.conftest import USER_ID, make_account, make_transaction, make_transfer


class TestAccountModels:
    """Tests for accounts and account types."""

    def test_account_strips_whitespace(self):
        """Test that whitespace is stripped from the account name."""
        account = make_account("a1", "  Current  ")
        assert account.name == "Current"

    def test_account_requires_name(self):
        with pytest.raises(ValueError):
            make_account("a1", "")

    def test_available_credit(self):
        """Credit card balances are negative, so limit + balance is what's left."""
        card = make_account(
            "cc", "Card", "-250.00",
            type=AccountType.CREDIT,
            credit_limit=Decimal("1000.00"),
        )
        assert card.available_credit == Decimal("750.00")
        assert card.credit_utilization == Decimal("0.25")

    def test_available_credit_only_for_credit_cards(self):
        account = make_account("a1", "Current", "10.00", credit_limit=Decimal("100.00"))
        assert account.available_credit is None

    def test_loan_progress(self):
        loan = make_account(
            "loan", "Car Loan", "-7500.00",
            type=AccountType.LOAN,
            original_loan_amount=Decimal("10000.00"),
        )
        assert loan.loan_progress == Decimal("0.25")

    def test_account_type_capabilities(self):
        assert AccountType.BNPL.supports_scheduled_payments
        assert AccountType.DEBT_COLLECTION.supports_flexible_payments
        assert not AccountType.CREDIT.can_have_positive_balance
        assert AccountType.FAMILY_FRIEND.can_have_positive_balance
        assert AccountType.PREPAID.is_prepaid_type
        assert AccountType.CURRENT.display_name == "Current Account"


class TestTransferModels:
    """Tests for transfers and their generated legs."""

    def test_transfer_rejects_same_account(self):
        """Test that a transfer cannot move money to its own source."""
        with pytest.raises(ValueError, match="source and destination must differ"):
            make_transfer("tr", "a1", "a1", "10.00")

    def test_transfer_rejects_non_positive_amount(self):
        with pytest.raises(ValueError):
            make_transfer("tr", "a1", "a2", "0.00")
        with pytest.raises(ValueError):
            make_transfer("tr", "a1", "a2", "-5.00")

    def test_involves_and_counterparty(self):
        transfer = make_transfer("tr", "a1", "a2", "10.00")
        assert transfer.involves("a1")
        assert transfer.involves("a2")
        assert not transfer.involves("a3")
        assert transfer.counterparty_of("a1") == "a2"
        assert transfer.counterparty_of("a2") == "a1"

    def test_generate_transactions(self):
        """Generated legs are linked to the transfer and mirror its amount."""
        transfer = make_transfer("tr", "a1", "a2", "25.00")
        source_leg, destination_leg = transfer.generate_transactions()

        assert source_leg.id == "tr-from"
        assert source_leg.account_id == "a1"
        assert source_leg.amount == Decimal("-25.00")
        assert destination_leg.id == "tr-to"
        assert destination_leg.account_id == "a2"
        assert destination_leg.amount == Decimal("25.00")
        assert source_leg.transfer_id == destination_leg.transfer_id == "tr"
        assert source_leg.date == destination_leg.date == transfer.date

    def test_transaction_requires_account(self):
        with pytest.raises(ValueError):
            Transaction(user_id=USER_ID, account_id="", amount=Decimal("1.00"))


class TestPlanModels:
    """Tests for BNPL plans, flexible arrangements and events."""

    def test_bnpl_installment_amount(self):
        plan = BNPLPlan(
            user_id=USER_ID,
            account_id="bnpl",
            provider_name="Klarna",
            total_amount=Decimal("100.00"),
            number_of_installments=3,
        )
        assert plan.installment_amount == Decimal("33.33")

    def test_flexible_arrangement_remaining_balance(self):
        arrangement = FlexibleArrangement(
            user_id=USER_ID,
            account_id="mum",
            type=ArrangementType.FAMILY_FRIEND_LOAN,
            original_amount=Decimal("-500.00"),
        )
        transactions = [
            make_transaction("p1", "mum", "50.00"),
            make_transaction("p2", "mum", "25.00"),
            make_transaction("p3", "mum", "100.00", is_scheduled=True),
            make_transaction("p4", "other", "10.00"),
        ]
        assert arrangement.total_paid(transactions) == Decimal("75.00")
        assert arrangement.remaining_balance(transactions) == Decimal("425.00")

    def test_event_date_validation(self):
        """Test that an event cannot end before it starts."""
        with pytest.raises(ValueError, match="end date cannot be before start date"):
            Event(
                user_id=USER_ID,
                name="Holiday",
                start_date=date(2024, 8, 10),
                end_date=date(2024, 8, 1),
            )


class TestLedgerState:
    """Tests for batches applied to ledger state."""

    def test_empty_batch(self):
        assert LedgerBatch().is_empty
        assert not LedgerBatch().delete("transactions", "t1").is_empty
        assert not LedgerBatch(accounts=[make_account("a1", "A")]).is_empty

    def test_unknown_collection_rejected(self):
        with pytest.raises(ValueError, match="Unknown collection"):
            LedgerBatch().delete("ledgers", "x")

    def test_apply_batch_deletes_then_upserts(self, golf_state):
        renamed = make_account("acc-golf", "Golf Bar", "47.50")
        batch = LedgerBatch(accounts=[renamed]).delete("transactions", "t1", "t3")

        golf_state.apply_batch(batch)

        assert [t.id for t in golf_state.transactions] == ["t2"]
        assert [a.name for a in golf_state.accounts] == ["Current Account", "Golf Bar"]
        assert golf_state.version == 0

    def test_copy_for_update_is_independent(self, golf_state):
        copy = golf_state.copy_for_update()
        copy.apply_batch(LedgerBatch().delete("accounts", "acc-current"))

        assert len(copy.accounts) == 1
        assert len(golf_state.accounts) == 2


class TestDeletionReports:
    """Tests for impact and cascade result models."""

    def _impact(self, **counts) -> AccountDeletionImpact:
        fields = dict(
            transaction_count=0,
            transfer_count=0,
            bnpl_plan_count=0,
            flexible_arrangement_count=0,
        )
        fields.update(counts)
        affected = fields.pop("affected_accounts", [])
        return AccountDeletionImpact(
            account=make_account("a1", "Current"),
            affected_accounts=affected,
            total_impacted_items=sum(fields.values()),
            **fields,
        )

    def test_impact_description_no_data(self):
        impact = self._impact()
        assert not impact.has_impact
        assert impact.impact_description == "No transaction data will be deleted."

    def test_impact_description_lists_counts(self):
        impact = self._impact(transaction_count=5, transfer_count=1, bnpl_plan_count=2)
        assert impact.impact_description == (
            "5 transactions, 1 transfer, and 2 BNPL plans will be permanently deleted."
        )

    def test_impact_description_affected_accounts(self):
        impact = self._impact(
            transfer_count=2,
            affected_accounts=[
                make_account("a2", "Savings"),
                make_account("a3", "Golf Card"),
            ],
        )
        assert impact.has_impact
        assert impact.impact_description == (
            "2 transfers will be permanently deleted.\n\n"
            "This will also affect 2 other accounts: Savings and Golf Card. "
            "Transfer transactions in these accounts will be removed."
        )

    def test_transfer_legs(self):
        legs = TransferLegs(transfer_id="tr", source_leg_id="t1")
        assert legs.matched_ids == ["t1"]
        assert not legs.is_complete

    def test_cascade_result_to_batch(self):
        result = CascadeResult(
            account_id="a1",
            account_deleted=True,
            linked_transaction_ids=["t1", "t2"],
            transfer_ids=["tr"],
            transaction_ids=["t4"],
        )
        batch = result.to_batch()

        assert result.total_removed == 5
        assert batch.deletes["transactions"] == ["t1", "t2", "t4"]
        assert batch.deletes["transfers"] == ["tr"]
        assert batch.deletes["accounts"] == ["a1"]


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.ACCOUNT_ADDED,
            description="Account added",
        )
        assert event.event_type == AuditEventType.ACCOUNT_ADDED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.ACCOUNT_DELETED,
            entity_type="account",
            entity_id="a1",
            correlation_id=correlation_id,
            description="Account deleted",
        )
        log_dict = event.to_log_dict()

        assert log_dict["event_type"] == "account_deleted"
        assert log_dict["entity_id"] == "a1"
        assert log_dict["correlation_id"] == str(correlation_id)

    def test_audit_event_builder_transfer_legs_unmatched(self):
        """Test AuditEventBuilder.transfer_legs_unmatched."""
        correlation_id = uuid4()
        event = AuditEventBuilder.transfer_legs_unmatched(
            transfer_id="tr",
            source_leg_id="t1",
            destination_leg_id=None,
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.TRANSFER_LEGS_UNMATCHED
        assert event.severity == AuditSeverity.WARNING
        assert event.entity_type == "transfer"
        assert event.entity_id == "tr"
        assert event.correlation_id == correlation_id

    def test_audit_event_builder_account_update_ignored(self):
        event = AuditEventBuilder.account_update_ignored("ghost")
        assert event.severity == AuditSeverity.WARNING
        assert event.entity_id == "ghost"
