"""
Tests for recording, updating and approving group expenses.
"""
import pytest
from datetime import date
from decimal import Decimal
from groupledger.core.exceptions import Conflict, Forbidden, NotFound, ValidationError
from groupledger.models.expense import LedgerEntry, SplitMethod
from groupledger.models.group import MemberRole
from groupledger.schemas.expense import (
    AmountSplitInput, EqualSplitInput, ExpenseCreate, ExpenseUpdate, PercentageSplitInput
)
from groupledger.services import expense_service
from groupledger.services.balance_service import get_balances

EQUAL = EqualSplitInput(method="Equal")


def make_expense(amount="100.00", **kwargs):
    fields = {"name": "Groceries", "amount": Decimal(amount), "category": "Food", "split": EQUAL}
    fields.update(kwargs)
    return ExpenseCreate(**fields)


def test_record_equal_expense(db, group, alice, bob, carol):
    entry = expense_service.record_expense(group.id, alice.id, make_expense(), db)

    assert entry.amount == Decimal("100.00")
    assert entry.currency == group.currency
    assert entry.split_method == SplitMethod.EQUAL
    assert entry.payer_id == alice.id
    assert entry.date == date.today()
    assert [(s.member_id, s.amount) for s in entry.splits] == [
        (alice.id, Decimal("33.33")),
        (bob.id, Decimal("33.33")),
        (carol.id, Decimal("33.34")),
    ]
    assert [s.is_paid for s in entry.splits] == [True, False, False]
    assert entry.splits[0].paid_at is not None
    assert not entry.requires_approval


def test_record_expense_for_another_payer(db, group, alice, bob):
    entry = expense_service.record_expense(group.id, alice.id, make_expense(payer_id=bob.id), db)
    assert entry.payer_id == bob.id
    assert entry.payer_name == "Bob"
    assert [s.is_paid for s in entry.splits] == [False, True, False]


def test_payer_must_be_member(db, group, alice, outsider):
    with pytest.raises(ValidationError):
        expense_service.record_expense(group.id, alice.id, make_expense(payer_id=outsider.id), db)


def test_record_percentage_expense(db, group, alice, bob, carol):
    split = PercentageSplitInput(method="Percentage", shares=[
        {"member_id": alice.id, "percentage": "50"},
        {"member_id": bob.id, "percentage": "25"},
        {"member_id": carol.id, "percentage": "25"},
    ])
    entry = expense_service.record_expense(group.id, alice.id, make_expense("60.00", split=split), db)
    assert [s.amount for s in entry.splits] == [Decimal("30.00"), Decimal("15.00"), Decimal("15.00")]
    assert entry.split_method == SplitMethod.PERCENTAGE


def test_percentages_must_sum_to_hundred(db, group, alice, bob):
    split = PercentageSplitInput(method="Percentage", shares=[
        {"member_id": alice.id, "percentage": "50"},
        {"member_id": bob.id, "percentage": "40"},
    ])
    with pytest.raises(ValidationError):
        expense_service.record_expense(group.id, alice.id, make_expense("60.00", split=split), db)
    assert db.query(LedgerEntry).count() == 0


def test_percentage_gap_is_rejected(db, group, alice, bob):
    split = PercentageSplitInput(method="Percentage", shares=[
        {"member_id": alice.id, "percentage": "50"},
        {"member_id": bob.id, "percentage": "49.9"},
    ])
    with pytest.raises(ValidationError):
        expense_service.record_expense(group.id, alice.id, make_expense("1000.00", split=split), db)
    assert db.query(LedgerEntry).count() == 0


def test_exact_split_must_match_amount(db, group, alice, bob):
    split = AmountSplitInput(method="Exact", shares=[
        {"member_id": alice.id, "amount": "40.00"},
        {"member_id": bob.id, "amount": "40.00"},
    ])
    with pytest.raises(ValidationError):
        expense_service.record_expense(group.id, alice.id, make_expense("100.00", split=split), db)
    assert db.query(LedgerEntry).count() == 0


def test_exact_split_within_a_cent_is_accepted(db, group, alice, bob):
    split = AmountSplitInput(method="Custom", shares=[
        {"member_id": alice.id, "amount": "50.00"},
        {"member_id": bob.id, "amount": "49.99"},
    ])
    entry = expense_service.record_expense(group.id, alice.id, make_expense("100.00", split=split), db)
    assert entry.split_method == SplitMethod.CUSTOM


def test_default_split_method_needs_shares(db, group, alice):
    group.default_split_method = SplitMethod.EXACT
    db.commit()
    with pytest.raises(ValidationError):
        expense_service.record_expense(group.id, alice.id, make_expense(split=None), db)


def test_default_equal_split(db, group, alice):
    entry = expense_service.record_expense(group.id, alice.id, make_expense(split=None), db)
    assert entry.split_method == SplitMethod.EQUAL
    assert len(entry.splits) == 3


def test_non_member_cannot_record(db, group, outsider):
    with pytest.raises(Forbidden):
        expense_service.record_expense(group.id, outsider.id, make_expense(), db)


def test_unknown_group(db, alice):
    with pytest.raises(NotFound):
        expense_service.record_expense("nosuchgroup1", alice.id, make_expense(), db)


def test_members_cannot_record_when_restricted(db, group, alice, bob):
    group.allow_member_add_expense = False
    db.commit()

    with pytest.raises(Forbidden):
        expense_service.record_expense(group.id, bob.id, make_expense(), db)
    assert expense_service.record_expense(group.id, alice.id, make_expense(), db)


def test_approval_gate_flags_member_expenses(db, group, alice, bob, carol):
    group.require_approval_for_expense = True
    group.get_member(bob.id).role = MemberRole.ADMIN
    db.commit()

    by_owner = expense_service.record_expense(group.id, alice.id, make_expense(), db)
    by_admin = expense_service.record_expense(group.id, bob.id, make_expense(), db)
    by_member = expense_service.record_expense(group.id, carol.id, make_expense(), db)
    assert not by_owner.requires_approval
    assert not by_admin.requires_approval
    assert by_member.requires_approval


def test_unapproved_expense_still_counts(db, group, alice, carol):
    group.require_approval_for_expense = True
    db.commit()

    entry = expense_service.record_expense(group.id, carol.id, make_expense("30.00", payer_id=carol.id), db)
    assert entry.requires_approval

    assert get_balances(group, db)[carol.id].balance == Decimal("-20.00")


def test_approve_is_idempotent(db, group, alice, carol):
    group.require_approval_for_expense = True
    db.commit()
    entry = expense_service.record_expense(group.id, carol.id, make_expense(), db)

    expense_service.approve_expense(entry.id, alice.id, db)
    approved = expense_service.approve_expense(entry.id, alice.id, db)
    assert approved.approved_by == [alice.id]


def test_only_admins_approve(db, group, alice, bob, carol):
    entry = expense_service.record_expense(group.id, carol.id, make_expense(), db)
    with pytest.raises(Forbidden):
        expense_service.approve_expense(entry.id, bob.id, db)


def test_update_amount_without_splits_is_rejected(db, group, alice):
    entry = expense_service.record_expense(group.id, alice.id, make_expense(), db)

    with pytest.raises(ValidationError):
        expense_service.update_expense(entry.id, alice.id, ExpenseUpdate(amount=Decimal("120.00")), db)

    stored = db.get(LedgerEntry, entry.id)
    assert stored.amount == Decimal("100.00")
    assert sum(s.amount for s in stored.splits) == Decimal("100.00")


def test_update_with_resupplied_splits(db, group, alice, bob):
    entry = expense_service.record_expense(group.id, alice.id, make_expense(), db)
    split = AmountSplitInput(method="Exact", shares=[
        {"member_id": alice.id, "amount": "20.00"},
        {"member_id": bob.id, "amount": "100.00"},
    ])

    updated = expense_service.update_expense(
        entry.id, alice.id, ExpenseUpdate(amount=Decimal("120.00"), split=split, name="Weekly shop"), db
    )
    assert updated.amount == Decimal("120.00")
    assert updated.name == "Weekly shop"
    assert updated.split_method == SplitMethod.EXACT
    assert [(s.member_id, s.amount) for s in updated.splits] == [(alice.id, Decimal("20.00")), (bob.id, Decimal("100.00"))]


def test_payer_may_only_toggle_settled(db, group, alice, bob):
    entry = expense_service.record_expense(group.id, alice.id, make_expense(payer_id=bob.id), db)

    with pytest.raises(Forbidden):
        expense_service.update_expense(entry.id, bob.id, ExpenseUpdate(name="Mine now"), db)

    updated = expense_service.update_expense(entry.id, bob.id, ExpenseUpdate(is_settled=True), db)
    assert updated.is_settled
    assert updated.settled_at is not None


def test_delete_is_soft(db, group, alice, bob):
    entry = expense_service.record_expense(group.id, alice.id, make_expense(), db)

    with pytest.raises(Forbidden):
        expense_service.delete_expense(entry.id, bob.id, db)

    expense_service.delete_expense(entry.id, alice.id, db)
    assert db.get(LedgerEntry, entry.id).is_active is False
    with pytest.raises(NotFound):
        expense_service.get_expense(entry.id, db)


def test_list_expenses_filters(db, group, alice):
    old = expense_service.record_expense(group.id, alice.id, make_expense(date=date(2024, 1, 5)), db)
    new = expense_service.record_expense(group.id, alice.id, make_expense(date=date(2024, 3, 5)), db)
    new.is_settled = True
    db.commit()

    assert [e.id for e in expense_service.list_expenses(group.id, db)] == [new.id, old.id]
    assert [e.id for e in expense_service.list_expenses(group.id, db, is_settled=False)] == [old.id]
    assert [e.id for e in expense_service.list_expenses(group.id, db, date_from=date(2024, 2, 1))] == [new.id]
    with pytest.raises(ValidationError):
        expense_service.list_expenses(group.id, db, date_from=date(2024, 3, 1), date_to=date(2024, 1, 1))


def test_id_collision_is_retried(db, group, alice, monkeypatch):
    first = expense_service.record_expense(group.id, alice.id, make_expense(), db)
    candidates = iter([first.id, "RetryId00001"])
    monkeypatch.setattr("groupledger.db.session.generate_id", lambda: next(candidates))

    second = expense_service.record_expense(group.id, alice.id, make_expense(), db)
    assert second.id == "RetryId00001"


def test_insert_collision_is_retried(db, group, alice, monkeypatch):
    """A collision the probe missed surfaces from the primary key and is retried."""
    first = expense_service.record_expense(group.id, alice.id, make_expense(), db)
    first_id = first.id
    db.expunge_all()
    candidates = iter([first_id, "RetryId00002"])
    monkeypatch.setattr("groupledger.db.session.generate_id", lambda: next(candidates))
    monkeypatch.setattr(db, "get", lambda *args, **kwargs: None)

    second = expense_service.record_expense(group.id, alice.id, make_expense(), db)
    assert second.id == "RetryId00002"
    assert db.query(LedgerEntry).count() == 2


def test_id_collisions_exhausted_raise_conflict(db, group, alice, monkeypatch):
    first = expense_service.record_expense(group.id, alice.id, make_expense(), db)
    monkeypatch.setattr("groupledger.db.session.generate_id", lambda: first.id)

    with pytest.raises(Conflict):
        expense_service.record_expense(group.id, alice.id, make_expense(), db)
    assert db.query(LedgerEntry).count() == 1
