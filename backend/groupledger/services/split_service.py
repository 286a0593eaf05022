"""
Split calculator: turns an expense amount and a split input into per-member shares.

Everything here is pure computation. The resulting shares are validated
again by ``LedgerEntry.check_invariants`` before they are stored.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Sequence
from groupledger.core.exceptions import ValidationError
from groupledger.core.utils import CENT, MAX_MONEY, floor_money, to_money
from groupledger.schemas.expense import AmountSplitInput, EqualSplitInput, PercentageSplitInput

HALF_CENT = CENT / 2


class SplitLine:
    """A computed share of an expense for one member."""
    def __init__(
        self,
        member_id: int,
        name: str,
        email: str,
        amount: Decimal,
        percentage: Decimal = Decimal(0),
        is_paid: bool = False,
        paid_at: Optional[datetime] = None
    ):
        self.member_id = member_id
        self.name = name
        self.email = email
        self.amount = amount
        self.percentage = percentage
        self.is_paid = is_paid
        self.paid_at = paid_at


def compute_split(amount, split_input, members: Sequence) -> List[SplitLine]:
    """
    Compute the per-member split of an expense.

    Args:
        amount: Expense amount, must be positive
        split_input: One of EqualSplitInput, PercentageSplitInput, AmountSplitInput
        members: Active group members (objects with user_id, name, email) in
            membership order; Equal splits over all of them, other methods
            resolve their member ids against them

    Returns:
        Split lines in the order of the input (Equal: membership order)

    Raises:
        ValidationError: amount out of range, no participants, or malformed shares
    """
    amount = to_money(amount)
    if amount <= 0:
        raise ValidationError("Amount must be greater than 0")
    if amount > MAX_MONEY:
        raise ValidationError(f"Amount cannot exceed {MAX_MONEY}")

    if isinstance(split_input, EqualSplitInput):
        return _equal_split(amount, members)
    if isinstance(split_input, PercentageSplitInput):
        return _percentage_split(amount, split_input, members)
    if isinstance(split_input, AmountSplitInput):
        return _amount_split(split_input, members)
    raise ValidationError(f"Unsupported split input: {type(split_input).__name__}")


def mark_payer_paid(lines: List[SplitLine], payer_id: int, when: datetime) -> List[SplitLine]:
    """The payer's own share is paid the moment the expense is recorded."""
    for line in lines:
        line.is_paid = line.member_id == payer_id
        line.paid_at = when if line.is_paid else None
    return lines


def _equal_split(amount: Decimal, members: Sequence) -> List[SplitLine]:
    if not members:
        raise ValidationError("Group has no active members to split expense")

    count = len(members)
    per_person = floor_money(amount / count)
    percentage = to_money(Decimal(100) / count)
    lines = [
        SplitLine(m.user_id, m.name, m.email, per_person, percentage)
        for m in members
    ]
    _distribute_remainder(lines, amount - per_person * count)
    return lines


def _percentage_split(amount: Decimal, split_input: PercentageSplitInput, members: Sequence) -> List[SplitLine]:
    by_id = _resolve_members([s.member_id for s in split_input.shares], members)

    lines = []
    for share in split_input.shares:
        if share.percentage < 0:
            raise ValidationError("Percentage cannot be negative")
        member = by_id[share.member_id]
        lines.append(SplitLine(
            member.user_id,
            member.name,
            member.email,
            to_money(amount * share.percentage / 100),
            share.percentage
        ))

    # Per-row rounding is at most half a cent per line; only that drift is
    # folded back. A larger gap comes from the percentages themselves and is
    # left for the entry invariants to reject.
    drift = amount - sum((line.amount for line in lines), Decimal(0))
    if drift and abs(drift) <= HALF_CENT * len(lines):
        _absorb_drift(lines, drift)
    return lines


def _amount_split(split_input: AmountSplitInput, members: Sequence) -> List[SplitLine]:
    by_id = _resolve_members([s.member_id for s in split_input.shares], members)

    lines = []
    for share in split_input.shares:
        if share.amount < 0:
            raise ValidationError("Split amount cannot be negative")
        if share.amount != share.amount.quantize(CENT):
            raise ValidationError("Split amounts cannot be finer than a cent")
        member = by_id[share.member_id]
        lines.append(SplitLine(member.user_id, member.name, member.email, share.amount))
    return lines


def _resolve_members(member_ids: List[int], members: Sequence) -> dict:
    """Map requested member ids to group members, rejecting strangers and duplicates."""
    if not member_ids:
        raise ValidationError("Splits are required for this split method")
    if len(set(member_ids)) != len(member_ids):
        raise ValidationError("Each member can appear only once in a split")

    by_id = {m.user_id: m for m in members}
    unknown = [mid for mid in member_ids if mid not in by_id]
    if unknown:
        raise ValidationError(f"Users {unknown} are not members of this group")
    return by_id


def _absorb_drift(lines: List[SplitLine], drift: Decimal):
    """Add a rounding drift to the last line that can take it without going negative."""
    for line in reversed(lines):
        if line.amount + drift >= 0:
            line.amount += drift
            return


def _distribute_remainder(lines: List[SplitLine], remainder: Decimal):
    """Spread a whole-cent remainder one cent at a time, starting from the last line."""
    if not lines:
        return
    step = CENT if remainder > 0 else -CENT
    index = len(lines) - 1
    while remainder != 0:
        line = lines[index]
        if line.amount + step >= 0:
            line.amount += step
            remainder -= step
        index = (index - 1) % len(lines)
