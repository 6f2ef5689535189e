"""
Settlement calculator

Turns items, claims, fee totals and participants into what each participant
owes. Everything here is pure: no database access, no clock, and the same
inputs always produce the same cents.

Item subtotals are exact (Fraction) until the last step. Fee pools are
allocated in integer cents: each participant gets the floor of their
proportional share and the leftover cents go to a single remainder
recipient, so nothing is ever dropped or duplicated.
"""
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from fractions import Fraction
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence

from splits.money import (
    ZERO, as_fraction, compute_extra_fees_total, floor_cents, from_cents,
    round_half_up, sum_money, to_cents,
)


# Lightweight input rows. Model instances (ReceiptItem, Claim, Participant)
# carry the same attributes and can be passed in directly.

class ItemLine(NamedTuple):
    key: str
    quantity: int
    price: Optional[Decimal]


class ClaimLine(NamedTuple):
    item_key: str
    participant_key: str
    quantity: int


class ParticipantLine(NamedTuple):
    participant_key: str
    joined_at: object = None


@dataclass(frozen=True)
class SettlementTotals:
    item_subtotal: Decimal = ZERO
    tax_share: Decimal = ZERO
    gratuity_share: Decimal = ZERO
    other_share: Decimal = ZERO
    extra_fees_share: Decimal = ZERO
    rounding_adjustment: Decimal = ZERO
    total_due: Decimal = ZERO


def _join_order(participants: Sequence) -> Dict[str, tuple]:
    """Sort key that puts earlier joiners first and falls back to input order"""
    order = {}
    for index, participant in enumerate(participants):
        joined_at = getattr(participant, 'joined_at', None)
        order[participant.participant_key] = (joined_at is None, joined_at or 0, index)
    return order


def select_remainder_recipient(participants: Sequence,
                               subtotals: Dict[str, Fraction],
                               host_key: Optional[str] = None,
                               absorb_extra_cents: bool = False) -> Optional[str]:
    """
    Pick the one participant who receives leftover cents.

    The host takes them when they opted to absorb extra cents and are
    actually a participant. Otherwise the non-host with the largest item
    subtotal does (everyone is a candidate when only the host joined), ties
    going to whoever joined first.
    """
    if not participants:
        return None

    keys = [p.participant_key for p in participants]
    if absorb_extra_cents and host_key and host_key in keys:
        return host_key

    candidates = [key for key in keys if key != host_key] or keys
    order = _join_order(participants)
    return min(candidates, key=lambda key: (-subtotals.get(key, Fraction(0)), order[key]))


def distribute_even_cents(total_cents: int, participants: Sequence,
                          subtotals: Dict[str, Fraction], host_key: Optional[str],
                          absorb_extra_cents: bool) -> Dict[str, int]:
    keys = [p.participant_key for p in participants]
    if total_cents <= 0 or not keys:
        return {key: 0 for key in keys}

    base_share = total_cents // len(keys)
    result = {key: base_share for key in keys}
    remainder = total_cents - base_share * len(keys)
    if remainder > 0:
        recipient = select_remainder_recipient(participants, subtotals, host_key, absorb_extra_cents)
        result[recipient] += remainder
    return result


def distribute_proportional_cents(total_cents: int, participants: Sequence,
                                  subtotals: Dict[str, Fraction], host_key: Optional[str],
                                  absorb_extra_cents: bool) -> Dict[str, int]:
    """Floor of each participant's share by item subtotal, leftover to one recipient"""
    keys = [p.participant_key for p in participants]
    if total_cents <= 0 or not keys:
        return {key: 0 for key in keys}

    total_weight = sum((subtotals.get(key, Fraction(0)) for key in keys), Fraction(0))
    if total_weight <= 0:
        return distribute_even_cents(total_cents, participants, subtotals, host_key, absorb_extra_cents)

    result = {}
    for key in keys:
        result[key] = int(total_cents * subtotals.get(key, Fraction(0)) // total_weight)

    remainder = total_cents - sum(result.values())
    if remainder > 0:
        recipient = select_remainder_recipient(participants, subtotals, host_key, absorb_extra_cents)
        result[recipient] += remainder
    return result


def round_subtotals(participants: Sequence, subtotals: Dict[str, Fraction]) -> Dict[str, int]:
    """
    Round exact subtotals to cents without losing any.

    Every participant gets the floor of their subtotal; the cents needed to
    reach the rounded grand total go to the largest fractional remainders.
    """
    keys = [p.participant_key for p in participants]
    floors = {key: floor_cents(subtotals.get(key, Fraction(0))) for key in keys}
    grand_total = round_half_up(sum((subtotals.get(key, Fraction(0)) for key in keys), Fraction(0)) * 100)
    leftover = grand_total - sum(floors.values())
    if leftover <= 0 or not keys:
        return floors

    order = _join_order(participants)

    def fractional_part(key):
        return subtotals.get(key, Fraction(0)) * 100 - floors[key]

    ranked = sorted(keys, key=lambda key: (-fractional_part(key), order[key]))
    for index in range(leftover):
        floors[ranked[index % len(ranked)]] += 1
    return floors


def compute_settlement(items: Iterable,
                       claims: Iterable,
                       participants: Iterable,
                       subtotal_basis: Optional[Decimal],
                       tax: Optional[Decimal],
                       gratuity: Optional[Decimal],
                       extra_fees_total: Optional[Decimal],
                       host_key: Optional[str] = None,
                       absorb_extra_cents: bool = False) -> Dict[str, SettlementTotals]:
    """
    Compute every participant's share of the receipt.

    Args:
        items: rows with ``key``, ``quantity`` and ``price`` (total for the full quantity)
        claims: rows with ``item_key``, ``participant_key`` and ``quantity``
        participants: rows with ``participant_key`` and ``joined_at``
        subtotal_basis: denominator for proportional fee splits, normally the
            declared receipt subtotal
        tax, gratuity: fee breakdown; both None means there is no breakdown
        extra_fees_total: everything on the receipt that isn't an item
        host_key: the host's participant key
        absorb_extra_cents: host wants leftover cents

    Returns:
        Dict mapping participant key to SettlementTotals. Unclaimed item
        quantities are not attributed to anyone.
    """
    participants = list(participants)
    if not participants:
        return {}

    items = list(items)
    keys = [p.participant_key for p in participants]
    unit_prices = {item.key: as_fraction(item.price) / max(1, item.quantity) for item in items}

    subtotals: Dict[str, Fraction] = {key: Fraction(0) for key in keys}
    claimed_by_item: Dict[str, int] = defaultdict(int)
    for claim in claims:
        if claim.participant_key not in subtotals:
            continue
        claimed_by_item[claim.item_key] += claim.quantity
        subtotals[claim.participant_key] += claim.quantity * unit_prices.get(claim.item_key, Fraction(0))

    total_claimed = sum(subtotals.values(), Fraction(0))
    basis = as_fraction(subtotal_basis)
    if basis > 0:
        proportional_base = basis
    elif total_claimed > 0:
        proportional_base = total_claimed
    else:
        proportional_base = Fraction(0)

    fully_claimed = bool(items) and all(claimed_by_item[item.key] >= item.quantity for item in items)
    if proportional_base > 0:
        claim_ratio = Fraction(1) if fully_claimed else min(Fraction(1), total_claimed / proportional_base)
    else:
        claim_ratio = Fraction(0)

    has_breakdown = tax is not None or gratuity is not None
    tax_cents = max(0, to_cents(tax))
    gratuity_cents = max(0, to_cents(gratuity))
    extra_cents = max(0, to_cents(extra_fees_total))
    other_cents = max(0, extra_cents - tax_cents - gratuity_cents)
    zero = {key: 0 for key in keys}
    allocation = (host_key, absorb_extra_cents)

    if proportional_base > 0 and has_breakdown:
        per_tax = distribute_proportional_cents(
            round_half_up(tax_cents * claim_ratio), participants, subtotals, *allocation)
        per_gratuity = distribute_proportional_cents(
            round_half_up(gratuity_cents * claim_ratio), participants, subtotals, *allocation)
        per_other = distribute_proportional_cents(
            round_half_up(other_cents * claim_ratio), participants, subtotals, *allocation)
    elif proportional_base > 0:
        per_tax, per_gratuity = zero, zero
        per_other = distribute_proportional_cents(
            round_half_up(extra_cents * claim_ratio), participants, subtotals, *allocation)
    elif has_breakdown:
        per_tax = distribute_even_cents(tax_cents, participants, subtotals, *allocation)
        per_gratuity = distribute_even_cents(gratuity_cents, participants, subtotals, *allocation)
        per_other = distribute_even_cents(other_cents, participants, subtotals, *allocation)
    else:
        per_tax, per_gratuity = zero, zero
        per_other = distribute_even_cents(extra_cents, participants, subtotals, *allocation)

    distributed = sum(per_tax[key] + per_gratuity[key] + per_other[key] for key in keys)
    base_extra_share = distributed // len(keys)
    rounded_subtotals = round_subtotals(participants, subtotals)

    totals = {}
    for key in keys:
        extra_share = per_tax[key] + per_gratuity[key] + per_other[key]
        totals[key] = SettlementTotals(
            item_subtotal=from_cents(rounded_subtotals[key]),
            tax_share=from_cents(per_tax[key]),
            gratuity_share=from_cents(per_gratuity[key]),
            other_share=from_cents(per_other[key]),
            extra_fees_share=from_cents(extra_share),
            rounding_adjustment=from_cents(extra_share - base_extra_share),
            total_due=from_cents(rounded_subtotals[key] + extra_share),
        )
    return totals


def receipt_subtotal_basis(receipt, items: Sequence) -> Decimal:
    """Declared subtotal when there is one, otherwise the sum of item prices"""
    if receipt.subtotal is not None and receipt.subtotal > 0:
        return receipt.subtotal
    return sum_money(item.price for item in items)


def receipt_extra_fees_total(receipt, items: Sequence) -> Decimal:
    if receipt.extra_fees_total is not None:
        return receipt.extra_fees_total
    return compute_extra_fees_total(
        receipt.receipt_total,
        [item.price for item in items],
        receipt.tax,
        receipt.gratuity,
    )


def compute_receipt_settlement(receipt, items: Sequence, participants: Sequence,
                               claims: Sequence, absorb_extra_cents: bool = False) -> Dict[str, SettlementTotals]:
    """compute_settlement with the basis and fee totals taken from a Receipt"""
    items = list(items)
    return compute_settlement(
        items=items,
        claims=claims,
        participants=participants,
        subtotal_basis=receipt_subtotal_basis(receipt, items),
        tax=receipt.tax,
        gratuity=receipt.gratuity,
        extra_fees_total=receipt_extra_fees_total(receipt, items),
        host_key=receipt.host_participant_key,
        absorb_extra_cents=absorb_extra_cents,
    )


def claimed_quantities(claims: Iterable) -> Dict[str, int]:
    claimed: Dict[str, int] = defaultdict(int)
    for claim in claims:
        claimed[claim.item_key] += claim.quantity
    return dict(claimed)


def unclaimed_items(items: Iterable, claims: Iterable) -> List:
    """Items with any quantity left to claim"""
    claimed = claimed_quantities(claims)
    return [item for item in items if claimed.get(item.key, 0) < item.quantity]
