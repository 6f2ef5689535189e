"""
Tests for the pure settlement math: proportional fee splits, remainder
cents and conservation of every cent on the receipt.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from fractions import Fraction

from django.test import SimpleTestCase

from splits.services.settlement_calculator import (
    ClaimLine, ItemLine, ParticipantLine, compute_settlement, distribute_proportional_cents,
    round_subtotals, select_remainder_recipient, unclaimed_items,
)

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def people(*keys):
    return [ParticipantLine(key, T0 + timedelta(minutes=index)) for index, key in enumerate(keys)]


class ComputeSettlementTests(SimpleTestCase):
    def test_tax_remainder_goes_to_one_participant(self):
        items = [ItemLine('a', 1, Decimal('10.00')), ItemLine('b', 1, Decimal('10.00')),
                 ItemLine('c', 1, Decimal('10.00'))]
        claims = [ClaimLine('a', 'p1', 1), ClaimLine('b', 'p2', 1), ClaimLine('c', 'p3', 1)]

        totals = compute_settlement(
            items, claims, people('p1', 'p2', 'p3'),
            subtotal_basis=Decimal('30.00'), tax=Decimal('1.00'), gratuity=None,
            extra_fees_total=Decimal('1.00'),
        )

        shares = [totals[key].tax_share for key in ('p1', 'p2', 'p3')]
        self.assertEqual(shares, [Decimal('0.34'), Decimal('0.33'), Decimal('0.33')])
        self.assertEqual(sum(shares), Decimal('1.00'))
        self.assertEqual(totals['p1'].total_due, Decimal('10.34'))
        self.assertEqual(totals['p1'].rounding_adjustment, Decimal('0.01'))
        self.assertEqual(totals['p2'].rounding_adjustment, Decimal('0.00'))

    def test_remainder_skips_host_unless_absorbing(self):
        items = [ItemLine('a', 3, Decimal('30.00'))]
        claims = [ClaimLine('a', 'host', 1), ClaimLine('a', 'p2', 1), ClaimLine('a', 'p3', 1)]
        args = dict(subtotal_basis=Decimal('30.00'), tax=Decimal('1.00'), gratuity=None,
                    extra_fees_total=Decimal('1.00'), host_key='host')

        totals = compute_settlement(items, claims, people('host', 'p2', 'p3'), **args)
        self.assertEqual(totals['host'].tax_share, Decimal('0.33'))
        self.assertEqual(totals['p2'].tax_share, Decimal('0.34'))

        absorbed = compute_settlement(items, claims, people('host', 'p2', 'p3'),
                                      absorb_extra_cents=True, **args)
        self.assertEqual(absorbed['host'].tax_share, Decimal('0.34'))
        self.assertEqual(absorbed['p2'].tax_share, Decimal('0.33'))

    def test_unclaimed_units_are_not_attributed(self):
        items = [ItemLine('a', 2, Decimal('10.00'))]
        claims = [ClaimLine('a', 'guest', 1)]

        totals = compute_settlement(
            items, claims, people('host', 'guest'),
            subtotal_basis=Decimal('10.00'), tax=None, gratuity=None,
            extra_fees_total=Decimal('0.00'), host_key='host',
        )

        self.assertEqual(totals['guest'].item_subtotal, Decimal('5.00'))
        self.assertEqual(totals['guest'].total_due, Decimal('5.00'))
        self.assertEqual(totals['host'].item_subtotal, Decimal('0.00'))

    def test_fees_scale_with_claimed_share_until_fully_claimed(self):
        items = [ItemLine('a', 1, Decimal('10.00')), ItemLine('b', 1, Decimal('10.00'))]
        fees = dict(subtotal_basis=Decimal('20.00'), tax=Decimal('2.00'), gratuity=Decimal('4.00'),
                    extra_fees_total=Decimal('6.00'))

        partial = compute_settlement(items, [ClaimLine('a', 'p1', 1)], people('p1', 'p2'), **fees)
        self.assertEqual(partial['p1'].tax_share, Decimal('1.00'))
        self.assertEqual(partial['p1'].gratuity_share, Decimal('2.00'))
        self.assertEqual(partial['p1'].total_due, Decimal('13.00'))
        self.assertEqual(partial['p2'].total_due, Decimal('0.00'))

        full = compute_settlement(
            items, [ClaimLine('a', 'p1', 1), ClaimLine('b', 'p2', 1)], people('p1', 'p2'), **fees
        )
        self.assertEqual(full['p1'].total_due + full['p2'].total_due, Decimal('26.00'))

    def test_fully_claimed_receipt_distributes_every_fee_cent(self):
        # Declared subtotal is higher than the item prices; fees are still fully allocated
        items = [ItemLine('a', 1, Decimal('9.99')), ItemLine('b', 1, Decimal('9.99'))]
        claims = [ClaimLine('a', 'p1', 1), ClaimLine('b', 'p2', 1)]

        totals = compute_settlement(
            items, claims, people('p1', 'p2'),
            subtotal_basis=Decimal('25.00'), tax=Decimal('2.07'), gratuity=Decimal('3.01'),
            extra_fees_total=Decimal('6.00'),
        )

        extra = sum(t.extra_fees_share for t in totals.values())
        self.assertEqual(extra, Decimal('6.00'))
        self.assertEqual(sum(t.tax_share for t in totals.values()), Decimal('2.07'))
        self.assertEqual(sum(t.gratuity_share for t in totals.values()), Decimal('3.01'))
        self.assertEqual(sum(t.other_share for t in totals.values()), Decimal('0.92'))
        self.assertEqual(sum(t.total_due for t in totals.values()), Decimal('25.98'))

    def test_shared_item_subtotals_conserve_cents(self):
        # $10.00 for 3 units, one unit each
        items = [ItemLine('a', 3, Decimal('10.00'))]
        claims = [ClaimLine('a', 'p1', 1), ClaimLine('a', 'p2', 1), ClaimLine('a', 'p3', 1)]

        totals = compute_settlement(
            items, claims, people('p1', 'p2', 'p3'),
            subtotal_basis=Decimal('10.00'), tax=None, gratuity=None,
            extra_fees_total=Decimal('0.00'),
        )

        subtotals = [totals[key].item_subtotal for key in ('p1', 'p2', 'p3')]
        self.assertEqual(sum(subtotals), Decimal('10.00'))
        self.assertEqual(sorted(subtotals), [Decimal('3.33'), Decimal('3.33'), Decimal('3.34')])

    def test_no_breakdown_puts_extra_fees_in_other(self):
        items = [ItemLine('a', 1, Decimal('30.00')), ItemLine('b', 1, Decimal('10.00'))]
        claims = [ClaimLine('a', 'p1', 1), ClaimLine('b', 'p2', 1)]

        totals = compute_settlement(
            items, claims, people('p1', 'p2'),
            subtotal_basis=Decimal('40.00'), tax=None, gratuity=None,
            extra_fees_total=Decimal('4.00'),
        )

        self.assertEqual(totals['p1'].other_share, Decimal('3.00'))
        self.assertEqual(totals['p2'].other_share, Decimal('1.00'))
        self.assertEqual(totals['p1'].tax_share, Decimal('0.00'))

    def test_zero_basis_splits_fees_evenly(self):
        items = [ItemLine('a', 1, None)]

        totals = compute_settlement(
            items, [], people('p1', 'p2', 'p3'),
            subtotal_basis=Decimal('0.00'), tax=Decimal('1.00'), gratuity=None,
            extra_fees_total=Decimal('1.00'),
        )

        shares = sorted(t.tax_share for t in totals.values())
        self.assertEqual(shares, [Decimal('0.33'), Decimal('0.33'), Decimal('0.34')])
        self.assertEqual(totals['p1'].tax_share, Decimal('0.34'))

    def test_zero_basis_without_breakdown(self):
        totals = compute_settlement(
            [], [], people('p1', 'p2'),
            subtotal_basis=None, tax=None, gratuity=None,
            extra_fees_total=Decimal('0.05'),
        )

        self.assertEqual(totals['p1'].other_share, Decimal('0.03'))
        self.assertEqual(totals['p2'].other_share, Decimal('0.02'))

    def test_claims_from_non_participants_are_ignored(self):
        items = [ItemLine('a', 2, Decimal('10.00'))]
        claims = [ClaimLine('a', 'p1', 1), ClaimLine('a', 'gone', 1)]

        totals = compute_settlement(
            items, claims, people('p1'),
            subtotal_basis=Decimal('10.00'), tax=None, gratuity=None,
            extra_fees_total=Decimal('0.00'),
        )

        self.assertEqual(set(totals), {'p1'})
        self.assertEqual(totals['p1'].item_subtotal, Decimal('5.00'))

    def test_no_participants(self):
        self.assertEqual(
            compute_settlement([ItemLine('a', 1, Decimal('1.00'))], [], [],
                               Decimal('1.00'), None, None, Decimal('0.00')),
            {},
        )

    def test_same_inputs_same_output(self):
        items = [ItemLine('a', 3, Decimal('7.00')), ItemLine('b', 1, Decimal('2.99'))]
        claims = [ClaimLine('a', 'p1', 2), ClaimLine('a', 'p2', 1), ClaimLine('b', 'p2', 1)]
        args = (items, claims, people('p1', 'p2'), Decimal('9.99'), Decimal('0.87'),
                Decimal('1.50'), Decimal('2.37'))

        self.assertEqual(compute_settlement(*args), compute_settlement(*args))


class AllocationHelperTests(SimpleTestCase):
    def test_remainder_recipient_largest_subtotal(self):
        participants = people('p1', 'p2', 'p3')
        subtotals = {'p1': Fraction(5), 'p2': Fraction(9), 'p3': Fraction(9)}
        self.assertEqual(select_remainder_recipient(participants, subtotals), 'p2')

    def test_remainder_recipient_only_host(self):
        participants = people('host')
        self.assertEqual(select_remainder_recipient(participants, {}, host_key='host'), 'host')

    def test_remainder_recipient_absorb_requires_host_participant(self):
        participants = people('p1', 'p2')
        subtotals = {'p1': Fraction(1), 'p2': Fraction(2)}
        self.assertEqual(
            select_remainder_recipient(participants, subtotals, host_key='host', absorb_extra_cents=True),
            'p2',
        )

    def test_proportional_cents_sum_to_total(self):
        participants = people('p1', 'p2', 'p3')
        subtotals = {'p1': Fraction(1), 'p2': Fraction(1), 'p3': Fraction(1)}
        result = distribute_proportional_cents(100, participants, subtotals, None, False)
        self.assertEqual(sum(result.values()), 100)
        self.assertEqual(result, {'p1': 34, 'p2': 33, 'p3': 33})

    def test_round_subtotals_ties_go_to_earliest_joiner(self):
        participants = people('p1', 'p2', 'p3')
        third = Fraction(10, 3)
        result = round_subtotals(participants, {'p1': third, 'p2': third, 'p3': third})
        self.assertEqual(result, {'p1': 334, 'p2': 333, 'p3': 333})

    def test_unclaimed_items(self):
        items = [ItemLine('a', 2, Decimal('1.00')), ItemLine('b', 1, Decimal('1.00'))]
        claims = [ClaimLine('a', 'p1', 1), ClaimLine('b', 'p1', 1)]
        self.assertEqual([row.key for row in unclaimed_items(items, claims)], ['a'])
