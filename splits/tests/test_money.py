from decimal import Decimal
from fractions import Fraction

from django.test import SimpleTestCase

from splits.money import (
    compute_extra_fees_total, compute_gratuity_percent, compute_other_fees,
    fraction_to_money, from_cents, normalize_money, round_half_up, round_money, to_cents,
)


class RoundingTests(SimpleTestCase):
    def test_round_money_rounds_half_up(self):
        self.assertEqual(round_money(Decimal('1.005')), Decimal('1.01'))
        self.assertEqual(round_money(Decimal('1.004')), Decimal('1.00'))
        self.assertEqual(round_money(Decimal('2.675')), Decimal('2.68'))

    def test_round_half_up_on_fractions(self):
        self.assertEqual(round_half_up(Fraction(1, 2)), 1)
        self.assertEqual(round_half_up(Fraction(5, 2)), 3)
        self.assertEqual(round_half_up(Fraction(249, 100)), 2)
        self.assertEqual(round_half_up(Fraction(0)), 0)

    def test_fraction_to_money(self):
        self.assertEqual(fraction_to_money(Fraction(1, 3)), Decimal('0.33'))
        self.assertEqual(fraction_to_money(Fraction(2, 3)), Decimal('0.67'))
        self.assertEqual(fraction_to_money(Fraction(1, 200)), Decimal('0.01'))

    def test_cents_conversion(self):
        self.assertEqual(to_cents(Decimal('12.34')), 1234)
        self.assertEqual(to_cents(None), 0)
        self.assertEqual(from_cents(1234), Decimal('12.34'))
        self.assertEqual(from_cents(5), Decimal('0.05'))


class NormalizeMoneyTests(SimpleTestCase):
    def test_accepts_numbers_and_numeric_strings(self):
        self.assertEqual(normalize_money(2.5), Decimal('2.50'))
        self.assertEqual(normalize_money('10'), Decimal('10.00'))
        self.assertEqual(normalize_money(Decimal('3.333')), Decimal('3.33'))
        self.assertEqual(normalize_money(0), Decimal('0.00'))

    def test_rejects_unusable_values(self):
        for value in (None, True, False, 'abc', '-1', -0.01, 'NaN', 'Infinity', float('inf')):
            with self.subTest(value=value):
                self.assertIsNone(normalize_money(value))


class FeeTotalsTests(SimpleTestCase):
    def test_extra_fees_from_receipt_total(self):
        extra = compute_extra_fees_total(
            Decimal('30.00'), [Decimal('10.00'), Decimal('10.00'), Decimal('5.00')],
            Decimal('2.00'), Decimal('1.00'),
        )
        self.assertEqual(extra, Decimal('5.00'))

    def test_extra_fees_never_below_tax_and_gratuity(self):
        extra = compute_extra_fees_total(
            Decimal('24.00'), [Decimal('25.00')], Decimal('2.00'), Decimal('1.00'),
        )
        self.assertEqual(extra, Decimal('3.00'))

    def test_extra_fees_without_receipt_total(self):
        self.assertEqual(
            compute_extra_fees_total(None, [Decimal('10.00')], Decimal('0.80'), None),
            Decimal('0.80'),
        )
        self.assertEqual(compute_extra_fees_total(None, [Decimal('10.00')]), Decimal('0.00'))

    def test_items_without_price_count_as_zero(self):
        self.assertEqual(
            compute_extra_fees_total(Decimal('12.00'), [Decimal('10.00'), None]),
            Decimal('2.00'),
        )

    def test_other_fees(self):
        self.assertEqual(
            compute_other_fees(Decimal('5.00'), Decimal('2.00'), Decimal('1.00')),
            Decimal('2.00'),
        )
        self.assertEqual(compute_other_fees(Decimal('3.00'), Decimal('2.00'), Decimal('1.00')), Decimal('0.00'))
        self.assertIsNone(compute_other_fees(Decimal('1.00'), Decimal('2.00'), None))

    def test_gratuity_percent(self):
        self.assertEqual(compute_gratuity_percent(Decimal('4.50'), Decimal('30.00')), Decimal('15.00'))
        self.assertIsNone(compute_gratuity_percent(None, Decimal('30.00')))
        self.assertIsNone(compute_gratuity_percent(Decimal('4.50'), Decimal('0.00')))
        self.assertIsNone(compute_gratuity_percent(Decimal('0.00'), Decimal('30.00')))
