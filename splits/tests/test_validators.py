from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import SimpleTestCase
from pydantic import ValidationError as PayloadValidationError

from splits.identity import Identity, default_display_name, normalize_guest_device_id
from splits.items import claim_key, normalize_items, to_positive_int
from splits.models import PaymentMethod
from splits.schemas import ClaimPayload, CreateReceiptPayload, PaymentProfilePayload
from splits.validators import InputValidator


class InputValidatorTests(SimpleTestCase):
    def test_validate_name_strips_markup(self):
        self.assertEqual(InputValidator.validate_name('  <b>Alice</b> '), 'Alice')
        self.assertEqual(InputValidator.validate_name('Tom & Jerry'), 'Tom & Jerry')

    def test_validate_name_rejects(self):
        for value in ('', None, '   ', 'x' * 51, 'javascript:alert(1)'):
            with self.subTest(value=value):
                with self.assertRaises(ValidationError):
                    InputValidator.validate_name(value)

    def test_share_codes(self):
        self.assertTrue(InputValidator.is_valid_share_code('012345'))
        for code in ('12345', '1234567', 'abcdef', '12345\n', '١٢٣٤٥٦', None, 123456):
            with self.subTest(code=code):
                self.assertFalse(InputValidator.is_valid_share_code(code))

    def test_payment_method(self):
        self.assertEqual(InputValidator.validate_payment_method('venmo'), PaymentMethod.VENMO)
        self.assertEqual(
            InputValidator.validate_payment_method(PaymentMethod.ZELLE), PaymentMethod.ZELLE
        )
        with self.assertRaisesMessage(ValidationError, 'Invalid payment method.'):
            InputValidator.validate_payment_method('paypal')

    def test_delta(self):
        self.assertEqual(InputValidator.validate_delta(2), 2)
        self.assertEqual(InputValidator.validate_delta(-1.9), -1)
        for value in (True, 'abc', None, float('nan'), float('inf')):
            with self.subTest(value=value):
                with self.assertRaises(ValidationError):
                    InputValidator.validate_delta(value)


class ItemNormalizationTests(SimpleTestCase):
    def test_drops_items_without_name(self):
        items = normalize_items([
            {'name': 'Soup', 'price': '6.5'},
            {'name': '<i></i>', 'price': 1},
            {'name': None},
            'not an item',
        ])
        self.assertEqual([item.name for item in items], ['Soup'])
        self.assertEqual(items[0].price, Decimal('6.50'))

    def test_quantity_and_sort_order_fallbacks(self):
        items = normalize_items([
            {'name': 'A', 'quantity': 0},
            {'name': 'B', 'quantity': 2.7, 'sort_order': 0},
            {'name': 'C', 'quantity': 'three', 'sort_order': 9},
        ])
        self.assertEqual([(i.quantity, i.sort_order) for i in items], [(1, 0), (2, 1), (1, 9)])

    def test_repeated_keys_fall_back_to_position(self):
        items = normalize_items([
            {'name': 'Pizza', 'sort_order': 0},
            {'name': 'Salad', 'sort_order': 0},
            {'name': 'Wine', 'client_item_id': 'w'},
            {'name': 'More wine', 'client_item_id': 'w'},
            {'name': 'Bread', 'sort_order': 3},
        ])

        keys = [claim_key(item) for item in items]
        self.assertEqual(keys, ['sort:0', 'sort:1', 'w', 'sort:3', 'sort:4'])
        self.assertEqual(len(set(keys)), len(items))

    def test_to_positive_int(self):
        self.assertEqual(to_positive_int(3, 1), 3)
        self.assertEqual(to_positive_int(-2, 1), 1)
        self.assertEqual(to_positive_int(True, 1), 1)
        self.assertEqual(to_positive_int(float('inf'), 7), 7)


class IdentityTests(SimpleTestCase):
    def test_participant_keys(self):
        self.assertEqual(Identity.authenticated(42).participant_key, 'auth:42')
        guest = Identity.guest('AAAAAAAA-AAAA-4AAA-8AAA-AAAAAAAAAAAA')
        self.assertEqual(guest.participant_key, 'guest:aaaaaaaa-aaaa-4aaa-8aaa-aaaaaaaaaaaa')

    def test_invalid_guest_device(self):
        self.assertIsNone(Identity.guest('short'))
        self.assertIsNone(normalize_guest_device_id(None))
        with self.assertRaises(ValueError):
            Identity().participant_key

    def test_display_names(self):
        self.assertEqual(Identity.authenticated('7', 'you').preferred_display_name, 'Friend')
        self.assertEqual(Identity.authenticated('7', ' Dana ').preferred_display_name, 'Dana')
        self.assertEqual(default_display_name('guest:x'), 'Guest')
        self.assertEqual(default_display_name('other'), 'Participant')


class RequestPayloadTests(SimpleTestCase):
    def test_create_receipt_payload_coerces_items(self):
        payload = CreateReceiptPayload.model_validate({
            'clientReceiptId': ' r-1 ',
            'items': [{'clientItemId': 'a', 'name': 'Soup', 'quantity': 0, 'price': -3}],
            'tax': '1.005',
        })

        self.assertEqual(payload.client_receipt_id, 'r-1')
        self.assertEqual(payload.items[0].quantity, 1)
        self.assertIsNone(payload.items[0].price)
        self.assertEqual(payload.tax, Decimal('1.01'))

    def test_blank_client_receipt_id_rejected(self):
        with self.assertRaises(PayloadValidationError):
            CreateReceiptPayload.model_validate({'clientReceiptId': '   '})

    def test_claim_delta(self):
        self.assertEqual(ClaimPayload.model_validate({'itemKey': 'a', 'delta': -2.7}).delta, -2)
        with self.assertRaises(PayloadValidationError):
            ClaimPayload.model_validate({'itemKey': 'a', 'delta': True})
        with self.assertRaises(PayloadValidationError):
            ClaimPayload.model_validate({'itemKey': 'a', 'delta': float('inf')})

    def test_payment_profile_accepts_snake_case(self):
        payload = PaymentProfilePayload.model_validate({
            'venmo_enabled': True,
            'venmoUsername': None,
            'preferredPaymentMethod': 'zelle',
        })
        self.assertTrue(payload.venmo_enabled)
        self.assertEqual(payload.venmo_username, '')
        self.assertEqual(payload.preferred_payment_method, PaymentMethod.ZELLE)
