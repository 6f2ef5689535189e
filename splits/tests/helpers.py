"""
Shared fixtures for splits tests
"""
from decimal import Decimal

from splits.identity import Identity
from splits.models import HostPaymentProfile
from splits.services import SettlementService

HOST_DEVICE = 'aaaaaaaa-aaaa-4aaa-8aaa-aaaaaaaaaaaa'
ALICE_DEVICE = '11111111-1111-4111-8111-111111111111'
BOB_DEVICE = '22222222-2222-4222-8222-222222222222'
CAROL_DEVICE = '33333333-3333-4333-8333-333333333333'

HOST = Identity.guest(HOST_DEVICE, 'Hannah')
ALICE = Identity.guest(ALICE_DEVICE, 'Alice')
BOB = Identity.guest(BOB_DEVICE, 'Bob')
CAROL = Identity.guest(CAROL_DEVICE, 'Carol')


def item(client_item_id, name, price, quantity=1):
    return {
        'client_item_id': client_item_id,
        'name': name,
        'quantity': quantity,
        'price': Decimal(price),
    }


def create_receipt(service: SettlementService, host: Identity = HOST, client_receipt_id='dinner-1',
                   items=None, **fees):
    """Create a receipt and return its share code"""
    if items is None:
        items = [item('pizza', 'Pizza', '20.00', 2), item('salad', 'Salad', '10.00')]
    fee_totals = {key: Decimal(value) if value is not None else None for key, value in fees.items()}
    return service.create_receipt(host, client_receipt_id, items, fee_totals)['share_code']


def give_payment_options(identity: Identity, **options):
    options = options or {'venmo_enabled': True, 'venmo_username': 'hannah-h'}
    return HostPaymentProfile.objects.create(owner_key=identity.participant_key, **options)
