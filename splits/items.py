"""
Normalization of incoming line items before they are stored as ReceiptItem rows
"""
import logging
import math
from decimal import Decimal
from typing import Iterable, List, NamedTuple, Optional, Set

from splits.models import item_claim_key
from splits.money import normalize_money
from splits.validators import InputValidator

logger = logging.getLogger(__name__)


class NormalizedItem(NamedTuple):
    client_item_id: str
    name: str
    quantity: int
    price: Optional[Decimal]
    sort_order: int


def to_positive_int(value, fallback: int) -> int:
    """Whole positive number, or the fallback for anything else"""
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return fallback
    if isinstance(value, float) and not math.isfinite(value):
        return fallback
    if isinstance(value, Decimal) and not value.is_finite():
        return fallback
    if value <= 0:
        return fallback
    return max(1, int(value))


def normalize_item(raw: dict, index: int) -> Optional[NormalizedItem]:
    """Returns None for items that should be dropped (no usable name)"""
    if not isinstance(raw, dict):
        return None

    name = InputValidator.clean_item_name(raw.get('name'))
    if not name:
        return None

    client_item_id = raw.get('client_item_id')
    if not isinstance(client_item_id, str):
        client_item_id = ''

    return NormalizedItem(
        client_item_id=client_item_id.strip()[:128],
        name=name,
        quantity=to_positive_int(raw.get('quantity'), 1),
        price=normalize_money(raw.get('price')),
        sort_order=to_positive_int(raw.get('sort_order'), index),
    )


def claim_key(item: NormalizedItem) -> str:
    return item_claim_key(item.client_item_id, item.sort_order)


def _with_free_position(item: NormalizedItem, index: int, used_keys: Set[str]) -> NormalizedItem:
    """Drop a repeated client id and key the item by its position instead"""
    sort_order = index
    while item_claim_key('', sort_order) in used_keys:
        sort_order += 1
    return item._replace(client_item_id='', sort_order=sort_order)


def normalize_items(raw_items: Iterable[dict]) -> List[NormalizedItem]:
    """
    Normalize a full item list.

    Every item comes out with a distinct claim key: a repeated client id or
    a repeated sort order falls back to the item's position in the list.
    """
    items = []
    used_keys: Set[str] = set()
    for index, raw in enumerate(raw_items):
        item = normalize_item(raw, index)
        if item is None:
            continue
        if claim_key(item) in used_keys:
            logger.warning(f"Duplicate item key {claim_key(item)!r} at position {index}")
            item = _with_free_position(item, index, used_keys)
        used_keys.add(claim_key(item))
        items.append(item)
    return items
