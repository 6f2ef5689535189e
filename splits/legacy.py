"""
Read-time migration for receipts whose items were stored as a JSON blob.

Older records kept the whole client payload in ``legacy_items_json``. The
first time such a receipt is loaded the blob is parsed, turned into
ReceiptItem rows and cleared, so no other code path ever parses it.
"""
import json
import logging
import math
from typing import List, Optional

from splits.items import NormalizedItem, normalize_items

logger = logging.getLogger(__name__)


def _legacy_item_dict(raw) -> Optional[dict]:
    """Map the old item shape (id/name/quantity/price) onto the current one"""
    if not isinstance(raw, dict):
        return None
    name = raw.get('name')
    if not isinstance(name, str) or not name.strip():
        return None
    price = raw.get('price')
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        price = None
    elif isinstance(price, float) and not math.isfinite(price):
        price = None
    item_id = raw.get('id')
    return {
        'client_item_id': item_id if isinstance(item_id, str) else '',
        'name': name,
        'quantity': raw.get('quantity'),
        'price': price,
    }


def parse_legacy_items(receipt_json: Optional[str],
                       expected_client_receipt_id: Optional[str] = None) -> List[NormalizedItem]:
    """
    Parse a legacy receipt payload into normalized items.

    Anything that isn't a single receipt object yields no items: invalid
    JSON, arrays, aggregate payloads carrying a ``receipts`` list, and
    payloads whose own id doesn't match the receipt they're attached to.
    """
    if not receipt_json:
        return []

    try:
        payload = json.loads(receipt_json)
    except (TypeError, ValueError):
        logger.warning("Legacy receipt payload is not valid JSON")
        return []

    if not isinstance(payload, dict):
        return []

    if isinstance(payload.get('receipts'), list):
        logger.warning("Ignoring aggregate legacy payload")
        return []

    payload_client_id = payload.get('clientReceiptId')
    if not isinstance(payload_client_id, str):
        payload_client_id = payload.get('id') if isinstance(payload.get('id'), str) else None

    if expected_client_receipt_id and payload_client_id and payload_client_id != expected_client_receipt_id:
        logger.warning(
            f"Legacy payload belongs to {payload_client_id}, expected {expected_client_receipt_id}"
        )
        return []

    raw_items = payload.get('items')
    if not isinstance(raw_items, list):
        return []

    # Sort order is the position in the original list, including dropped entries
    converted = []
    for index, raw in enumerate(raw_items):
        item = _legacy_item_dict(raw)
        if item is not None:
            item['sort_order'] = index
            converted.append(item)
    return normalize_items(converted)
