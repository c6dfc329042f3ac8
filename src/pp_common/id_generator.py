"""Order ID generation.

Order ids are random UUID4 strings: orders have no independent table, so
ids only need to be unique within their offer and unguessable across offers.
Offer ids come from the offers.id BIGSERIAL.
"""

import uuid


def generate_order_id() -> str:
    return str(uuid.uuid4())
