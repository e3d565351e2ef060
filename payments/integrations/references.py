import time
import uuid


def generate_transaction_reference(now_ms=None):
    """Public transaction identity: millisecond timestamp plus random suffix."""
    millis = int(time.time() * 1000) if now_ms is None else int(now_ms)
    return f"txn_{millis}_{uuid.uuid4().hex[:12]}"
