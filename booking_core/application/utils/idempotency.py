from __future__ import annotations

import hashlib
import json
from typing import Any


def generate_idempotency_key(operation: str, entity_id: str, params: dict[str, Any] | None = None) -> str:
    """Deterministic SHA256 key for an operation on one entity.

    Retries of the same submission produce the same key, so the provider can
    drop duplicates instead of charging twice.
    """
    key_data = {
        "operation": operation,
        "entity_id": str(entity_id),
        "params": params or {},
    }
    key_str = json.dumps(key_data, sort_keys=True, default=str)
    return hashlib.sha256(key_str.encode()).hexdigest()
