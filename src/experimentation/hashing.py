"""
Stable hashing of (experiment_id, entity_id) pairs.

The same pair always maps to the same value in [0, 1) across processes,
hosts and redeployments: no seeds, no salts, no per-process state.
"""

import hashlib

HASH_VERSION = "v1"
_DELIMITER = "\x1f"
_MAX = 2 ** 64


def stable_hash(experiment_id: str, entity_id: str, version: str = HASH_VERSION) -> float:
    """
    Deterministic hash to [0, 1).

    v1: first 8 bytes (big-endian) of SHA-256 over
    "v1:<experiment_id>\\x1f<entity_id>", divided by 2**64.
    """
    if version != HASH_VERSION:
        raise ValueError(f"Unsupported hash version: {version}")
    key = f"{version}:{experiment_id}{_DELIMITER}{entity_id}"
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") / _MAX
