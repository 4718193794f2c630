"""Identity mapping between remote document ids and local integer keys.

Remote documents are addressed by opaque server-assigned strings, local rows
by 64-bit integers. Both mappings below are pure SHA-256 based hashes folded
into the non-negative 63-bit range, so every device maps the same remote id
(or the same offline content tuple) to the same local key.

Two distinct inputs can collide on one key. That risk is accepted: it is
small at 63 bits and there is no mapping table to consult instead.
"""

import hashlib

KEY_BITS = 63
UNASSIGNED_KEY = 0


def _fold(raw: str) -> int:
    digest = hashlib.sha256(raw.encode("utf-8")).digest()
    key = int.from_bytes(digest[:8], "big") >> (64 - KEY_BITS)
    # 0 means "no key yet" to the local store
    return key or 1


def map_remote_key(remote_id: str) -> int:
    """Local key for a record whose remote document id is ``remote_id``."""
    return _fold(f"remote|{remote_id}")


def map_offline_key(*parts) -> int:
    """Local key derived from a record's business-identity fields.

    Used when a record is written without a remote id (offline, or the remote
    insert failed), so retried writes of the same logical record land on one key.
    """
    return _fold("offline|" + "|".join(str(p) for p in parts))


def normalize(value: str) -> str:
    """Case- and whitespace-insensitive form used for emails and usernames."""
    return value.strip().lower()
