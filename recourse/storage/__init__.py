"""
Storage Module - Keyed stores and the state codec for persisted snapshot stacks.
"""

from recourse.storage.codec import decode_value, encode_value
from recourse.storage.kv_store import InMemoryKVStore, KVStore, SQLiteKVStore

__all__ = [
    # Stores
    "KVStore",
    "SQLiteKVStore",
    "InMemoryKVStore",
    # Codec
    "encode_value",
    "decode_value",
]
