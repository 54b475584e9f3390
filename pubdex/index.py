"""Key layout and the read/write operations of the pubkey index."""

from __future__ import annotations

import sys
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

from termcolor import colored

from .addresses import AddressMapping, get_address_mapping_from_pubkey, outpoint_bytes
from .chain import GENESIS_HASH
from .errors import BlockchainError, DBError
from .script import Script


class KeyValue(Protocol):
    def get(self, key: bytes) -> bytes | None: ...

    def multi_get(self, keys: Iterable[bytes]) -> list[bytes | None]: ...

    def put(self, key: bytes, value: bytes) -> None: ...

    def delete(self, key: bytes) -> None: ...


_HEIGHT_KEY = b"indexer_height"
_TIP_HASH_KEY = b"indexer_tip_hash"


def _report(label: str, exc: Exception) -> None:
    print(f"{colored(label, 'red', attrs=['bold'])}: {exc}", file=sys.stderr)


@dataclass
class IndexerTipState:
    """Height and hash (display hex) of the last indexed block."""

    indexer_height: int
    indexer_tip_hash: str

    def to_json(self) -> dict:
        return {
            "indexer_height": self.indexer_height,
            "indexer_tip_hash": self.indexer_tip_hash,
        }


@dataclass
class AliasResponse:
    """A public key (hex) and the addresses it controls."""

    pubkey: str
    aliases: AddressMapping | None

    def to_json(self) -> dict:
        return {
            "pubkey": self.pubkey,
            "aliases": None if self.aliases is None else self.aliases.to_json(),
        }


def get_key(path: bytes, key: bytes) -> bytes:
    return bytes(path) + bytes(key)


def get_utxo_db_key_from_bytes(data: bytes) -> bytes:
    return get_key(b"utxo:", data)


def get_utxo_db_key(txid: bytes, vout: int) -> bytes:
    return get_utxo_db_key_from_bytes(outpoint_bytes(txid, vout))


def get_amap_db_key(address: str) -> bytes:
    """Key mapping an address to the id of its public key."""
    return get_key(b"amap:", address.encode())


def get_cnt_pk_key() -> bytes:
    return b"cnt:pk"


def get_pk_key_from_id_bytes(pubkey_id: bytes) -> bytes:
    return get_key(b"pk:", pubkey_id)


def _hash_to_bytes(block_hash: str) -> bytes:
    try:
        raw = bytes.fromhex(block_hash)
    except ValueError as exc:
        raise DBError(f"Failed to parse block hash: {exc}") from exc
    if len(raw) != 32:
        raise DBError("Failed to parse block hash: expected 32 bytes")
    return raw[::-1]


def get_indexer_tip(db: KeyValue) -> IndexerTipState:
    """Read the indexer tip, defaulting to height 0 at the genesis block."""
    try:
        raw_height = db.get(_HEIGHT_KEY)
        raw_hash = db.get(_TIP_HASH_KEY)
    except DBError as exc:
        _report("Failed to get block tip", exc)
        raise
    if raw_height is None:
        height = 0
    elif len(raw_height) != 4:
        raise DBError("Slice conversion error: expected 4 bytes for indexer height")
    else:
        height = int.from_bytes(raw_height, "little")
    if raw_hash is None:
        tip_hash = GENESIS_HASH
    elif len(raw_hash) != 32:
        raise DBError("Failed to parse block hash into byte array")
    else:
        tip_hash = raw_hash[::-1].hex()
    return IndexerTipState(indexer_height=height, indexer_tip_hash=tip_hash)


def save_new_indexer_tip(db: KeyValue, state: IndexerTipState) -> None:
    try:
        db.put(_HEIGHT_KEY, state.indexer_height.to_bytes(4, "little"))
    except DBError as exc:
        _report("Failed to save new indexer height", exc)
        raise
    try:
        db.put(_TIP_HASH_KEY, _hash_to_bytes(state.indexer_tip_hash))
    except DBError as exc:
        _report("Failed to save new indexer tip hash", exc)
        raise


def save_utxo_script_mapping(db: KeyValue, txid: bytes, vout: int, script: bytes | Script) -> None:
    """Record the funding script of an output."""
    try:
        db.put(get_utxo_db_key(txid, vout), bytes(script))
    except DBError as exc:
        _report("Failed to save UTXO", exc)
        raise


def bulk_get_utxo_script_mappings(
    db: KeyValue, outpoints: Iterable[tuple[bytes, int]]
) -> dict[bytes, bytes]:
    """Fetch the funding scripts of many outpoints in one call; unknown ones are omitted."""
    keys = [get_utxo_db_key(txid, vout) for txid, vout in outpoints]
    try:
        values = db.multi_get(keys)
    except DBError as exc:
        _report("Failed to get byte array in utxo_script_mappings from DB", exc)
        raise
    return {key: value for key, value in zip(keys, values) if value is not None}


def save_decoded_script_mapping(db: KeyValue, pubkey: bytes, delete_outpoint: bytes) -> None:
    """Store a public key under a new id, map its unseen addresses to it,
    and drop the spent output's record.

    ``delete_outpoint`` is the full ``utxo:`` key of the spent output; it is
    prefixed again before deletion.
    """
    pubkey = bytes(pubkey)
    utxo_key = get_utxo_db_key_from_bytes(delete_outpoint)
    try:
        mapping = get_address_mapping_from_pubkey(pubkey)
    except BlockchainError:
        db.delete(utxo_key)
        return

    search_keys = [get_amap_db_key(address) for address in mapping.addresses()]
    existing = db.multi_get(search_keys)

    count_key = get_cnt_pk_key()
    raw_count = db.get(count_key)
    if raw_count is None:
        count = 1
    elif len(raw_count) != 8:
        raise DBError("Expected 8 bytes for pubkey_count")
    else:
        count = int.from_bytes(raw_count, "little") + 1
    count_bytes = count.to_bytes(8, "little")

    db.put(get_pk_key_from_id_bytes(count_bytes), pubkey)
    db.put(count_key, count_bytes)

    for key, value in zip(search_keys, existing):
        if value is None:
            db.put(key, count_bytes)

    db.delete(utxo_key)


def get_aliases_from_pubkey(pubkey: bytes) -> AliasResponse:
    mapping = get_address_mapping_from_pubkey(pubkey)
    return AliasResponse(pubkey=bytes(pubkey).hex(), aliases=mapping)


def _lookup(db: KeyValue, key: bytes) -> bytes | None:
    try:
        return db.get(key)
    except DBError:
        return None


def get_aliases_from_address(db: KeyValue, address: str) -> AliasResponse:
    """Find the public key behind an address and list all of its addresses."""
    pubkey_id = _lookup(db, get_amap_db_key(address))
    if pubkey_id is None:
        raise DBError("pubkey_id not found")
    pubkey = _lookup(db, get_pk_key_from_id_bytes(pubkey_id))
    if pubkey is None:
        raise DBError("pubkey not found")
    try:
        return get_aliases_from_pubkey(pubkey)
    except BlockchainError as exc:
        raise DBError(f"Blockchain error: {exc}") from exc