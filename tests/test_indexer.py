import threading

import pytest

from pubdex.addresses import get_address_mapping_from_pubkey
from pubdex.block import Block, Transaction, TxIn, TxOut
from pubdex.cache import GrpHashset
from pubdex.chain import GENESIS_HASH
from pubdex.config import IndexerConfig
from pubdex.crypto import G, encode_point, hash160
from pubdex.errors import IndexerError
from pubdex.index import (
    IndexerTipState,
    get_aliases_from_address,
    get_cnt_pk_key,
    get_indexer_tip,
    save_new_indexer_tip,
)
from pubdex.indexer import (
    IndexerState,
    cache_size_for,
    check_reorg,
    get_indexer_state,
    index_block,
    run_indexer,
)
from pubdex.kvstore import Store
from pubdex.logger import FatalError, Logger

PUBKEY = encode_point(G, True)
FUND_SCRIPT = b"\x76\xa9\x14" + hash160(PUBKEY) + b"\x88\xac"
SIG = b"\x30" * 71
P2PKH_SIG = bytes([len(SIG)]) + SIG + bytes([len(PUBKEY)]) + PUBKEY


def _hash(height):
    return GENESIS_HASH if height == 0 else f"{height:064x}"


def _coinbase(tag, *scripts):
    outputs = [TxOut(1000, script) for script in scripts] or [TxOut(1000, b"\x51")]
    return Transaction(1, [TxIn(b"\x00" * 32, 0xFFFFFFFF, bytes([1, tag]))], outputs)


def _spend(*outpoints, script_sig=P2PKH_SIG):
    inputs = [TxIn(txid, vout, script_sig) for txid, vout in outpoints]
    return Transaction(1, inputs, [TxOut(500, b"\x51")])


def _block(*txs):
    return Block(b"\x00" * 80, list(txs))


class FakeNode:
    def __init__(self, blocks, shutdown=None, count=None):
        self.blocks = blocks
        self.shutdown = shutdown
        self.count = len(blocks) - 1 if count is None else count

    def get_block_count(self):
        return self.count

    def get_block_hash(self, height):
        return _hash(height)

    def get_block(self, block_hash):
        height = [_hash(h) for h in range(len(self.blocks))].index(block_hash)
        if self.shutdown is not None and height == self.count - 1:
            self.shutdown.set()
        return self.blocks[height]


@pytest.fixture
def store():
    with Store(":memory:") as db:
        yield db


def test_spender_addresses_are_indexed(store):
    cache = GrpHashset(100)
    fund = _coinbase(1, FUND_SCRIPT)
    index_block(store, _block(fund), _hash(1), 1, cache, Logger())
    index_block(store, _block(_coinbase(2), _spend((fund.txid(), 0))), _hash(2), 2, cache, Logger())
    mapping = get_address_mapping_from_pubkey(PUBKEY)
    assert len(mapping.addresses()) == 4
    for address in mapping.addresses():
        assert get_aliases_from_address(store, address).pubkey == PUBKEY.hex()
    assert get_indexer_tip(store) == IndexerTipState(2, _hash(2))
    assert PUBKEY in cache


def test_output_spent_in_same_block_is_indexed(store):
    fund = _coinbase(1, FUND_SCRIPT)
    logger = Logger()
    index_block(store, _block(fund, _spend((fund.txid(), 0))), _hash(1), 1, GrpHashset(100), logger)
    address = get_address_mapping_from_pubkey(PUBKEY).p2pkh
    assert get_aliases_from_address(store, address).pubkey == PUBKEY.hex()
    assert logger.counters["saved_utxos"] == 2
    assert logger.counters["transactions_processed"] == 2


def test_repeated_pubkey_is_a_cache_hit(store):
    fund = _coinbase(1, FUND_SCRIPT, FUND_SCRIPT)
    logger = Logger()
    index_block(store, _block(fund), _hash(1), 1, GrpHashset(100), None)
    cache = GrpHashset(100)
    index_block(store, _block(_spend((fund.txid(), 0), (fund.txid(), 1))), _hash(2), 2, cache, logger)
    assert logger.counters["cache_hits"] == 1
    assert logger.counters["pmap_mappings"] == 4
    assert store.get(get_cnt_pk_key()) == (1).to_bytes(8, "little")


def test_undecodable_spend_is_counted_and_skipped(store):
    fund = _coinbase(1, FUND_SCRIPT)
    index_block(store, _block(fund), _hash(1), 1, GrpHashset(100))
    bad_sig = bytes([len(SIG)]) + SIG + b"\x05" + b"\x01" * 5
    logger = Logger()
    spend = _spend((fund.txid(), 0), script_sig=bad_sig)
    index_block(store, _block(spend), _hash(2), 2, GrpHashset(100), logger)
    assert logger.counters["failed_deserializations"] == 1
    assert store.get(get_cnt_pk_key()) is None


def test_unknown_outpoints_add_nothing(store):
    index_block(store, _block(_coinbase(0)), GENESIS_HASH, 0, GrpHashset(100))
    assert store.get(get_cnt_pk_key()) is None
    assert get_indexer_tip(store) == IndexerTipState(0, GENESIS_HASH)


def test_cache_size_for_one_pubkey_width():
    assert cache_size_for(33) == 2_000_000
    assert cache_size_for(0) == 0


def test_get_indexer_state_on_empty_store(store):
    assert get_indexer_state(store, FakeNode([], count=5)) == IndexerState(5, 0, GENESIS_HASH)


def test_get_indexer_state_rejects_oversized_height(store):
    with pytest.raises(IndexerError):
        get_indexer_state(store, FakeNode([], count=2**32))


def test_check_reorg_accepts_matching_tip(store):
    state = check_reorg(store, FakeNode([], count=3))
    assert state.indexer_tip_hash == GENESIS_HASH


def test_check_reorg_detects_mismatch(store):
    save_new_indexer_tip(store, IndexerTipState(1, "ab" * 32))
    with pytest.raises(FatalError):
        check_reorg(store, FakeNode([], count=3))


def test_run_indexer_follows_chain_until_shutdown(store):
    fund = _coinbase(1, FUND_SCRIPT)
    blocks = [
        _block(_coinbase(0)),
        _block(fund),
        _block(_coinbase(2), _spend((fund.txid(), 0))),
        _block(_coinbase(3)),
    ]
    shutdown = threading.Event()
    node = FakeNode(blocks, shutdown=shutdown)
    run_indexer(IndexerConfig(mem_alloc_pubkey_hset=1, log_interval=2), store, node, shutdown)
    assert shutdown.is_set()
    assert get_indexer_tip(store) == IndexerTipState(2, _hash(2))
    address = get_address_mapping_from_pubkey(PUBKEY).p2wpkh
    assert get_aliases_from_address(store, address).pubkey == PUBKEY.hex()


def test_run_indexer_stops_on_reorg(store):
    save_new_indexer_tip(store, IndexerTipState(1, "cd" * 32))
    with pytest.raises(FatalError):
        run_indexer(IndexerConfig(), store, FakeNode([], count=3), threading.Event())