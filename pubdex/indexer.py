"""The main indexing loop: follows the node and records spender public keys."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Protocol

from termcolor import colored

from .addresses import get_pub_key, try_peek_pubkey
from .block import Block
from .cache import GrpHashset
from .config import IndexerConfig
from .errors import BlockchainError, IndexerError
from .index import (
    IndexerTipState,
    bulk_get_utxo_script_mappings,
    get_indexer_tip,
    get_utxo_db_key,
    save_decoded_script_mapping,
    save_new_indexer_tip,
    save_utxo_script_mapping,
)
from .kvstore import StagedBatch, Store
from .logger import Logger, error, error_panic, info, success

LOOP_INTERVAL = 1.0
PUBKEY_SIZE = 33


class Node(Protocol):
    def get_block_count(self) -> int: ...

    def get_block_hash(self, height: int) -> str: ...

    def get_block(self, block_hash: str) -> Block: ...


@dataclass
class IndexerState:
    chain_height: int
    indexer_height: int
    indexer_tip_hash: str


def get_indexer_state(db, rpc: Node) -> IndexerState:
    """Combine the stored tip with the node's current height."""
    tip = get_indexer_tip(db)
    chain_height = rpc.get_block_count()
    if not 0 <= chain_height <= 0xFFFFFFFF:
        raise IndexerError(f"Uint coercion error: chain height {chain_height} out of range")
    return IndexerState(
        chain_height=chain_height,
        indexer_height=tip.indexer_height,
        indexer_tip_hash=tip.indexer_tip_hash,
    )


def cache_size_for(mem_alloc_mb: int) -> int:
    """Pubkey cache capacity for a memory allowance in megabytes."""
    return (mem_alloc_mb * 1_000_000 // PUBKEY_SIZE) * 2


def index_block(
    store: Store,
    block: Block,
    block_hash: str,
    height: int,
    cache: GrpHashset,
    logger: Logger | None = None,
) -> None:
    """Index one block and commit it, together with the new tip, atomically."""
    logger = logger if logger is not None else Logger()
    batch = StagedBatch(store)

    logger.start_timer("save_utxo_mappings")
    for tx in block.transactions:
        txid = tx.txid()
        for vout, output in enumerate(tx.outputs):
            save_utxo_script_mapping(batch, txid, vout, output.script_pubkey)
            logger.increment_counter("saved_utxos", 1)
    logger.stop_timer("save_utxo_mappings")

    logger.start_timer("get_used_utxos_for_block")
    vins = block.inputs()
    utxo_scripts = bulk_get_utxo_script_mappings(
        batch, [(vin.prev_txid, vin.prev_vout) for vin in vins]
    )
    logger.stop_timer("get_used_utxos_for_block")

    logger.start_timer("process_vins")
    for vin in vins:
        outpoint_key = get_utxo_db_key(vin.prev_txid, vin.prev_vout)
        fund_script = utxo_scripts.get(outpoint_key)
        if fund_script is None:
            continue

        seek = try_peek_pubkey(fund_script, vin.script_sig, vin.witness) or b""
        if seek in cache:
            logger.increment_counter("cache_hits", 1)
            continue

        try:
            pubkey = get_pub_key(fund_script, vin.script_sig, vin.witness)
        except BlockchainError as exc:
            logger.increment_counter("failed_deserializations", 1)
            error(f"Failed to deserialize pubkey: {exc}")
            continue

        cache.insert(seek or pubkey)
        save_decoded_script_mapping(batch, pubkey, outpoint_key)
        del utxo_scripts[outpoint_key]
        logger.increment_counter("pmap_mappings", 4)

    logger.increment_counter("transactions_processed", len(block.transactions))
    logger.stop_timer("process_vins")

    save_new_indexer_tip(batch, IndexerTipState(indexer_height=height, indexer_tip_hash=block_hash))

    logger.start_timer("write_all")
    store.write(batch)
    logger.stop_timer("write_all")


def check_reorg(store: Store, rpc: Node) -> IndexerState:
    """Fail if the stored tip is not the node's block at that height."""
    state = get_indexer_state(store, rpc)
    actual = rpc.get_block_hash(state.indexer_height)
    if state.indexer_tip_hash != actual:
        error_panic(
            f"{colored('Reorg detected! Local DB is out of sync with node.', 'red', attrs=['bold'])}"
            f", expected parent: {state.indexer_tip_hash}, got: {actual}"
        )
    return state


def run_indexer(
    config: IndexerConfig,
    store: Store,
    rpc: Node,
    shutdown: threading.Event | None = None,
) -> None:
    """Index blocks from the node until ``shutdown`` is set."""
    shutdown = shutdown if shutdown is not None else threading.Event()
    logger = Logger()
    info(f"Using a max_alloc for pubkey_hset of: {config.mem_alloc_pubkey_hset}mb")
    cache = GrpHashset(cache_size_for(config.mem_alloc_pubkey_hset))

    check_reorg(store, rpc)

    while not shutdown.is_set():
        state = get_indexer_state(store, rpc)
        info(
            f"{colored('[INDEXER] Indexing @ state: ', 'cyan')}: "
            f"{state.indexer_height}/{state.chain_height}"
        )
        logger.start_timer("total_elapsed_time")
        log_iter = 0

        for height in range(state.indexer_height, state.chain_height):
            if shutdown.is_set():
                return
            logger.start_timer("rpc")
            block_hash = rpc.get_block_hash(height)
            block = rpc.get_block(block_hash)
            logger.stop_timer("rpc")

            index_block(store, block, block_hash, height, cache, logger)

            log_iter += 1
            if log_iter >= config.log_interval:
                success(f"[INDEXER] Processed blocks: #{height - config.log_interval} -> {height}")
                logger.stop_timer("total_elapsed_time")
                logger.consume()
                log_iter = 0

        success(
            f"\n[INDEXER] Block chunk finished processing, waiting {int(LOOP_INTERVAL * 1000)}ms "
            "before checking for new state"
        )
        shutdown.wait(LOOP_INTERVAL)