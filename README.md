# pubdex

pubdex walks the Bitcoin main chain through a node's JSON-RPC interface.
When an output is spent, pubdex recovers the public key behind the spend and
records every address that key controls: P2PKH, P2WPKH, P2SH-P2WPKH and
P2TR. A small HTTP API answers two questions. Which public key is behind an
address? Which addresses belong to a public key?

## Installing

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Configuration

pubdex reads a TOML file. Every section and every field shown here must be
present. A missing section or field, or a value of the wrong type, is reported
on stderr and the command exits with status 1.

```toml
[rocksdb]
path = "./pubdex-data"

[api]
ip = "127.0.0.1"
port = 8080

[bitcoin_rpc]
rpc_url = "http://127.0.0.1:8332"
rpc_user = "admin"
rpc_password = "password"

[indexer]
mem_alloc_pubkey_hset = 1028   # megabytes for the in-memory seen-pubkey cache
log_interval = 10              # print timing and counter stats every N blocks
```

`rocksdb.path` names a directory. It is created if it does not exist, and the
index is kept in an SQLite file, `pubdex.sqlite3`, inside it. `api.ip` must be
an IPv4 address.

## Running

```
pubdex --config pubdex.toml
```

`-c` is short for `--config`. The command opens the index and indexes in a
background thread. It starts from the stored tip, or from genesis on the first
run. At the same time it serves the API in the foreground. Blocks are fetched
raw (`getblock` with verbosity 0) and parsed locally. Each block's writes and
the new tip are committed together.

At startup the stored tip hash is compared with the node's block hash at that
height. If they differ, pubdex reports a reorg and the process exits with
status 1. Any other indexer failure ends the process the same way. Press
Ctrl+C to shut down.

RPC calls are retried every second, up to 500 times, while the node is
warming up (error code -28) or cannot be reached. Other RPC errors are not
retried.

## HTTP API

### `GET /indexer-state`

```json
{"indexer_height": 840000, "indexer_tip_hash": "0000…"}
```

### `POST /aliases/single-pubkey`

The request body is `{"pubkey": "<hex-encoded public key>"}`. The addresses
are derived straight from the key, so the key need not be in the index. A
33-byte compressed key gives all four address forms. A 65-byte uncompressed
key gives only `p2pkh`, and the other fields are `null`.

```json
{
  "pubkey": "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798",
  "aliases": {
    "p2tr": "bc1p…",
    "p2wpkh": "bc1q…",
    "p2shp2wpkh": "3…",
    "p2pkh": "1…"
  }
}
```

### `POST /aliases/address`

The request body is `{"address": "<address>"}`. Any of the four address forms
can be used. The response has the same shape as above, for the public key that
the index has seen spending from that address.

Errors come back as `{"message": "…"}`. A missing field, bad hex, an invalid
key or an unknown address gets status 400. A failure to read the indexer state
gets status 500.

## Using it as a library

```python
from pubdex.addresses import get_address_mapping_from_pubkey

pubkey = bytes.fromhex(
    "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
)
mapping = get_address_mapping_from_pubkey(pubkey)
print(mapping.p2pkh, mapping.p2wpkh, mapping.p2shp2wpkh, mapping.p2tr)
```

- `pubdex.addresses.get_pub_key(fund_script, spend_script, witness)` returns
  the public key that spends a funding script. It handles P2PK, P2PKH, P2WPKH,
  P2SH-P2WPKH and key-path P2TR, and raises `BlockchainError` otherwise.
  `try_peek_pubkey` is a cheaper check that returns the identifying bytes or
  `None`.
- `pubdex.kvstore.Store(path)` is the byte key-value store. Pass `":memory:"`
  to keep it in memory. `StagedBatch(store)` holds writes whose reads fall
  through to the store, and `store.write(batch)` applies them atomically.
- `pubdex.index` holds the key layout and the index operations, such as
  `get_indexer_tip`, `save_decoded_script_mapping` and
  `get_aliases_from_address`.
- `pubdex.indexer.index_block(store, block, block_hash, height, cache)` indexes
  one parsed block. `run_indexer(config, store, rpc, shutdown)` follows a node
  until the `threading.Event` is set.
- `pubdex.rpc.RetryClient` is the retrying JSON-RPC client, and
  `pubdex.block.parse_block` parses raw block bytes.
- `pubdex.api.create_app(store)` builds the Flask application. Use it to mount
  the API inside another server.

## Limitations

- Only Bitcoin mainnet is supported. The network constants are fixed in
  `pubdex.chain`.
- A reorg is detected only at startup, and only reported. pubdex does not roll
  back blocks it has already indexed.
- The built-in server is the standard library's single-threaded WSGI server.
  For heavier traffic, serve `create_app(store)` with a WSGI server of your
  choice.