"""Command-line entry point: runs the indexer and the API server together."""

from __future__ import annotations

import os
import sys
import threading

from termcolor import colored

from .api import ApiError, start_api_server
from .config import Config, get_config
from .errors import DBError
from .indexer import run_indexer
from .kvstore import Store, create_database
from .logger import FatalError, error_panic
from .rpc import RetryClient

_JOIN_TIMEOUT = 10.0


def _indexer_worker(config: Config, store: Store, shutdown: threading.Event) -> None:
    rpc = RetryClient(
        config.bitcoin_rpc.rpc_url,
        config.bitcoin_rpc.rpc_user,
        config.bitcoin_rpc.rpc_password,
        shutdown,
    )
    try:
        run_indexer(config.indexer, store, rpc, shutdown)
    except Exception as exc:  # noqa: BLE001 - any indexer failure ends the process
        if shutdown.is_set():
            return
        try:
            error_panic(f"Indexer Error: {exc}")
        except FatalError:
            pass
        sys.stdout.flush()
        sys.stderr.flush()
        os._exit(1)


def main(argv: list[str] | None = None) -> int:
    """Load the configuration, start indexing and serve the API."""
    print(colored("PUBDEX", "cyan") + "\n\n" + colored("Loading db...", "cyan", attrs=["bold"]))

    try:
        config = get_config(argv)
    except (OSError, ValueError):
        return 1

    try:
        store = create_database(config.rocksdb.path)
    except DBError as exc:
        print(f"DB Error: {exc}", file=sys.stderr)
        return 1

    shutdown = threading.Event()
    with store:
        print(colored("Starting indexer...", "cyan", attrs=["bold"]))
        worker = threading.Thread(
            target=_indexer_worker, args=(config, store, shutdown), name="indexer", daemon=True
        )
        worker.start()
        try:
            print(colored("Starting api server...", "cyan", attrs=["bold"]))
            start_api_server(store, config.api.ip, config.api.port)
        except ApiError as exc:
            print(f"Api Error: {exc}", file=sys.stderr)
            return 1
        except KeyboardInterrupt:
            print(colored("\nCTRL+C received. Shutting down...", "yellow", attrs=["bold"]),
                  file=sys.stderr)
            return 1
        finally:
            shutdown.set()
            worker.join(_JOIN_TIMEOUT)
    return 0