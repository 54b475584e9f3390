"""JSON-RPC client for a Bitcoin node that retries transient failures."""

from __future__ import annotations

import itertools
import sys
import threading
import time

import requests
from termcolor import colored

from .block import Block, parse_block
from .errors import IndexerError
from .logger import error_panic, warn

RETRY_INTERVAL = 1.0
RETRY_ATTEMPTS = 500
RPC_IN_WARMUP = -28


class RpcError(IndexerError):
    """The node answered a call with an error."""

    def __init__(self, code: int | None, message: str):
        super().__init__(f"Bitcoin RPC Error: {message} (code {code})")
        self.code = code
        self.message = message


class _Transient(Exception):
    pass


class RetryClient:
    """Calls a node, retrying while it is warming up or unreachable."""

    def __init__(
        self,
        url: str,
        user: str,
        password: str,
        shutdown: threading.Event | None = None,
        retry_interval: float = RETRY_INTERVAL,
        retry_attempts: int = RETRY_ATTEMPTS,
    ):
        self.url = url
        self.shutdown = shutdown
        self.retry_interval = retry_interval
        self.retry_attempts = retry_attempts
        self._session = requests.Session()
        self._session.auth = (user, password)
        self._ids = itertools.count(1)

    def _interrupted(self) -> bool:
        return self.shutdown is not None and self.shutdown.is_set()

    def _pause(self) -> None:
        if self.shutdown is not None:
            self.shutdown.wait(self.retry_interval)
        else:
            time.sleep(self.retry_interval)

    def _request(self, method: str, params: list):
        payload = {"jsonrpc": "1.0", "id": next(self._ids), "method": method, "params": params}
        try:
            response = self._session.post(self.url, json=payload)
            body = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise _Transient(str(exc)) from exc
        if not isinstance(body, dict):
            raise RpcError(None, "malformed response")
        err = body.get("error")
        if err:
            code = err.get("code") if isinstance(err, dict) else None
            message = err.get("message", "") if isinstance(err, dict) else str(err)
            if code == RPC_IN_WARMUP:
                raise _Transient(message)
            raise RpcError(code, message)
        return body.get("result")

    def call(self, method: str, *args):
        """Invoke ``method`` with positional ``args`` and return its result."""
        for attempt in range(self.retry_attempts):
            if self._interrupted():
                print(colored("Interrupted by user. Exiting.", "red", attrs=["bold"]), file=sys.stderr)
                raise SystemExit(1)
            try:
                return self._request(method, list(args))
            except _Transient:
                warn(
                    f"RPC Call Failed: : {method} -  ({attempt}/{self.retry_attempts} attempts) "
                    f"(retrying in {int(self.retry_interval * 1000)}ms...)"
                )
                self._pause()
        error_panic("Indexer Error: Maximum amount of retries for RPC reached! Exiting")

    def get_block_count(self) -> int:
        return int(self.call("getblockcount"))

    def get_block_hash(self, height: int) -> str:
        return str(self.call("getblockhash", height))

    def get_block(self, block_hash: str) -> Block:
        raw = self.call("getblock", block_hash, 0)
        if not isinstance(raw, str):
            raise RpcError(None, "expected hex-encoded block")
        return parse_block(bytes.fromhex(raw))