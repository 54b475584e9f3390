"""HTTP API exposing the indexer state and address aliases."""

from __future__ import annotations

import binascii
import ipaddress
from wsgiref.simple_server import make_server

from flask import Flask, jsonify, request

from .errors import BlockchainError, DBError
from .index import get_aliases_from_address, get_aliases_from_pubkey, get_indexer_tip
from .kvstore import Store


class ApiError(Exception):
    """The API server could not be started."""

    @classmethod
    def network(cls, exc: object) -> ApiError:
        return cls(f"Network error: {exc}")

    @classmethod
    def io(cls, exc: object) -> ApiError:
        return cls(f"IO error: {exc}")


def _error(message: str, status: int):
    return jsonify({"message": message}), status


def _field(name: str) -> str | None:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return None
    value = body.get(name)
    return value if isinstance(value, str) else None


def create_app(store: Store) -> Flask:
    """Build the WSGI application serving reads from ``store``."""
    app = Flask("pubdex")

    @app.get("/indexer-state")
    def indexer_state():
        try:
            tip = get_indexer_tip(store)
        except DBError as exc:
            return _error(str(exc), 500)
        return jsonify(tip.to_json())

    @app.post("/aliases/single-pubkey")
    def aliases_pubkey():
        pubkey_hex = _field("pubkey")
        if pubkey_hex is None:
            return _error("Json deserialize error: missing field `pubkey`", 400)
        try:
            pubkey = binascii.unhexlify(pubkey_hex)
        except (binascii.Error, ValueError) as exc:
            return _error(f"Invalid hex in pubkey: {exc}", 400)
        try:
            response = get_aliases_from_pubkey(pubkey)
        except BlockchainError:
            return _error(f"No aliases found for pubkey: {pubkey_hex}", 400)
        return jsonify(response.to_json())

    @app.post("/aliases/address")
    def aliases_address():
        address = _field("address")
        if address is None:
            return _error("Json deserialize error: missing field `address`", 400)
        try:
            response = get_aliases_from_address(store, address)
        except DBError:
            return _error(f"No aliases found for address: {address}", 400)
        return jsonify(response.to_json())

    return app


def start_api_server(store: Store, ip: str, port: int) -> None:
    """Bind to an IPv4 address and serve the API until interrupted."""
    try:
        address = ipaddress.IPv4Address(ip)
    except ValueError as exc:
        raise ApiError.network(exc) from exc
    if not 0 <= port <= 0xFFFF:
        raise ApiError.network(f"port {port} out of range")
    try:
        server = make_server(str(address), port, create_app(store))
    except OSError as exc:
        raise ApiError.io(exc) from exc
    print(f"API server started successfully on {ip}:{port}")
    with server:
        server.serve_forever()