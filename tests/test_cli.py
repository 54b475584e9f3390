import json
import socket

import pytest
import responses

from pubdex.chain import GENESIS_HASH
from pubdex.cli import main

RPC_URL = "http://node.example.com:8332/"


def _write_config(tmp_path, ip="127.0.0.1", port=8080):
    config = tmp_path / "config.toml"
    config.write_text(
        f"""
[rocksdb]
path = "{(tmp_path / 'db').as_posix()}"

[api]
ip = "{ip}"
port = {port}

[bitcoin_rpc]
rpc_url = "{RPC_URL}"
rpc_user = "user"
rpc_password = "password"

[indexer]
mem_alloc_pubkey_hset = 1
log_interval = 10
"""
    )
    return str(config)


def _node(request):
    body = json.loads(request.body)
    results = {"getblockcount": 0, "getblockhash": GENESIS_HASH}
    payload = {"result": results.get(body["method"]), "error": None, "id": body["id"]}
    return 200, {"Content-Type": "application/json"}, json.dumps(payload)


@pytest.fixture
def node():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        rsps.add_callback(responses.POST, RPC_URL, callback=_node)
        yield rsps


def test_missing_config_argument_exits():
    with pytest.raises(SystemExit) as info:
        main([])
    assert info.value.code == 2


def test_unreadable_config_fails(tmp_path, capsys):
    assert main(["--config", str(tmp_path / "absent.toml")]) == 1
    assert "Failed to get config file" in capsys.readouterr().err


def test_invalid_api_ip_fails_after_opening_db(tmp_path, capsys, node):
    path = _write_config(tmp_path, ip="not-an-ip")
    assert main(["--config", path]) == 1
    assert "Api Error: Network error" in capsys.readouterr().err
    assert (tmp_path / "db").is_dir()


def test_occupied_port_fails(tmp_path, capsys, node):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as occupied:
        occupied.bind(("127.0.0.1", 0))
        occupied.listen(1)
        path = _write_config(tmp_path, port=occupied.getsockname()[1])
        assert main(["--config", path]) == 1
    assert "Api Error: IO error" in capsys.readouterr().err