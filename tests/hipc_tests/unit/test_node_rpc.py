"""
Local node JSON-RPC and host helper tests.
"""

import json
from unittest.mock import Mock, patch

import pytest
import requests

from hipc.core.exceptions import DecodeError, HipcError, TransportError
from hipc.core.node_rpc import NOT_INSTALLED, LocalNodeRPC, read_ipfs_node_id, tool_version


def rpc_response(body):
    response = Mock()
    response.raise_for_status.return_value = None
    response.json.return_value = body
    return response


class TestLocalNodeRPC:

    @patch('requests.post')
    def test_insert_key_payload(self, mock_post):
        mock_post.return_value = rpc_response({"jsonrpc": "2.0", "id": 1, "result": None})

        LocalNodeRPC("http://localhost:9944").insert_key("seed words", "0xabc")

        payload = mock_post.call_args.kwargs["json"]
        assert payload["method"] == "author_insertKey"
        assert payload["params"] == ["hips", "seed words", "0xabc"]

    @patch('requests.post')
    def test_local_peer_id(self, mock_post):
        mock_post.return_value = rpc_response({"result": "12D3KooWPeer"})
        assert LocalNodeRPC("http://localhost:9944").local_peer_id() == "12D3KooWPeer"

    @patch('requests.post')
    def test_empty_peer_id(self, mock_post):
        mock_post.return_value = rpc_response({"result": None})
        with pytest.raises(DecodeError):
            LocalNodeRPC("http://localhost:9944").local_peer_id()

    @patch('requests.post')
    def test_rpc_error_object(self, mock_post):
        mock_post.return_value = rpc_response({"error": {"code": -32601, "message": "Method not found"}})
        with pytest.raises(HipcError, match="Method not found"):
            LocalNodeRPC("http://localhost:9944").local_peer_id()

    @patch('requests.post')
    def test_connection_failure(self, mock_post):
        mock_post.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(TransportError):
            LocalNodeRPC("http://localhost:9944").local_peer_id()

    @patch('requests.post')
    def test_invalid_json(self, mock_post):
        response = rpc_response(None)
        response.json.side_effect = ValueError("Expecting value")
        mock_post.return_value = response
        with pytest.raises(DecodeError):
            LocalNodeRPC("http://localhost:9944").local_peer_id()


class TestIpfsConfig:

    def test_reads_peer_id(self, tmp_path):
        path = tmp_path / "config"
        path.write_text(json.dumps({"Identity": {"PeerID": "QmPeer"}}), encoding="utf-8")
        assert read_ipfs_node_id(str(path)) == "QmPeer"

    def test_missing_file(self, tmp_path):
        with pytest.raises(HipcError):
            read_ipfs_node_id(str(tmp_path / "missing"))

    def test_missing_identity(self, tmp_path):
        path = tmp_path / "config"
        path.write_text("{}", encoding="utf-8")
        with pytest.raises(DecodeError):
            read_ipfs_node_id(str(path))


def test_tool_version_missing_binary():
    assert tool_version("definitely-not-a-real-binary-hipc") == NOT_INSTALLED
