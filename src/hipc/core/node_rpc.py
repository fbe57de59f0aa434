"""
Helpers for the operator's local node and host.

LocalNodeRPC speaks plain JSON-RPC over HTTP (author_insertKey,
system_localPeerId). The remaining helpers read the IPFS daemon identity
and local tool versions.
"""

import json
import logging
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from hipc.core.exceptions import DecodeError, HipcError, TransportError

logger = logging.getLogger(__name__)

KEY_TYPE = "hips"
NOT_INSTALLED = "Not installed"


class LocalNodeRPC:
    """JSON-RPC client for node-local methods"""

    def __init__(self, rpc_url: str, timeout: float = 30.0):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self._next_id = 1

    def _request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """POST one JSON-RPC request and return its result"""
        payload = {"jsonrpc": "2.0", "id": self._next_id, "method": method, "params": params or []}
        self._next_id += 1
        logger.debug("Node RPC request: %s %s", method, self.rpc_url)
        try:
            response = requests.post(self.rpc_url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.RequestException as e:
            logger.error("Node RPC error: %s", e)
            raise TransportError(f"{method} failed: {e}", details={"url": self.rpc_url}) from e
        except ValueError as e:
            raise DecodeError(f"{method} returned invalid JSON: {e}") from e

        if "error" in body:
            error = body["error"] or {}
            raise HipcError(
                f"{method} rejected: {error.get('message', error)}",
                details={"code": error.get("code"), "method": method},
            )
        return body.get("result")

    def insert_key(self, suri: str, public_key: str, key_type: str = KEY_TYPE) -> Any:
        """Insert a session key into the node keystore"""
        result = self._request("author_insertKey", [key_type, suri, public_key])
        logger.info("Key inserted", extra={"event": "node.key_inserted", "key_type": key_type})
        return result

    def local_peer_id(self) -> str:
        """libp2p peer id of the node"""
        result = self._request("system_localPeerId")
        if not result:
            raise DecodeError("No result in system_localPeerId response")
        return str(result)


def read_ipfs_node_id(config_path: str) -> str:
    """Identity.PeerID from an IPFS daemon config file."""
    path = Path(config_path).expanduser()
    try:
        config: Dict[str, Any] = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise HipcError(f"Unable to read IPFS config {path}: {e}", details={"path": str(path)}) from e
    except ValueError as e:
        raise DecodeError(f"IPFS config {path} is not valid JSON: {e}") from e
    try:
        return config["Identity"]["PeerID"]
    except (KeyError, TypeError):
        raise DecodeError("IPFS config has no Identity.PeerID", map_name=str(path), field="Identity.PeerID") from None


def tool_version(command: str) -> str:
    """First line of `command --version`, or 'Not installed'."""
    try:
        completed = subprocess.run(
            [command, "--version"], capture_output=True, text=True, timeout=10, check=False
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug("Version probe for %s failed: %s", command, e)
        return NOT_INSTALLED
    output = (completed.stdout or completed.stderr).strip()
    return output.splitlines()[0] if output else NOT_INSTALLED
