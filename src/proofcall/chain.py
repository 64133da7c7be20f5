"""Chain-call collaborators for ``verify(bytes, bytes32[]) -> bool``."""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

import requests
from eth_account import Account
from web3 import Web3
from web3.exceptions import (
    BadFunctionCallOutput,
    ContractLogicError,
    TimeExhausted,
    Web3Exception,
    Web3RPCError,
)

from .codec import EncodedCall, VERIFY_SIGNATURE
from .errors import NetworkError, RevertError

logger = logging.getLogger(__name__)

VERIFIER_ABI: List[Dict[str, Any]] = [
    {
        "inputs": [
            {"internalType": "bytes", "name": "_proof", "type": "bytes"},
            {"internalType": "bytes32[]", "name": "_publicInputs", "type": "bytes32[]"},
        ],
        "name": "verify",
        "outputs": [{"internalType": "bool", "name": "", "type": "bool"}],
        "stateMutability": "view",
        "type": "function",
    }
]


@dataclass(frozen=True, slots=True)
class VerifierEndpoint:
    rpc_url: str
    address: str


@dataclass(frozen=True, slots=True)
class CallOutcome:
    verified: bool
    tx_hash: str | None = None


class VerifierClient(Protocol):
    def verify(self, endpoint: VerifierEndpoint, call: EncodedCall, *, timeout: float) -> CallOutcome: ...


class Web3VerifierClient:
    """Calls the verifier over JSON-RPC with web3.py.

    With ``broadcast`` enabled the call is simulated with ``eth_call`` first and
    then sent as a signed transaction; the simulated boolean is reported.
    """

    def __init__(self, private_key: str | None = None, *, broadcast: bool = False):
        if broadcast and not private_key:
            raise ValueError("Broadcasting requires a signing key.")
        self._private_key = private_key
        self.broadcast = broadcast

    def _contract(self, endpoint: VerifierEndpoint, timeout: float):
        w3 = Web3(Web3.HTTPProvider(endpoint.rpc_url, request_kwargs={"timeout": timeout}))
        contract = w3.eth.contract(address=Web3.to_checksum_address(endpoint.address), abi=VERIFIER_ABI)
        return w3, contract

    def verify(self, endpoint: VerifierEndpoint, call: EncodedCall, *, timeout: float) -> CallOutcome:
        w3, contract = self._contract(endpoint, timeout)
        function = contract.functions.verify(call.proof, list(call.public_inputs))
        try:
            if not self.broadcast:
                return CallOutcome(verified=bool(function.call()))
            return self._send(w3, function, timeout)
        except ContractLogicError as exc:
            raise RevertError(getattr(exc, "message", None) or str(exc)) from exc
        except requests.Timeout as exc:
            raise NetworkError(f"RPC request to {endpoint.rpc_url} timed out after {timeout}s") from exc
        except BadFunctionCallOutput as exc:
            # Empty return data: no contract deployed at the address on this chain.
            raise NetworkError(f"No verifier contract answered at {endpoint.address} on {endpoint.rpc_url}: {exc}") from exc
        except (requests.RequestException, Web3RPCError) as exc:
            raise NetworkError(f"RPC request to {endpoint.rpc_url} failed: {exc}") from exc
        except Web3Exception as exc:
            raise NetworkError(f"Verifier call to {endpoint.address} failed: {exc}") from exc

    def _send(self, w3: Web3, function, timeout: float) -> CallOutcome:
        account = Account.from_key(self._private_key)
        verified = bool(function.call({"from": account.address}))
        tx = function.build_transaction(
            {
                "from": account.address,
                "nonce": w3.eth.get_transaction_count(account.address),
                "chainId": w3.eth.chain_id,
            }
        )
        signed = account.sign_transaction(tx)
        tx_hash = Web3.to_hex(w3.eth.send_raw_transaction(signed.raw_transaction))
        logger.info("Broadcast verify transaction %s from %s", tx_hash, account.address)
        try:
            receipt = w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        except TimeExhausted as exc:
            raise NetworkError(f"Timed out waiting for receipt of {tx_hash}: {exc}", tx_hash=tx_hash) from exc
        except (requests.RequestException, Web3Exception) as exc:
            raise NetworkError(f"Lost track of broadcast transaction {tx_hash}: {exc}", tx_hash=tx_hash) from exc
        if receipt["status"] == 0:
            raise RevertError(f"transaction {tx_hash} reverted", tx_hash=tx_hash)
        return CallOutcome(verified=verified, tx_hash=tx_hash)


class CastVerifierClient:
    """Calls the verifier through Foundry's ``cast call``. Read-only."""

    def __init__(self, cast: str = "cast"):
        self.cast = cast

    def _args(self, endpoint: VerifierEndpoint, call: EncodedCall) -> List[str]:
        return [
            self.cast,
            "call",
            endpoint.address,
            f"{VERIFY_SIGNATURE}(bool)",
            call.proof,
            "[" + ",".join(call.public_inputs) + "]",
            "--rpc-url",
            endpoint.rpc_url,
        ]

    def verify(self, endpoint: VerifierEndpoint, call: EncodedCall, *, timeout: float) -> CallOutcome:
        if shutil.which(self.cast) is None:
            raise NetworkError(f"cast executable not found: {self.cast}")
        args = self._args(endpoint, call)
        logger.debug("Running %s call %s against %s", self.cast, endpoint.address, endpoint.rpc_url)
        try:
            proc = subprocess.run(args, capture_output=True, text=True, timeout=timeout)
        except subprocess.TimeoutExpired as exc:
            raise NetworkError(f"cast call timed out after {timeout}s") from exc
        if proc.returncode != 0:
            stderr = proc.stderr.strip()
            reason = _revert_reason(stderr)
            if reason is not None:
                raise RevertError(reason)
            raise NetworkError(f"cast call failed (exit {proc.returncode}): {stderr}")
        return CallOutcome(verified=_parse_bool(proc.stdout))


def _revert_reason(stderr: str) -> Optional[str]:
    marker = "execution reverted"
    lowered = stderr.lower()
    if marker not in lowered:
        return None
    tail = stderr[lowered.index(marker) + len(marker):].lstrip(" :\n")
    return tail.splitlines()[0].strip() if tail.strip() else marker


def _parse_bool(stdout: str) -> bool:
    value = stdout.strip().lower()
    if value == "true":
        return True
    if value == "false":
        return False
    raise NetworkError(f"Unexpected cast output: {stdout.strip()!r}")
