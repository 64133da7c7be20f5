from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping

from dotenv import dotenv_values
from eth_account import Account
from eth_utils import is_address, to_checksum_address

from .chain import VerifierEndpoint
from .errors import InvalidConfigError, MissingConfigError

logger = logging.getLogger(__name__)

DEFAULT_CALL_TIMEOUT = 60.0

ENV_VARS: Dict[str, str] = {
    "rpc_url": "RPC_URL",
    "private_key": "PRIVATE_KEY",
    "verifier_address": "VERIFIER_ADDRESS",
    "call_timeout": "CALL_TIMEOUT",
    "broadcast": "BROADCAST",
}

_PRIVATE_KEY = re.compile(r"(0x)?[0-9a-fA-F]{64}")
_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


def _require(raw: Mapping[str, Any], name: str, label: str) -> str:
    value = raw.get(name)
    if value is None or str(value).strip() == "":
        raise MissingConfigError(label)
    return str(value).strip()


def _parse_timeout(value: Any, label: str) -> float:
    if value is None or value == "":
        return DEFAULT_CALL_TIMEOUT
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        raise InvalidConfigError(label, f"expected a number of seconds, got {value!r}") from None
    if timeout <= 0:
        raise InvalidConfigError(label, "must be positive")
    return timeout


def _parse_flag(value: Any, label: str) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    normalized = str(value).strip().lower()
    if normalized in _TRUTHY:
        return True
    if normalized in _FALSY:
        return False
    raise InvalidConfigError(label, f"expected a boolean, got {value!r}")


@dataclass
class EnvironmentConfig:
    """Parameters needed to reach the verifier contract.

    ``private_key`` is excluded from ``repr`` and from :meth:`dump`; use
    :attr:`signer_address` when an identifier is needed in diagnostics.
    """

    rpc_url: str
    verifier_address: str
    private_key: str = field(repr=False)
    call_timeout: float = DEFAULT_CALL_TIMEOUT
    broadcast: bool = False

    def __post_init__(self) -> None:
        if not self.rpc_url:
            raise MissingConfigError(ENV_VARS["rpc_url"])
        if not self.verifier_address:
            raise MissingConfigError(ENV_VARS["verifier_address"])
        if not self.private_key:
            raise MissingConfigError(ENV_VARS["private_key"])
        if not is_address(self.verifier_address):
            raise InvalidConfigError(ENV_VARS["verifier_address"], f"not an address: {self.verifier_address!r}")
        self.verifier_address = to_checksum_address(self.verifier_address)
        if not _PRIVATE_KEY.fullmatch(self.private_key):
            # Never echo the value back.
            raise InvalidConfigError(ENV_VARS["private_key"], "expected a 32-byte hex key")
        self.call_timeout = _parse_timeout(self.call_timeout, ENV_VARS["call_timeout"])
        self.broadcast = _parse_flag(self.broadcast, ENV_VARS["broadcast"])

    @property
    def endpoint(self) -> VerifierEndpoint:
        return VerifierEndpoint(rpc_url=self.rpc_url, address=self.verifier_address)

    @property
    def signer_address(self) -> str:
        return Account.from_key(self.private_key).address

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        env_file: Path | None = None,
    ) -> "EnvironmentConfig":
        raw: Dict[str, Any] = {}
        if env_file is not None:
            raw.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
        raw.update(os.environ if environ is None else environ)
        config = cls(
            rpc_url=_require(raw, ENV_VARS["rpc_url"], ENV_VARS["rpc_url"]),
            verifier_address=_require(raw, ENV_VARS["verifier_address"], ENV_VARS["verifier_address"]),
            private_key=_require(raw, ENV_VARS["private_key"], ENV_VARS["private_key"]),
            call_timeout=raw.get(ENV_VARS["call_timeout"]),
            broadcast=raw.get(ENV_VARS["broadcast"]),
        )
        logger.debug("Loaded config from environment: %r", config)
        return config

    @classmethod
    def load(cls, path: Path, environ: Mapping[str, str] | None = None) -> "EnvironmentConfig":
        with path.open("r", encoding="utf-8") as handle:
            raw = json.load(handle)
        environ = os.environ if environ is None else environ
        # The key may be kept out of the file and supplied through the environment.
        private_key = raw.get("private_key") or environ.get(ENV_VARS["private_key"])
        return cls(
            rpc_url=_require(raw, "rpc_url", ENV_VARS["rpc_url"]),
            verifier_address=_require(raw, "verifier_address", ENV_VARS["verifier_address"]),
            private_key=_require({"k": private_key}, "k", ENV_VARS["private_key"]),
            call_timeout=raw.get("call_timeout"),
            broadcast=raw.get("broadcast", False),
        )

    def dump(self, path: Path) -> None:
        payload: Dict[str, Any] = {
            "rpc_url": self.rpc_url,
            "verifier_address": self.verifier_address,
            "call_timeout": self.call_timeout,
            "broadcast": self.broadcast,
        }
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2)
