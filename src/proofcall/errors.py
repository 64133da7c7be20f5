"""Error taxonomy shared by the codec, prover, chain and pipeline layers."""

from __future__ import annotations


class ProofCallError(Exception):
    """Base class for every failure surfaced by proofcall.

    ``tx_hash`` is set once a transaction has been broadcast, so callers can
    look it up instead of submitting again.
    """

    tx_hash: str | None = None

    @property
    def kind(self) -> str:
        return type(self).__name__


class OutOfRangeError(ProofCallError, ValueError):
    """A public input does not fit in a 256-bit word."""

    def __init__(self, value: int):
        self.value = value
        super().__init__(f"Public input out of range for a 256-bit word: {value}")


class MalformedEncodingError(ProofCallError, ValueError):
    pass


class ProverError(ProofCallError):
    """The external proving tool failed. ``stderr`` is kept verbatim."""

    def __init__(self, message: str, *, stderr: str = "", returncode: int | None = None):
        self.stderr = stderr
        self.returncode = returncode
        detail = f"{message}\n{stderr.rstrip()}" if stderr.strip() else message
        super().__init__(detail)


class ConfigError(ProofCallError):
    pass


class MissingConfigError(ConfigError):
    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Missing required configuration value: {field}")


class InvalidConfigError(ConfigError):
    def __init__(self, field: str, reason: str):
        self.field = field
        super().__init__(f"Invalid configuration value for {field}: {reason}")


class NetworkError(ProofCallError):
    def __init__(self, message: str, *, tx_hash: str | None = None):
        self.tx_hash = tx_hash
        super().__init__(message)


class RevertError(ProofCallError):
    def __init__(self, reason: str, *, tx_hash: str | None = None):
        self.reason = reason
        self.tx_hash = tx_hash
        super().__init__(f"Verifier call reverted: {reason}")


class RunCancelledError(ProofCallError):
    pass
