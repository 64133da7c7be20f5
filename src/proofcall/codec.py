"""Encodings between prover artifacts and EVM verifier call arguments.

A proof is carried as a ``bytes`` argument and each public input as one
``bytes32`` word, matching ``verify(bytes, bytes32[]) -> bool``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from eth_abi import encode as abi_encode
from eth_utils import function_signature_to_4byte_selector

from .errors import MalformedEncodingError, OutOfRangeError

HEX_PREFIX = "0x"
WORD_BYTES = 32
WORD_LIMIT = 1 << (8 * WORD_BYTES)
VERIFY_SIGNATURE = "verify(bytes,bytes32[])"

_HEX_DIGITS = re.compile(r"[0-9a-fA-F]*")


@dataclass(frozen=True, slots=True)
class EncodedCall:
    proof: str
    public_inputs: Tuple[str, ...]


def encode_proof(blob: bytes) -> str:
    return HEX_PREFIX + bytes(blob).hex()


def _strip_prefix(encoded: str) -> str:
    if not isinstance(encoded, str) or not encoded.startswith(HEX_PREFIX):
        raise MalformedEncodingError("Encoding must be a 0x-prefixed hex string.")
    digits = encoded[len(HEX_PREFIX):]
    if not _HEX_DIGITS.fullmatch(digits):
        raise MalformedEncodingError("Encoding contains non-hex characters.")
    if len(digits) % 2:
        raise MalformedEncodingError(f"Encoding has an odd number of hex digits ({len(digits)}).")
    return digits


def decode_proof(encoded: str) -> bytes:
    return bytes.fromhex(_strip_prefix(encoded))


def encode_public_input(value: int) -> str:
    """Left-pad ``value`` to a 32-byte big-endian word.

    Values that need more than 256 bits (or are negative) raise
    :class:`OutOfRangeError`; they are never masked down to size.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"Public input must be an int, got {type(value).__name__}.")
    if value < 0 or value >= WORD_LIMIT:
        raise OutOfRangeError(value)
    return HEX_PREFIX + value.to_bytes(WORD_BYTES, "big").hex()


def decode_public_input(encoded: str) -> int:
    digits = _strip_prefix(encoded)
    if len(digits) != 2 * WORD_BYTES:
        raise MalformedEncodingError(
            f"Public input encoding must hold exactly {WORD_BYTES} bytes, got {len(digits) // 2}."
        )
    return int(digits, 16)


def encode_public_inputs(values: Iterable[int]) -> List[str]:
    return [encode_public_input(value) for value in values]


def encode_call(blob: bytes, values: Sequence[int]) -> EncodedCall:
    return EncodedCall(proof=encode_proof(blob), public_inputs=tuple(encode_public_inputs(values)))


def split_public_inputs(blob: bytes) -> List[int]:
    """Parse a ``public_inputs`` artifact of concatenated 32-byte field elements."""
    if len(blob) % WORD_BYTES:
        raise MalformedEncodingError(
            f"Public inputs artifact length {len(blob)} is not a multiple of {WORD_BYTES}."
        )
    return [
        int.from_bytes(blob[offset : offset + WORD_BYTES], "big")
        for offset in range(0, len(blob), WORD_BYTES)
    ]


def split_proof_with_inputs(blob: bytes, count: int) -> Tuple[bytes, List[int]]:
    # Older bb releases prepend the public inputs to the proof file.
    if count < 0:
        raise ValueError("Public input count must be non-negative.")
    head = count * WORD_BYTES
    if len(blob) < head:
        raise MalformedEncodingError(
            f"Proof artifact of {len(blob)} bytes cannot hold {count} public inputs."
        )
    return bytes(blob[head:]), split_public_inputs(blob[:head])


def encode_verify_calldata(blob: bytes, values: Sequence[int]) -> str:
    words = [decode_proof(word) for word in encode_public_inputs(values)]
    selector = function_signature_to_4byte_selector(VERIFY_SIGNATURE)
    return encode_proof(selector + abi_encode(["bytes", "bytes32[]"], [bytes(blob), words]))
