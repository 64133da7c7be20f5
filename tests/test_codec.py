import os

import pytest
from eth_abi import decode as abi_decode
from eth_utils import function_signature_to_4byte_selector

from proofcall.codec import (
    decode_proof,
    decode_public_input,
    encode_call,
    encode_proof,
    encode_public_input,
    encode_public_inputs,
    encode_verify_calldata,
    split_proof_with_inputs,
    split_public_inputs,
)
from proofcall.errors import MalformedEncodingError, OutOfRangeError


def test_single_byte_proof():
    assert encode_proof(b"\x0d") == "0x0d"


def test_empty_proof_encodes_to_prefix_only():
    assert encode_proof(b"") == "0x"
    assert decode_proof("0x") == b""


def test_proof_roundtrip_and_length():
    for blob in (bytes(range(256)), os.urandom(2144), b"\x00\x00", bytearray(b"\xff\x01")):
        encoded = encode_proof(blob)
        assert len(encoded) == 2 + 2 * len(blob)
        assert encoded == encoded.lower()
        assert decode_proof(encoded) == bytes(blob)


@pytest.mark.parametrize("bad", ["0d", "0x0", "0xzz", "0x0d 0e", "0x0d\n", "", "0X0d"])
def test_decode_proof_rejects_malformed(bad):
    with pytest.raises(MalformedEncodingError):
        decode_proof(bad)


def test_public_input_example():
    assert encode_public_input(13) == "0x000000000000000000000000000000000000000000000000000000000000000d"


@pytest.mark.parametrize("value", [0, 1, 42, 2**64, 2**255, 2**256 - 1])
def test_public_input_width_and_roundtrip(value):
    encoded = encode_public_input(value)
    assert len(encoded) == 66
    assert decode_public_input(encoded) == value


@pytest.mark.parametrize("value", [2**256, 2**256 + 1, 2**300, -1])
def test_public_input_out_of_range(value):
    with pytest.raises(OutOfRangeError) as excinfo:
        encode_public_input(value)
    assert excinfo.value.value == value


def test_public_input_rejects_non_int():
    with pytest.raises(TypeError):
        encode_public_input("13")
    with pytest.raises(TypeError):
        encode_public_input(True)


def test_decode_public_input_requires_full_word():
    with pytest.raises(MalformedEncodingError):
        decode_public_input("0x0d")


def test_public_inputs_keep_order():
    assert encode_public_inputs([1, 2]) != encode_public_inputs([2, 1])
    assert [decode_public_input(x) for x in encode_public_inputs([7, 3, 9])] == [7, 3, 9]


def test_out_of_range_in_sequence_is_not_skipped():
    with pytest.raises(OutOfRangeError):
        encode_public_inputs([1, 2**256, 3])


def test_encode_call():
    call = encode_call(b"\x0d", [13])
    assert call.proof == "0x0d"
    assert call.public_inputs == (encode_public_input(13),)


def test_split_public_inputs():
    blob = (42).to_bytes(32, "big") + (7).to_bytes(32, "big")
    assert split_public_inputs(blob) == [42, 7]
    assert split_public_inputs(b"") == []
    with pytest.raises(MalformedEncodingError):
        split_public_inputs(b"\x00" * 33)


def test_split_proof_with_inputs():
    blob = (42).to_bytes(32, "big") + b"proof-bytes"
    proof, inputs = split_proof_with_inputs(blob, 1)
    assert proof == b"proof-bytes"
    assert inputs == [42]
    with pytest.raises(MalformedEncodingError):
        split_proof_with_inputs(b"\x00" * 10, 1)


def test_verify_calldata_layout():
    calldata = encode_verify_calldata(b"\x0d\x0e", [13, 42])
    raw = decode_proof(calldata)
    assert raw[:4] == function_signature_to_4byte_selector("verify(bytes,bytes32[])")
    proof, inputs = abi_decode(["bytes", "bytes32[]"], raw[4:])
    assert proof == b"\x0d\x0e"
    assert [int.from_bytes(word, "big") for word in inputs] == [13, 42]
