"""proofcall: Noir proof encoding and EVM verifier calls."""

from .chain import CallOutcome, CastVerifierClient, VerifierClient, VerifierEndpoint, Web3VerifierClient
from .codec import (
    EncodedCall,
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
from .config import EnvironmentConfig
from .errors import (
    InvalidConfigError,
    MalformedEncodingError,
    MissingConfigError,
    NetworkError,
    OutOfRangeError,
    ProofCallError,
    ProverError,
    RevertError,
    RunCancelledError,
)
from .pipeline import PipelineRunResult, PipelineRunner, Stage, run_batch
from .prover import ArtifactProver, NoirProver, Prover, ProverOutput, read_artifacts, read_public_inputs

__all__ = [
    "CallOutcome",
    "CastVerifierClient",
    "VerifierClient",
    "VerifierEndpoint",
    "Web3VerifierClient",
    "EncodedCall",
    "decode_proof",
    "decode_public_input",
    "encode_call",
    "encode_proof",
    "encode_public_input",
    "encode_public_inputs",
    "encode_verify_calldata",
    "split_proof_with_inputs",
    "split_public_inputs",
    "EnvironmentConfig",
    "InvalidConfigError",
    "MalformedEncodingError",
    "MissingConfigError",
    "NetworkError",
    "OutOfRangeError",
    "ProofCallError",
    "ProverError",
    "RevertError",
    "RunCancelledError",
    "PipelineRunResult",
    "PipelineRunner",
    "Stage",
    "run_batch",
    "ArtifactProver",
    "NoirProver",
    "Prover",
    "ProverOutput",
    "read_artifacts",
    "read_public_inputs",
]
