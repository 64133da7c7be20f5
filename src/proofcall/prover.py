from __future__ import annotations

import json
import logging
import shutil
import subprocess
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping, Protocol, Sequence, Tuple

import tomli_w

from .codec import split_proof_with_inputs, split_public_inputs
from .errors import MalformedEncodingError, NetworkError, ProverError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ProverOutput:
    proof: bytes
    public_inputs: Tuple[int, ...] = ()


class Prover(Protocol):
    def prove(self, circuit_inputs: Mapping[str, Any]) -> ProverOutput: ...


def _parse_scalar(raw: Any) -> int:
    if isinstance(raw, bool):
        raise MalformedEncodingError(f"Public input must be an integer, got {raw!r}")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str):
        try:
            return int(raw, 0)
        except ValueError:
            raise MalformedEncodingError(f"Public input is not an integer literal: {raw!r}") from None
    raise MalformedEncodingError(f"Public input must be an integer, got {type(raw).__name__}")


def read_public_inputs(path: Path) -> List[int]:
    """Read public inputs from a bb binary artifact or a JSON list."""
    if path.suffix == ".json":
        try:
            with path.open("r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except json.JSONDecodeError as exc:
            raise MalformedEncodingError(f"{path} is not valid JSON: {exc}") from exc
        if isinstance(raw, dict):
            raw = raw.get("public_inputs", raw.get("inputs"))
        if not isinstance(raw, list):
            raise MalformedEncodingError(f"{path} does not hold a list of public inputs.")
        return [_parse_scalar(item) for item in raw]
    return split_public_inputs(path.read_bytes())


def read_artifacts(
    proof_path: Path,
    public_inputs_path: Path | None = None,
    *,
    embedded_inputs: int | None = None,
) -> ProverOutput:
    if not proof_path.exists():
        raise ProverError(f"Proof artifact missing: {proof_path}")
    blob = proof_path.read_bytes()
    if embedded_inputs is not None:
        proof, inputs = split_proof_with_inputs(blob, embedded_inputs)
        return ProverOutput(proof=proof, public_inputs=tuple(inputs))
    if public_inputs_path is None:
        return ProverOutput(proof=blob)
    if not public_inputs_path.exists():
        raise ProverError(f"Public inputs artifact missing: {public_inputs_path}")
    return ProverOutput(proof=blob, public_inputs=tuple(read_public_inputs(public_inputs_path)))


@dataclass
class ArtifactProver:
    """Serves proof artifacts generated outside this process."""

    proof_path: Path
    public_inputs_path: Path | None = None
    embedded_inputs: int | None = None

    def prove(self, circuit_inputs: Mapping[str, Any]) -> ProverOutput:
        return read_artifacts(self.proof_path, self.public_inputs_path, embedded_inputs=self.embedded_inputs)


def _toml_value(value: Any) -> Any:
    # nargo takes field elements as strings so values above 2**64 survive.
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, Mapping):
        return {str(key): _toml_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_toml_value(item) for item in value]
    return value


class NoirProver:
    """Drives ``nargo execute`` followed by ``bb prove`` in a Noir project."""

    def __init__(
        self,
        project_dir: Path,
        *,
        nargo: str = "nargo",
        bb: str = "bb",
        timeout: float | None = None,
        oracle_hash: str = "keccak",
        bb_args: Sequence[str] = (),
    ):
        self.project_dir = project_dir
        self.nargo = nargo
        self.bb = bb
        self.timeout = timeout
        self.oracle_hash = oracle_hash
        self.bb_args = list(bb_args)

    @property
    def target_dir(self) -> Path:
        return self.project_dir / "target"

    def circuit_name(self) -> str:
        manifest = self.project_dir / "Nargo.toml"
        if not manifest.exists():
            raise ProverError(f"Nargo.toml not found in {self.project_dir}")
        try:
            with manifest.open("rb") as handle:
                data = tomllib.load(handle)
        except tomllib.TOMLDecodeError as exc:
            raise ProverError(f"{manifest} is not valid TOML: {exc}") from exc
        name = data.get("package", {}).get("name")
        if not name:
            raise ProverError(f"{manifest} has no [package] name")
        return name

    def write_inputs(self, circuit_inputs: Mapping[str, Any]) -> Path:
        prover_toml = self.project_dir / "Prover.toml"
        try:
            content = tomli_w.dumps(_toml_value(circuit_inputs))
        except TypeError as exc:
            raise ProverError(f"Circuit inputs cannot be written to Prover.toml: {exc}") from exc
        prover_toml.write_text(content, encoding="utf-8")
        return prover_toml

    def _run(self, args: List[str]) -> None:
        tool = args[0]
        if shutil.which(tool) is None:
            raise ProverError(f"{tool} executable not found")
        logger.debug("Running %s", " ".join(args))
        try:
            proc = subprocess.run(
                args,
                cwd=self.project_dir,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise NetworkError(f"{tool} timed out after {self.timeout}s") from exc
        if proc.returncode != 0:
            raise ProverError(
                f"{tool} exited with status {proc.returncode}",
                stderr=proc.stderr,
                returncode=proc.returncode,
            )

    def prove(self, circuit_inputs: Mapping[str, Any]) -> ProverOutput:
        name = self.circuit_name()
        if circuit_inputs:
            self.write_inputs(circuit_inputs)
        self._run([self.nargo, "execute"])
        bytecode = self.target_dir / f"{name}.json"
        witness = self.target_dir / f"{name}.gz"
        self._run(
            [
                self.bb,
                "prove",
                "-b",
                str(bytecode),
                "-w",
                str(witness),
                "-o",
                str(self.target_dir),
                "--oracle_hash",
                self.oracle_hash,
                *self.bb_args,
            ]
        )
        output = read_artifacts(self.target_dir / "proof", self.target_dir / "public_inputs")
        logger.info("Proof for %s: %d bytes, %d public inputs", name, len(output.proof), len(output.public_inputs))
        return output
