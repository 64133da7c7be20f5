from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, NoReturn, Optional

import typer

from .chain import CastVerifierClient, Web3VerifierClient
from .codec import encode_call, encode_proof, encode_public_inputs, encode_verify_calldata
from .config import EnvironmentConfig
from .errors import ConfigError, ProofCallError
from .pipeline import PipelineRunner
from .prover import ArtifactProver, NoirProver, read_artifacts, read_public_inputs

app = typer.Typer(help="Encode Noir proofs for EVM verifier contracts and call them.")

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


@app.callback()
def main_options(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log external commands and stage changes."),
) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format=LOG_FORMAT)


def _load_circuit_inputs(path: Optional[Path]) -> Dict[str, Any]:
    if path is None:
        return {}
    try:
        with path.open("r", encoding="utf-8") as handle:
            raw = json.load(handle)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"not valid JSON in {path.name} ({exc})") from exc
    if not isinstance(raw, dict):
        raise typer.BadParameter(f"{path} must hold a JSON object of circuit inputs.")
    return raw


def _load_config(config: Optional[Path], env_file: Path) -> EnvironmentConfig:
    try:
        if config is not None:
            return EnvironmentConfig.load(config)
        return EnvironmentConfig.from_env(env_file=env_file if env_file.exists() else None)
    except ConfigError as exc:
        typer.echo(f"Configuration error: {exc}", err=True)
        raise typer.Exit(code=2) from exc


def _fail(exc: ProofCallError) -> NoReturn:
    typer.echo(f"{exc.kind}: {exc}", err=True)
    raise typer.Exit(code=1) from exc


@app.command("encode-proof")
def encode_proof_cmd(
    proof: Path = typer.Argument(..., exists=True, dir_okay=False, help="Binary proof file."),
    embedded_inputs: Optional[int] = typer.Option(
        None, "--embedded-inputs", help="Strip this many public-input words prefixed to the proof."
    ),
) -> None:
    """Print the 0x hex encoding of a proof file."""
    try:
        output = read_artifacts(proof, embedded_inputs=embedded_inputs)
    except ProofCallError as exc:
        _fail(exc)
    typer.echo(encode_proof(output.proof))


@app.command("encode-inputs")
def encode_inputs_cmd(
    public_inputs: Path = typer.Argument(..., exists=True, dir_okay=False, help="bb public_inputs file or JSON list."),
) -> None:
    """Print public inputs as 32-byte words, one per line."""
    try:
        words = encode_public_inputs(read_public_inputs(public_inputs))
    except ProofCallError as exc:
        _fail(exc)
    for word in words:
        typer.echo(word)


@app.command()
def calldata(
    proof: Path = typer.Argument(..., exists=True, dir_okay=False, help="Binary proof file."),
    public_inputs: Path = typer.Argument(..., exists=True, dir_okay=False, help="bb public_inputs file or JSON list."),
) -> None:
    """Print complete calldata for verify(bytes,bytes32[])."""
    try:
        output = read_artifacts(proof, public_inputs)
        typer.echo(encode_verify_calldata(output.proof, output.public_inputs))
    except ProofCallError as exc:
        _fail(exc)


@app.command()
def prove(
    project: Path = typer.Option(..., "--project", "-p", exists=True, file_okay=False, help="Noir project directory."),
    inputs: Optional[Path] = typer.Option(None, "--inputs", "-i", help="JSON object written to Prover.toml."),
    out: Path = typer.Option(Path("encoded_proof.json"), "--out", "-o", help="Where to write the encodings."),
    nargo: str = typer.Option("nargo", "--nargo", help="nargo executable."),
    bb: str = typer.Option("bb", "--bb", help="bb executable."),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Seconds allowed per external tool."),
) -> None:
    """Run nargo + bb and write the encoded proof and public inputs."""
    prover = NoirProver(project, nargo=nargo, bb=bb, timeout=timeout)
    try:
        output = prover.prove(_load_circuit_inputs(inputs))
        call = encode_call(output.proof, output.public_inputs)
    except ProofCallError as exc:
        _fail(exc)
    out.parent.mkdir(parents=True, exist_ok=True)
    with out.open("w", encoding="utf-8") as handle:
        json.dump({"proof": call.proof, "public_inputs": list(call.public_inputs)}, handle, indent=2)
    typer.echo(f"Encoded proof: {out}")


@app.command()
def run(
    project: Optional[Path] = typer.Option(None, "--project", "-p", file_okay=False, help="Noir project directory."),
    proof: Optional[Path] = typer.Option(None, "--proof", help="Use an existing proof file instead of proving."),
    public_inputs: Optional[Path] = typer.Option(None, "--public-inputs", help="Public inputs for --proof."),
    inputs: Optional[Path] = typer.Option(None, "--inputs", "-i", help="JSON object written to Prover.toml."),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config JSON (key may come from PRIVATE_KEY)."),
    env_file: Path = typer.Option(Path(".env"), "--env-file", help="dotenv file read when --config is absent."),
    use_cast: bool = typer.Option(False, "--cast", help="Call through Foundry cast instead of web3."),
    report: Optional[Path] = typer.Option(None, "--report", help="Write the run result as JSON."),
    prove_timeout: Optional[float] = typer.Option(None, "--prove-timeout", help="Seconds allowed per nargo/bb step."),
) -> None:
    """Prove, encode and call the verifier contract."""
    if (project is None) == (proof is None):
        raise typer.BadParameter("Pass exactly one of --project or --proof.")
    circuit_inputs = _load_circuit_inputs(inputs)
    env_config = _load_config(config, env_file)
    if use_cast and env_config.broadcast:
        typer.echo("Configuration error: BROADCAST=true cannot be used with --cast (cast calls are read-only).", err=True)
        raise typer.Exit(code=2)
    if proof is not None:
        prover = ArtifactProver(proof, public_inputs)
    else:
        prover = NoirProver(project, timeout=prove_timeout)
    if use_cast:
        client = CastVerifierClient()
    else:
        client = Web3VerifierClient(env_config.private_key, broadcast=env_config.broadcast)
    runner = PipelineRunner(env_config, prover, client)
    result = runner.run(circuit_inputs)
    if report is not None:
        report.parent.mkdir(parents=True, exist_ok=True)
        with report.open("w", encoding="utf-8") as handle:
            json.dump(result.to_dict(), handle, indent=2)
    typer.echo(f"Stage reached: {result.stage.value}")
    if not result.succeeded:
        typer.echo(f"{result.error_kind}: {result.error_message}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Verified: {str(result.verified).lower()}")
    if result.tx_hash:
        typer.echo(f"Transaction: {result.tx_hash}")
    if not result.verified:
        raise typer.Exit(code=1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
