#!/usr/bin/env python3

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from proofcall.chain import CastVerifierClient, Web3VerifierClient
from proofcall.config import EnvironmentConfig
from proofcall.errors import ConfigError
from proofcall.pipeline import PipelineRunner, run_batch
from proofcall.prover import ArtifactProver


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Verify many pre-generated proofs against one verifier contract.")
    parser.add_argument("proof_dirs", type=Path, nargs="+", help="Directories holding proof + public_inputs.")
    parser.add_argument("--env-file", type=Path, default=Path(".env"), help="dotenv file with RPC_URL etc.")
    parser.add_argument("--workers", type=int, default=4, help="Concurrent runs.")
    parser.add_argument("--cast", action="store_true", help="Call through Foundry cast instead of web3.")
    parser.add_argument("--report", type=Path, help="Write all run results as JSON.")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    try:
        config = EnvironmentConfig.from_env(env_file=args.env_file if args.env_file.exists() else None)
    except ConfigError as exc:
        raise SystemExit(f"Configuration error: {exc}") from exc
    if args.cast and config.broadcast:
        raise SystemExit("Configuration error: BROADCAST=true cannot be used with --cast (cast calls are read-only).")

    def make_runner(index: int) -> PipelineRunner:
        proof_dir = args.proof_dirs[index]
        prover = ArtifactProver(proof_dir / "proof", proof_dir / "public_inputs")
        if args.cast:
            client = CastVerifierClient()
        else:
            client = Web3VerifierClient(config.private_key, broadcast=config.broadcast)
        return PipelineRunner(config, prover, client)

    results = run_batch(make_runner, [{} for _ in args.proof_dirs], max_workers=args.workers)
    for proof_dir, result in zip(args.proof_dirs, results):
        status = f"verified={str(result.verified).lower()}" if result.succeeded else f"{result.error_kind}: {result.error_message}"
        print(f"{proof_dir}: [{result.stage.value}] {status}")
    if args.report:
        args.report.parent.mkdir(parents=True, exist_ok=True)
        with args.report.open("w", encoding="utf-8") as handle:
            json.dump({str(d): r.to_dict() for d, r in zip(args.proof_dirs, results)}, handle, indent=2)
    if not all(result.succeeded and result.verified for result in results):
        raise SystemExit(1)


if __name__ == "__main__":
    main()
