"""Prove -> encode -> call pipeline with per-stage failure attribution."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from .chain import CallOutcome, VerifierClient, VerifierEndpoint
from .codec import encode_call
from .config import EnvironmentConfig
from .errors import ProofCallError, RevertError, RunCancelledError
from .prover import Prover

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    IDLE = "idle"
    PROVING = "proving"
    ENCODING = "encoding"
    CALLING = "calling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


_FORWARD = (Stage.IDLE, Stage.PROVING, Stage.ENCODING, Stage.CALLING)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class PipelineRunResult:
    """Final report of one run.

    ``stage`` is the last working stage entered. ``verified`` is only set when
    the verifier returned a boolean; ``False`` is still a successful run.
    """

    stage: Stage
    succeeded: bool
    started_at: datetime
    finished_at: datetime
    verified: Optional[bool] = None
    error_kind: Optional[str] = None
    error_message: Optional[str] = None
    revert_reason: Optional[str] = None
    tx_hash: Optional[str] = None

    @property
    def state(self) -> Stage:
        return Stage.SUCCEEDED if self.succeeded else Stage.FAILED

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["stage"] = self.stage.value
        payload["state"] = self.state.value
        payload["started_at"] = self.started_at.isoformat()
        payload["finished_at"] = self.finished_at.isoformat()
        return payload


class _RunTracker:
    def __init__(self) -> None:
        self.stage = Stage.IDLE
        self.started_at = _now()
        self._finished = False

    def enter(self, stage: Stage) -> None:
        if self._finished:
            raise RuntimeError("Run already finalized.")
        if _FORWARD.index(stage) <= _FORWARD.index(self.stage):
            raise RuntimeError(f"Illegal stage transition {self.stage.value} -> {stage.value}")
        logger.info("Stage %s -> %s", self.stage.value, stage.value)
        self.stage = stage

    def _finalize(self, **kwargs: Any) -> PipelineRunResult:
        if self._finished:
            raise RuntimeError("Run already finalized.")
        self._finished = True
        return PipelineRunResult(stage=self.stage, started_at=self.started_at, finished_at=_now(), **kwargs)

    def succeed(self, outcome: CallOutcome) -> PipelineRunResult:
        logger.info("Verifier returned %s", outcome.verified)
        return self._finalize(succeeded=True, verified=outcome.verified, tx_hash=outcome.tx_hash)

    def fail(self, error: ProofCallError) -> PipelineRunResult:
        logger.error("Run failed during %s: %s: %s", self.stage.value, error.kind, error)
        return self._finalize(
            succeeded=False,
            error_kind=error.kind,
            error_message=str(error),
            revert_reason=error.reason if isinstance(error, RevertError) else None,
            tx_hash=error.tx_hash,
        )


def _check_cancelled(cancel: threading.Event | None, stage: Stage) -> None:
    if cancel is not None and cancel.is_set():
        raise RunCancelledError(f"Run cancelled before {stage.value}")


class PipelineRunner:
    """Runs prover, codec and verifier client strictly in sequence.

    Nothing is retried: a failing stage ends the run and is reported as-is.
    Cancellation is honoured up to the start of the calling stage only.
    """

    def __init__(self, config: EnvironmentConfig, prover: Prover, client: VerifierClient):
        self.config = config
        self.prover = prover
        self.client = client

    def run(
        self,
        circuit_inputs: Mapping[str, Any],
        endpoint: VerifierEndpoint | None = None,
        *,
        cancel: threading.Event | None = None,
    ) -> PipelineRunResult:
        endpoint = endpoint or self.config.endpoint
        tracker = _RunTracker()
        try:
            tracker.enter(Stage.PROVING)
            output = self.prover.prove(circuit_inputs)

            tracker.enter(Stage.ENCODING)
            _check_cancelled(cancel, Stage.ENCODING)
            call = encode_call(output.proof, output.public_inputs)

            tracker.enter(Stage.CALLING)
            _check_cancelled(cancel, Stage.CALLING)
            outcome = self.client.verify(endpoint, call, timeout=self.config.call_timeout)
        except ProofCallError as exc:
            return tracker.fail(exc)
        return tracker.succeed(outcome)


def run_batch(
    make_runner: Callable[[int], PipelineRunner],
    inputs: Sequence[Mapping[str, Any]],
    *,
    endpoint: VerifierEndpoint | None = None,
    max_workers: int = 4,
    cancel: threading.Event | None = None,
) -> List[PipelineRunResult]:
    """Execute independent runs concurrently; results follow ``inputs`` order.

    ``make_runner(index)`` builds a fresh runner per item so runs share no
    mutable state (e.g. a separate Noir project directory per proof).
    """
    if not inputs:
        return []

    def _one(index: int) -> PipelineRunResult:
        return make_runner(index).run(inputs[index], endpoint, cancel=cancel)

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        return list(pool.map(_one, range(len(inputs))))
