import json
from pathlib import Path

from typer.testing import CliRunner

from proofcall.chain import CallOutcome, CastVerifierClient
from proofcall.cli import app

from conftest import DEV_KEY, VERIFIER

runner = CliRunner()


def _artifacts(tmp_path: Path):
    proof = tmp_path / "proof"
    proof.write_bytes(b"\x0d")
    inputs = tmp_path / "public_inputs"
    inputs.write_bytes((13).to_bytes(32, "big"))
    return proof, inputs


def test_encode_proof(tmp_path):
    proof, _ = _artifacts(tmp_path)
    result = runner.invoke(app, ["encode-proof", str(proof)])
    assert result.exit_code == 0
    assert result.stdout.strip() == "0x0d"


def test_encode_inputs(tmp_path):
    _, inputs = _artifacts(tmp_path)
    result = runner.invoke(app, ["encode-inputs", str(inputs)])
    assert result.exit_code == 0
    assert result.stdout.split() == ["0x" + "00" * 31 + "0d"]


def test_encode_inputs_rejects_ragged_file(tmp_path):
    bad = tmp_path / "public_inputs"
    bad.write_bytes(b"\x00" * 31)
    result = runner.invoke(app, ["encode-inputs", str(bad)])
    assert result.exit_code == 1
    assert "MalformedEncodingError" in result.output


def test_calldata(tmp_path):
    proof, inputs = _artifacts(tmp_path)
    result = runner.invoke(app, ["calldata", str(proof), str(inputs)])
    assert result.exit_code == 0
    assert result.stdout.strip().startswith("0x")


def test_run_without_config_exits_before_calling(tmp_path, monkeypatch):
    proof, inputs = _artifacts(tmp_path)
    monkeypatch.chdir(tmp_path)
    for name in ("RPC_URL", "PRIVATE_KEY", "VERIFIER_ADDRESS"):
        monkeypatch.delenv(name, raising=False)
    called = []
    monkeypatch.setattr(CastVerifierClient, "verify", lambda *a, **k: called.append(a))
    result = runner.invoke(app, ["run", "--proof", str(proof), "--public-inputs", str(inputs), "--cast"])
    assert result.exit_code == 2
    assert "RPC_URL" in result.output
    assert called == []


def test_run_with_cast(tmp_path, monkeypatch):
    proof, inputs = _artifacts(tmp_path)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("RPC_URL", "http://127.0.0.1:8545")
    monkeypatch.setenv("PRIVATE_KEY", DEV_KEY)
    monkeypatch.setenv("VERIFIER_ADDRESS", VERIFIER)
    seen = []

    def _verify(self, endpoint, call, *, timeout):
        seen.append(call)
        return CallOutcome(verified=True)

    monkeypatch.setattr(CastVerifierClient, "verify", _verify)
    report = tmp_path / "report.json"
    result = runner.invoke(
        app,
        ["run", "--proof", str(proof), "--public-inputs", str(inputs), "--cast", "--report", str(report)],
    )
    assert result.exit_code == 0, result.output
    assert "Verified: true" in result.stdout
    assert DEV_KEY[2:] not in result.output
    assert seen[0].proof == "0x0d"
    with report.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    assert payload["state"] == "succeeded"
    assert payload["verified"] is True


def test_run_rejected_proof_exit_code(tmp_path, monkeypatch):
    proof, inputs = _artifacts(tmp_path)
    monkeypatch.chdir(tmp_path)
    (tmp_path / ".env").write_text(
        f"RPC_URL=http://127.0.0.1:8545\nPRIVATE_KEY={DEV_KEY}\nVERIFIER_ADDRESS={VERIFIER}\n", encoding="utf-8"
    )
    for name in ("RPC_URL", "PRIVATE_KEY", "VERIFIER_ADDRESS"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(CastVerifierClient, "verify", lambda self, e, c, *, timeout: CallOutcome(verified=False))
    result = runner.invoke(app, ["run", "--proof", str(proof), "--public-inputs", str(inputs), "--cast"])
    assert result.exit_code == 1
    assert "Verified: false" in result.stdout


def test_run_requires_one_source(tmp_path):
    result = runner.invoke(app, ["run"])
    assert result.exit_code != 0


def test_run_rejects_broadcast_with_cast(tmp_path, monkeypatch):
    proof, inputs = _artifacts(tmp_path)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("RPC_URL", "http://127.0.0.1:8545")
    monkeypatch.setenv("PRIVATE_KEY", DEV_KEY)
    monkeypatch.setenv("VERIFIER_ADDRESS", VERIFIER)
    monkeypatch.setenv("BROADCAST", "true")
    called = []
    monkeypatch.setattr(CastVerifierClient, "verify", lambda *a, **k: called.append(a))
    result = runner.invoke(app, ["run", "--proof", str(proof), "--public-inputs", str(inputs), "--cast"])
    assert result.exit_code == 2
    assert "BROADCAST" in result.output
    assert called == []


def test_run_rejects_malformed_circuit_inputs(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    project = tmp_path / "circuit"
    project.mkdir()
    bad = tmp_path / "inputs.json"
    bad.write_text('{"x": 3,', encoding="utf-8")
    result = runner.invoke(app, ["run", "--project", str(project), "--inputs", str(bad)])
    assert result.exit_code == 2
    assert "not valid JSON" in result.output
