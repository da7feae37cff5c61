"""
tests/test_cli.py

saledger command line: append, verify, show, export.

Exit codes: 0 valid, 1 violation / not found, 2 error.
"""

import json

import pytest
from click.testing import CliRunner

from saledger.cli import cli


APPEND_ARGS = [
    "--destination", "10.0.0.1",
    "--spi",         "256",
    "--protocol",    "ESP",
    "--algorithm",   "aes256-gcm",
    "--key",         "s3cret",
    "--lifetime",    "3600",
]


@pytest.fixture
def runner():
    return CliRunner(env={"SALEDGER_DIFFICULTY": "1"})


def invoke(runner, *args):
    return runner.invoke(cli, ["--log-level", "ERROR", *args])


@pytest.fixture
def journal(tmp_path, runner):
    path = tmp_path / "chain.jsonl"
    for spi in ("256", "257"):
        args = list(APPEND_ARGS)
        args[args.index("--spi") + 1] = spi
        result = invoke(runner, "append", str(path), *args)
        assert result.exit_code == 0, result.output
    return path


def witness_hashes(path):
    return [json.loads(line)["hash"] for line in path.read_text().splitlines()][1:]


class TestAppend:

    def test_append_prints_witness_hash(self, tmp_path, runner):
        path   = tmp_path / "chain.jsonl"
        result = invoke(runner, "append", str(path), *APPEND_ARGS)
        assert result.exit_code == 0, result.output
        witness = result.output.strip().splitlines()[-1]
        assert len(witness) == 64
        assert witness.startswith("0")
        assert witness_hashes(path) == [witness]

    def test_raw_key_never_written(self, journal):
        assert "s3cret" not in journal.read_text()

    def test_both_key_forms_is_an_error(self, tmp_path, runner):
        result = invoke(
            runner, "append", str(tmp_path / "c.jsonl"), *APPEND_ARGS, "--key-hash", "0" * 64,
        )
        assert result.exit_code == 2

    def test_missing_journal_argument_without_config(self, runner):
        result = invoke(runner, "append", *APPEND_ARGS)
        assert result.exit_code == 2

    def test_journal_from_environment(self, tmp_path):
        path   = tmp_path / "env.jsonl"
        runner = CliRunner(env={"SALEDGER_DIFFICULTY": "1", "SALEDGER_JOURNAL": str(path)})
        result = invoke(runner, "append", *APPEND_ARGS)
        assert result.exit_code == 0, result.output
        assert path.exists()

    def test_outbox_from_config(self, tmp_path, runner):
        outbox = tmp_path / "outbox.jsonl"
        config = tmp_path / "saledger.yaml"
        config.write_text(f"outbox: {outbox}\n")
        result = runner.invoke(cli, [
            "--config", str(config), "--log-level", "ERROR",
            "append", str(tmp_path / "chain.jsonl"), *APPEND_ARGS,
        ])
        assert result.exit_code == 0, result.output
        records = [json.loads(line) for line in outbox.read_text().splitlines()]
        assert [r["op"] for r in records] == ["pending", "witnessed"]


class TestVerify:

    def test_valid_journal(self, runner, journal):
        result = invoke(runner, "verify", str(journal), "--no-color")
        assert result.exit_code == 0
        assert "Integrity Verified" in result.output

    def test_json_output(self, runner, journal):
        result = invoke(runner, "verify", str(journal), "--format", "json")
        assert result.exit_code == 0
        report = json.loads(result.output)
        assert report["status"] == "valid"
        assert report["blocks"] == 3

    def test_tampered_journal_exit_1(self, runner, journal):
        records = [json.loads(line) for line in journal.read_text().splitlines()]
        records[1]["payload"]["lifetime"] = 60
        journal.write_text("".join(json.dumps(r) + "\n" for r in records))

        result = invoke(runner, "verify", str(journal), "--format", "compact")
        assert result.exit_code == 1
        assert result.output.startswith("INVALID@1")

    def test_quiet(self, runner, journal):
        result = invoke(runner, "verify", str(journal), "--quiet")
        assert result.exit_code == 0
        assert result.output == ""

    def test_missing_file_exit_2(self, runner, tmp_path):
        result = invoke(runner, "verify", str(tmp_path / "nope.jsonl"))
        assert result.exit_code == 2

    def test_higher_difficulty_fails(self, runner, journal):
        result = invoke(runner, "verify", str(journal), "--difficulty", "12", "--quiet")
        assert result.exit_code == 1


class TestShowAndExport:

    def test_show_existing_block(self, runner, journal):
        h = witness_hashes(journal)[0]
        result = invoke(runner, "show", str(journal), h)
        assert result.exit_code == 0
        block = json.loads(result.output)
        assert block["hash"] == h
        assert block["index"] == 1

    def test_show_unknown_block(self, runner, journal):
        result = invoke(runner, "show", str(journal), "deadbeef" * 8)
        assert result.exit_code == 1

    def test_show_malformed_hash(self, runner, journal):
        result = invoke(runner, "show", str(journal), "xyz")
        assert result.exit_code == 2

    def test_export_to_file(self, runner, journal, tmp_path):
        out    = tmp_path / "export.json"
        result = invoke(runner, "export", str(journal), "--output", str(out))
        assert result.exit_code == 0
        document = json.loads(out.read_text())
        assert document["validation"]["valid"] is True
        assert len(document["blocks"]) == 3
        assert document["stats"]["difficulty"] == 1

    def test_export_refuses_tampered_journal(self, runner, journal):
        lines = journal.read_text().splitlines()
        record = json.loads(lines[2])
        record["nonce"] += 1
        lines[2] = json.dumps(record)
        journal.write_text("\n".join(lines) + "\n")

        result = invoke(runner, "export", str(journal))
        assert result.exit_code == 2
