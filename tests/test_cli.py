import json

import pytest
from typer.testing import CliRunner

from noteminder import cli
from noteminder.cli import app
from noteminder.db import reset_engine

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_db(tmp_path, monkeypatch):
    monkeypatch.setenv("NOTEMINDER_DB_PATH", str(tmp_path / "cli.sqlite"))
    monkeypatch.setenv("NOTEMINDER_LOG_LEVEL", "WARNING")
    reset_engine()


def test_add_list_and_report():
    r = runner.invoke(app, ["add", "-c", "Deploy", "--start", "2026-10-19T20:00", "--end", "2026-10-20T10:00"])
    assert r.exit_code == 0, r.output
    assert "Created" in r.output

    r = runner.invoke(app, ["list", "--sort", "startTime", "--today"])
    assert r.exit_code == 0

    r = runner.invoke(app, ["report", "--hours", "09:00-21:00"])
    assert r.exit_code == 0


def test_group_commands():
    r = runner.invoke(app, ["group-add", "Work"])
    assert r.exit_code == 0
    group_id = r.output.rsplit("(", 1)[1].split(")")[0]
    assert "Work" in runner.invoke(app, ["groups"]).output

    assert runner.invoke(app, ["group-delete", "default"]).exit_code == 0
    # the last notebook cannot be deleted
    assert runner.invoke(app, ["group-delete", group_id]).exit_code == 1


def test_unknown_note_exits_nonzero():
    r = runner.invoke(app, ["pin", "missing"])
    assert r.exit_code == 1
    assert "Not found" in r.output


def test_export_import_round_trip(tmp_path):
    runner.invoke(app, ["add", "-c", "keep me"])
    out = tmp_path / "export.json"
    assert runner.invoke(app, ["export", "--to", str(out)]).exit_code == 0
    payload = json.loads(out.read_text(encoding="utf-8"))
    assert payload["notes"][0]["content"] == "keep me"

    payload["groups"].append({"id": "g2", "name": "Imported"})
    payload["notes"] = [dict(payload["notes"][0], id="copy", groupId="g2")]
    out.write_text(json.dumps(payload), encoding="utf-8")
    r = runner.invoke(app, ["import", "--from", str(out)])
    assert r.exit_code == 0
    assert "1 notebooks, 1 notes" in r.output


def test_batch_pin_and_bad_work_hours():
    for i in range(3):
        runner.invoke(app, ["add", "-c", f"n{i}"])
    r = runner.invoke(app, ["batch-pin", "--width", "700"])
    assert "Pinned 3 notes" in r.output
    r = runner.invoke(app, ["report", "--hours", "nope"])
    assert r.exit_code == 1


def test_store_requires_boot(monkeypatch):
    monkeypatch.setattr(cli, "_STORE", None)
    with pytest.raises(RuntimeError):
        cli._store()
