from __future__ import annotations

import json
import tomllib
from pathlib import Path

import pytest

from discord_mcp.logdiff import main

GOLDEN = Path(__file__).resolve().parents[1] / "fixtures" / "audit_golden.jsonl"


@pytest.mark.parametrize("whitelisted", [True, False])
def test_logdiff_behaviour(tmp_path: Path, whitelisted: bool, capsys: pytest.CaptureFixture[str]) -> None:
    records = [json.loads(line) for line in GOLDEN.read_text(encoding="utf-8").splitlines()]
    if whitelisted:
        records[0]["ts"] = "1999-01-01T00:00:00Z"
        records[1]["metadata"]["deleted_at"] = "1999-01-01T00:00:00Z"
    else:
        records[0]["status"] = "error"
    new_log = tmp_path / "run.jsonl"
    new_log.write_text("\n".join(json.dumps(record) for record in records) + "\n", encoding="utf-8")

    code = main(["--new", str(new_log), "--golden", str(GOLDEN)])

    out = capsys.readouterr().out
    if whitelisted:
        assert code == 0, out
    else:
        assert code == 1
        assert "Differences detected" in out


def test_logdiff_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        main(["--new", str(tmp_path / "absent.jsonl"), "--golden", str(GOLDEN)])


def test_logdiff_dependencies_are_declared_for_runtime(repo_root: Path) -> None:
    project = tomllib.loads((repo_root / "pyproject.toml").read_text(encoding="utf-8"))["project"]

    assert project["scripts"]["discord-mcp-logdiff"] == "discord_mcp.logdiff:main"
    assert any(requirement.startswith("deepdiff") for requirement in project["dependencies"])
