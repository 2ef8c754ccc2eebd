"""Tests for lambda_lens.cli — argument handling and exit codes."""

import json

import pytest

from lambda_lens import cli
from tests.conftest import make_settings


@pytest.fixture(autouse=True)
def _quiet(monkeypatch):
    monkeypatch.setattr(cli, "configure_logging", lambda settings: None)
    monkeypatch.setattr(cli, "get_settings", lambda: make_settings())


class TestScan:
    def test_prints_affordances(self, workspace, capsys):
        doc = workspace.document("app.py", "def handler(event, context):\n    pass\n")
        code = cli.main(["scan", str(doc.path), "--workspace", str(workspace.root)])
        assert code == 0
        items = json.loads(capsys.readouterr().out)
        assert [(i["handler_name"], i["action"]) for i in items] == [
            ("app.handler", "run"), ("app.handler", "configure"),
        ]

    def test_outside_workspace(self, workspace, tmp_path, capsys):
        other = tmp_path / "other.py"
        other.write_text("def handler(event, context):\n    pass\n", encoding="utf-8")
        code = cli.main(["scan", str(other), "--workspace", str(workspace.root)])
        assert code == 1
        assert "external to the current workspace" in capsys.readouterr().err

    def test_missing_file(self, workspace, capsys):
        code = cli.main(["scan", str(workspace.root / "nope.py"), "--workspace", str(workspace.root)])
        assert code == 1
        assert "ERROR" in capsys.readouterr().err

    def test_file_not_utf8(self, workspace, capsys):
        path = workspace.root / "app.py"
        path.write_bytes(b"def handler(event, context):\n    return '\xff'\n")
        code = cli.main(["scan", str(path), "--workspace", str(workspace.root)])
        assert code == 1
        assert "[lambda_lens] ERROR:" in capsys.readouterr().err


class TestSettingsErrors:
    def test_bad_environment_value(self, monkeypatch, capsys):
        def _bad_settings():
            return make_settings(DEBUG_PORT=0)

        monkeypatch.setattr(cli, "get_settings", _bad_settings)
        assert cli.main(["validate"]) == 1
        err = capsys.readouterr().err
        assert "[lambda_lens] ERROR: invalid LAMBDA_LENS_* settings" in err
        assert "DEBUG_PORT" in err


class TestDetect:
    def test_not_found(self, no_sam_on_host, capsys):
        assert cli.main(["detect", "--force"]) == 1
        data = json.loads(capsys.readouterr().out)
        assert data["found"] is False
        assert data["validation_outcome"] == "NotFound"

    def test_validate_not_found(self, no_sam_on_host, capsys):
        assert cli.main(["validate"]) == 1
        assert capsys.readouterr().out.strip() == "NotFound"


class TestInvoke:
    def test_unknown_handler(self, workspace, capsys):
        doc = workspace.document("app.py", "def handler(event, context):\n    pass\n")
        code = cli.main([
            "invoke", str(doc.path), "app.other", "--workspace", str(workspace.root),
        ])
        assert code == 2
        assert "no run affordance for 'app.other'" in capsys.readouterr().err

    def test_requires_subcommand(self):
        with pytest.raises(SystemExit):
            cli.main([])
