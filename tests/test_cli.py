import importlib.util
import json
import sys
from pathlib import Path
import uuid
import pytest

SCRIPT = 'const user = await fetch("https://h/u")\nconst posts = await fetch("https://h/p")\nreturn { user, posts }\n'


def _load_cli_module():
    """Dynamically load the top-level latch.py as a module with a unique name."""
    cli_path = Path(__file__).resolve().parents[1] / "latch.py"
    mod_name = f"latch_cli_for_test_{uuid.uuid4().hex}"
    spec = importlib.util.spec_from_file_location(mod_name, str(cli_path))
    mod = importlib.util.module_from_spec(spec)
    sys.modules[mod_name] = mod
    assert spec.loader is not None
    spec.loader.exec_module(mod)
    return mod


@pytest.fixture
def fake_fetch(monkeypatch):
    async def fetch_request(request, config=None):
        return {"https://h/u": {"id": 1}, "https://h/p": [1, 2]}[request["url"]]

    import latch.latch_http as latch_http_mod
    monkeypatch.setattr(latch_http_mod, "fetch_request", fetch_request)
    monkeypatch.setenv("LATCH_ENGINE", "conftest:FakeEngine")


@pytest.mark.asyncio
async def test_types_prints_declarations(monkeypatch, capsys, tmp_path):
    cli = _load_cli_module()
    nodes = tmp_path / "nodes.json"
    nodes.write_text(json.dumps([{"name": "slack", "actions": [{"name": "send"}]}]), encoding="utf-8")
    monkeypatch.setattr(sys, "argv", ["latch.py", "types", str(nodes)])

    await cli.main()
    out = capsys.readouterr().out
    assert "export namespace slack {" in out
    assert "send(params?: Nodes.slack.sendParams): Promise<any>;" in out


@pytest.mark.asyncio
async def test_run_drives_script_and_prints_result(monkeypatch, capsys, tmp_path, fake_fetch):
    cli = _load_cli_module()
    script = tmp_path / "script.js"
    script.write_text(SCRIPT, encoding="utf-8")
    monkeypatch.setattr(sys, "argv", ["latch.py", "run", str(script), "--id", "cli-1"])

    await cli.main()
    out = json.loads(capsys.readouterr().out)
    assert out == {"id": "cli-1", "status": "done", "result": {"user": {"id": 1}, "posts": [1, 2]}}


@pytest.mark.asyncio
async def test_run_error_exits_nonzero(monkeypatch, capsys, tmp_path, fake_fetch):
    cli = _load_cli_module()
    script = tmp_path / "script.js"
    script.write_text("throw nope\n", encoding="utf-8")
    monkeypatch.setattr(sys, "argv", ["latch.py", "run", str(script)])

    with pytest.raises(SystemExit) as exc:
        await cli.main()
    assert exc.value.code == 1
    assert json.loads(capsys.readouterr().out)["error"] == "nope"


@pytest.mark.asyncio
async def test_run_nodes_requires_endpoint(monkeypatch, capsys, tmp_path):
    cli = _load_cli_module()
    monkeypatch.setattr(sys, "argv", ["latch.py", "run", "x.js", "--nodes", "n.json"])
    with pytest.raises(SystemExit) as exc:
        await cli.main()
    assert exc.value.code == 2
    assert "--endpoint" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_run_missing_nodes_file_reports_error(monkeypatch, capsys, tmp_path):
    cli = _load_cli_module()
    missing = tmp_path / "nodes.json"
    monkeypatch.setattr(sys, "argv", ["latch.py", "run", "x.js", "--nodes", str(missing), "--endpoint", "https://h"])
    with pytest.raises(SystemExit) as exc:
        await cli.main()
    assert exc.value.code == 1
    assert f"file not found: {missing}" in capsys.readouterr().err


@pytest.mark.asyncio
@pytest.mark.parametrize("argv", [["latch.py"], ["latch.py", "frobnicate", "x"]])
async def test_usage_on_bad_arguments(monkeypatch, capsys, argv):
    cli = _load_cli_module()
    monkeypatch.setattr(sys, "argv", argv)
    with pytest.raises(SystemExit) as exc:
        await cli.main()
    assert exc.value.code == 2
    assert "usage:" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_missing_file_reports_error(monkeypatch, capsys, tmp_path):
    cli = _load_cli_module()
    monkeypatch.setattr(sys, "argv", ["latch.py", "types", str(tmp_path / "missing.json")])
    with pytest.raises(SystemExit) as exc:
        await cli.main()
    assert exc.value.code == 1
    assert "file not found" in capsys.readouterr().err
