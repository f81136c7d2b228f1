import importlib.util
import sys
import uuid
from pathlib import Path

import pytest


def _load_cli_module():
    """Dynamically load the top-level blockeval.py (CLI) as a module with a unique name."""
    cli_path = Path(__file__).resolve().parents[1] / "blockeval.py"
    mod_name = f"blockeval_cli_for_test_{uuid.uuid4().hex}"
    spec = importlib.util.spec_from_file_location(mod_name, str(cli_path))
    mod = importlib.util.module_from_spec(spec)
    sys.modules[mod_name] = mod
    assert spec.loader is not None
    spec.loader.exec_module(mod)
    return mod


@pytest.fixture
def cli(monkeypatch):
    monkeypatch.delenv("BLOCKEVAL_CONFIG", raising=False)
    return _load_cli_module()


@pytest.mark.asyncio
async def test_file_output_mode(cli, monkeypatch, tmp_path, capsys):
    monkeypatch.setattr(cli, "build_launch_spec", lambda cfg: (sys.executable,))
    src = tmp_path / "block.py"
    src.write_text('print("hello from block")\n')
    await cli.main([str(src)])
    out = capsys.readouterr().out
    assert "hello from block" in out


@pytest.mark.asyncio
async def test_missing_file_exits_with_error(cli, tmp_path, capsys):
    with pytest.raises(SystemExit) as excinfo:
        await cli.main([str(tmp_path / "nope.clj")])
    assert excinfo.value.code == 1
    assert "file not found" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_unconfigured_runtime_reports_configuration_error(cli, tmp_path, capsys):
    src = tmp_path / "block.clj"
    src.write_text("(+ 1 2)\n")
    with pytest.raises(SystemExit):
        await cli.main([str(src), "--result", "value"])
    assert "ConfigurationError" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_bad_config_file_exits(cli, tmp_path, capsys):
    cfg = tmp_path / "engine.json"
    cfg.write_text("{broken")
    with pytest.raises(SystemExit):
        await cli.main(["--config", str(cfg)])
    assert "Cannot parse config file" in capsys.readouterr().err


def test_parse_bindings(cli):
    assert cli.parse_bindings(["xs=[1, 2]", "name=ada", "n=3"]) == {"xs": [1, 2], "name": "ada", "n": 3}
    with pytest.raises(SystemExit):
        cli.parse_bindings(["oops"])


@pytest.mark.asyncio
async def test_repl_exit_immediately(cli, monkeypatch, capsys):
    async def fake_ainput(prompt: str) -> str:
        return "exit"
    monkeypatch.setattr(cli, "ainput", fake_ainput)

    await cli.main([])
    out = capsys.readouterr().out
    assert "blockeval REPL v0.1" in out
    assert "Type 'exit' or press Ctrl+D to quit." in out


@pytest.mark.asyncio
async def test_repl_evaluates_lines_in_fresh_processes(cli, monkeypatch, capsys):
    monkeypatch.setattr(cli, "build_launch_spec", lambda cfg: (sys.executable,))
    lines = iter(["print(1 + 2)", "", "exit"])

    async def fake_ainput(prompt: str) -> str:
        return next(lines)
    monkeypatch.setattr(cli, "ainput", fake_ainput)

    await cli.main(["--session", "none", "--result", "output"])
    out, err = capsys.readouterr()
    assert ">> 3\n" in out
    assert err == ""


@pytest.mark.asyncio
async def test_repl_errors_print_to_stderr(cli, monkeypatch, capsys):
    lines = iter(["(+ 1 2)", "exit"])

    async def fake_ainput(prompt: str) -> str:
        return next(lines)
    monkeypatch.setattr(cli, "ainput", fake_ainput)

    await cli.main(["--session", "none"])
    out, err = capsys.readouterr()
    assert "blockeval REPL v0.1" in out
    assert "ConfigurationError" in err


@pytest.mark.asyncio
async def test_repl_eof_quits(cli, monkeypatch, capsys):
    async def fake_ainput(prompt: str) -> str:
        raise EOFError
    monkeypatch.setattr(cli, "ainput", fake_ainput)

    await cli.main([])
    assert "Exiting." in capsys.readouterr().out


def test_parse_args_result_flag(cli):
    args = cli.parse_args(["block.clj", "--result", "value", "--session", "s1"])
    assert (args.file, args.result, args.session) == ("block.clj", "value", "s1")
    assert cli.parse_args([]).result is None
    with pytest.raises(SystemExit):
        cli.parse_args(["block.clj", "--result", "table"])
