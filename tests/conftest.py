import sys
from pathlib import Path

import pytest

from blockeval.blockeval_config import EngineConfig
from blockeval.blockeval_forms import Dialect

FAKE_REPL = str(Path(__file__).parent / "fake_repl.py")


class PythonDialect(Dialect):
    """Python standing in for the JVM so real subprocesses can be exercised."""
    name = "python"
    suffix = ".py"
    templates = {
        "let": "(lambda {{#bindings}}{{name}}={{value}}{{^last}}, {{/last}}{{/bindings}}: ({{body}}))()",
        "wrapper": (
            "def _write_result(path, text):\n"
            "    with open(path, \"w\") as f:\n"
            "        f.write(text)\n"
            "\n"
            "\n"
            "def _main():\n"
            "    return ({{body}})\n"
            "\n"
            "\n"
            "_write_result({{sink}}, str(_main()))\n"
        ),
        "request": (
            "print({{start}}); _v = eval({{body_literal}}); "
            "print({{value}}); print(_v); print({{done}})"
        ),
        "ready": "print({{marker}})",
    }

    def render_value(self, value):
        return repr(value)


def python_process_launcher(config):
    return (sys.executable,)


def python_repl_launcher(config):
    return (sys.executable, "-u", FAKE_REPL)


def noisy_repl_launcher(config):
    return (sys.executable, "-u", FAKE_REPL, "--noisy")


@pytest.fixture
def python_dialect():
    return PythonDialect()


@pytest.fixture
def engine_config():
    return EngineConfig(binary_path=sys.executable, settle_interval=20.0)


@pytest.fixture
def process_launcher():
    return python_process_launcher


@pytest.fixture
def repl_launcher():
    return python_repl_launcher


@pytest.fixture
def noisy_launcher():
    return noisy_repl_launcher
