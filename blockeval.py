import argparse
import asyncio
import os
import sys
from pathlib import Path

from blockeval.blockeval_config import EngineConfig, load_config, parse_binding_value
from blockeval.blockeval_datatypes import BlockEvalError, EvaluationRequest, ResultKind, NO_SESSION
from blockeval.blockeval_dispatch import Dispatcher
from blockeval.blockeval_launch import build_launch_spec
from blockeval.blockeval_printer import Printer

REPL_SESSION = "repl"


# A basic awaitable input prompt.
async def ainput(prompt: str) -> str:
    loop = asyncio.get_running_loop()
    sys.stdout.write(prompt)
    sys.stdout.flush()
    return await loop.run_in_executor(None, sys.stdin.readline)


def parse_args(argv):
    parser = argparse.ArgumentParser(prog="blockeval", description="Evaluate a code block.")
    parser.add_argument("file", nargs="?", help="source file to evaluate; omit for a REPL")
    parser.add_argument("--result", choices=[k.value for k in ResultKind], default=None,
                        help="capture printed output or the final value")
    parser.add_argument("--session", default=None,
                        help="session id to evaluate in ('none' spawns a fresh process)")
    parser.add_argument("--var", action="append", default=[], metavar="NAME=VALUE",
                        help="bind NAME around the block; VALUE is read as YAML")
    parser.add_argument("--config", default=os.environ.get("BLOCKEVAL_CONFIG"),
                        help="engine config file (.yaml, .json or .toml)")
    return parser.parse_args(argv)


def parse_bindings(specs):
    bindings = {}
    for spec in specs:
        name, sep, raw = spec.partition("=")
        if not sep or not name.strip():
            raise SystemExit(f"Error: --var expects NAME=VALUE, got {spec!r}")
        bindings[name.strip()] = parse_binding_value(raw)
    return bindings


async def run_block_file(dispatcher: Dispatcher, file_path: str, kind: ResultKind,
                         session_ref: str, bindings):
    """Evaluate a source file once and exit with an appropriate status."""
    printer = Printer()
    p = Path(file_path)
    try:
        body = p.read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    request = EvaluationRequest(body=body, bindings=bindings, result_kind=kind,
                                session_ref=session_ref)
    result = await dispatcher.handle_request(request)
    if result.status == 'error':
        print(result.format_error(), file=sys.stderr)
        raise SystemExit(1)
    text = printer.pformat(result.value)
    if text:
        print(text)


async def repl(dispatcher: Dispatcher, kind: ResultKind, session_ref: str, bindings):
    print("blockeval REPL v0.1")
    print("Type 'exit' or press Ctrl+D to quit.")
    printer = Printer()

    while True:
        try:
            raw = await ainput(">> ")
            if raw == "":
                raise EOFError
            line = raw.strip()

            if not line:
                continue
            if line == "exit":
                break

            request = EvaluationRequest(body=line, bindings=dict(bindings),
                                        result_kind=kind, session_ref=session_ref)
            result = await dispatcher.handle_request(request)

            if result.status == 'error':
                print(result.format_error(), file=sys.stderr)
                continue

            text = printer.pformat(result.value)
            if text:
                print(text)

        except EOFError:
            print("\nExiting.")
            break


async def main(argv=None):
    """Evaluate a file when provided, otherwise start the interactive REPL."""
    args = parse_args(sys.argv[1:] if argv is None else argv)
    try:
        config = load_config(args.config) if args.config else EngineConfig()
    except BlockEvalError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(1)
    bindings = parse_bindings(args.var)
    dispatcher = Dispatcher(config, launcher=build_launch_spec)
    try:
        if args.file:
            kind = ResultKind.parse(args.result or "output")
            await run_block_file(dispatcher, args.file, kind, args.session or NO_SESSION, bindings)
            return
        kind = ResultKind.parse(args.result or "value")
        await repl(dispatcher, kind, args.session or REPL_SESSION, bindings)
    finally:
        await dispatcher.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nExiting.")
