"""
The evaluation entry point: routes a request to a session or a one-shot
process and to the output- or value-capture path.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Literal, Optional, Union

from blockeval.blockeval_classify import classify
from blockeval.blockeval_config import EngineConfig
from blockeval.blockeval_datatypes import (
    BlockEvalError, EvaluationRequest, LaunchSpec, ResultKind, Value, _dbg,
)
from blockeval.blockeval_forms import CLOJURE, Dialect, build, build_wrapper
from blockeval.blockeval_launch import build_launch_spec
from blockeval.blockeval_process import allocate_sink, remove_temp, run_output, run_value
from blockeval.blockeval_session import SessionManager


@dataclass
class EvaluationResult:
    """The structured result of handling one request."""
    status: Literal['success', 'error']
    value: Any = None
    error_message: Optional[str] = None
    error_type: Optional[str] = None

    def format_error(self) -> str:
        if self.status != 'error':
            return ""
        msg = str(self.error_message or "Unknown error")
        if self.error_type and not msg.startswith(f"{self.error_type}:"):
            return f"{self.error_type}: {msg}"
        return msg


class Dispatcher:
    """Evaluates EvaluationRequests against a configured runtime."""

    def __init__(self, config: EngineConfig, dialect: Dialect = CLOJURE,
                 launcher: Callable[[EngineConfig], LaunchSpec] = build_launch_spec,
                 sessions: Optional[SessionManager] = None):
        self.config = config
        self.dialect = dialect
        self.launcher = launcher
        if sessions is None:
            sessions = SessionManager(config, dialect=dialect, launcher=launcher)
        self.sessions = sessions

    async def evaluate(self, request: EvaluationRequest) -> Union[str, Value]:
        """Run one request; OUTPUT yields text, VALUE yields a classified Value."""
        kind = ResultKind.parse(request.result_kind)
        source = build(request.body, request.bindings, self.dialect)
        match (request.uses_session, kind):
            case (True, ResultKind.OUTPUT):
                fragments = await self._session_eval(request.session_ref, source)
                return "\n".join(fragments[:-1])
            case (True, ResultKind.VALUE):
                fragments = await self._session_eval(request.session_ref, source)
                return classify(fragments[-1])
            case (False, ResultKind.OUTPUT):
                return await run_output(self.launcher(self.config), source)
            case (False, ResultKind.VALUE):
                return await self._process_value(source)

    async def _session_eval(self, session_ref: str, source: str) -> list[str]:
        session = await self.sessions.initiate(session_ref)
        return await self.sessions.eval_sync(session, source)

    async def _process_value(self, source: str) -> Value:
        # argv before sink: a config error must not leave a temp file behind
        argv = self.launcher(self.config)
        sink_path = allocate_sink()
        try:
            wrapper = build_wrapper(source, sink_path, self.dialect)
            text = await run_value(argv, wrapper, sink_path, suffix=self.dialect.suffix)
        finally:
            remove_temp(sink_path)
        return classify(text)

    async def handle_request(self, request: EvaluationRequest) -> EvaluationResult:
        """Like evaluate, but engine errors come back as an error result."""
        try:
            value = await self.evaluate(request)
        except BlockEvalError as e:
            _dbg("ERROR", type(e).__name__, e)
            return EvaluationResult(
                status='error',
                error_message=str(e),
                error_type=type(e).__name__,
            )
        return EvaluationResult(status='success', value=value)

    async def close(self) -> int:
        return await self.sessions.teardown_all()


__all__ = [
    "Dispatcher",
    "EvaluationResult",
]
