"""
Persistent interactive sessions.

A Session is a long-lived REPL process spoken to over its stdin/stdout. Each
request is framed by unique marker lines so that printed output and the
final value can be separated on a single stream:

    <prompt noise>...START
    printed line 1
    printed line 2
    VALUE
    <printed value>
    DONE

Sessions live in an explicit SessionRegistry keyed by session id. Callers
must not run two requests on one session at the same time; nothing here
locks.
"""
from __future__ import annotations

import asyncio
import uuid
from typing import Callable, Dict, Iterator, List, Optional

from blockeval.blockeval_config import EngineConfig
from blockeval.blockeval_datatypes import (
    NO_SESSION, LaunchSpec, ProcessStartError, SessionClosedError, SessionStartError,
    SessionState, _dbg,
)
from blockeval.blockeval_forms import (
    CLOJURE, Dialect, Markers, build_ready_probe, build_session_request,
)
from blockeval.blockeval_launch import build_launch_spec
from blockeval.blockeval_process import spawn

# Large enough for a printed collection on one line
STREAM_LIMIT = 1024 * 1024


def _marker(kind: str) -> str:
    return f"__BLOCKEVAL_{kind}_{uuid.uuid4().hex[:8]}__"


class Session:
    """Handle to a REPL process plus its request/response channel."""

    def __init__(self, session_id: str, process: Optional[asyncio.subprocess.Process] = None,
                 state: SessionState = SessionState.ABSENT):
        self.session_id = session_id
        self.process = process
        self.state = state
        self.ready = False

    @property
    def connected(self) -> bool:
        if self.process is None or not self.ready or self.state is SessionState.DEAD:
            return False
        return self.process.returncode is None

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process is not None else None

    def __repr__(self):
        return f"<Session {self.session_id} {self.state.name} pid={self.pid}>"


class SessionRegistry:
    """Explicit mapping of session id -> Session."""

    def __init__(self):
        self._sessions: Dict[str, Session] = {}

    def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def put(self, session: Session) -> None:
        self._sessions[session.session_id] = session

    def discard(self, session_id: str) -> Optional[Session]:
        return self._sessions.pop(session_id, None)

    def ids(self) -> List[str]:
        return list(self._sessions.keys())

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[Session]:
        return iter(list(self._sessions.values()))


class SessionManager:
    """Finds, starts, talks to, and tears down sessions."""

    def __init__(self, config: EngineConfig, dialect: Dialect = CLOJURE,
                 launcher: Callable[[EngineConfig], LaunchSpec] = build_launch_spec,
                 registry: Optional[SessionRegistry] = None):
        self.config = config
        self.dialect = dialect
        self.launcher = launcher
        self.registry = registry if registry is not None else SessionRegistry()

    def state(self, session_id: str) -> SessionState:
        if not session_id or session_id == NO_SESSION:
            return SessionState.NONE
        session = self.registry.get(session_id)
        if session is None:
            return SessionState.ABSENT
        return SessionState.LIVE if session.connected else SessionState.DEAD

    async def initiate(self, session_id: str) -> Session:
        """Return a live session for `session_id`, starting one when needed."""
        if not session_id or session_id == NO_SESSION:
            return Session(NO_SESSION, state=SessionState.NONE)

        existing = self.registry.get(session_id)
        if existing is not None:
            if await self.is_alive(existing):
                existing.state = SessionState.LIVE
                return existing
            _dbg("SESSION", session_id, "is dead; replacing")
            self.registry.discard(session_id)
            await self._stop(existing, kill=True)

        session = await self._start(session_id)
        self.registry.put(session)
        return session

    async def is_alive(self, session: Session) -> bool:
        """True when the session answers a fresh ready probe within the settle interval."""
        if not session.connected:
            return False
        try:
            await self._await_ready(session)
        except (asyncio.TimeoutError, SessionClosedError):
            session.state = SessionState.DEAD
            return False
        return True

    async def _await_ready(self, session: Session) -> None:
        marker = _marker("READY")
        await self._send(session, build_ready_probe(marker, self.dialect))
        await asyncio.wait_for(self._await_marker(session, marker),
                               timeout=self.config.settle_interval)

    async def _start(self, session_id: str) -> Session:
        _dbg("SESSION", session_id, "starting")
        try:
            proc = await spawn(
                self.launcher(self.config),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                limit=STREAM_LIMIT,
            )
        except ProcessStartError as e:
            raise SessionStartError(session_id, str(e)) from e
        session = Session(session_id, proc)
        try:
            await self._await_ready(session)
        except asyncio.TimeoutError as e:
            await self._stop(session, kill=True)
            raise SessionStartError(
                session_id, f"no response within {self.config.settle_interval}s"
            ) from e
        except SessionClosedError as e:
            await self._stop(session, kill=True)
            raise SessionStartError(
                session_id, f"process exited with status {proc.returncode}"
            ) from e
        session.ready = True
        session.state = SessionState.LIVE
        _dbg("SESSION", session_id, "ready pid", proc.pid)
        return session

    async def _send(self, session: Session, text: str) -> None:
        proc = session.process
        try:
            proc.stdin.write(text.encode("utf-8"))
            await proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            session.state = SessionState.DEAD
            raise SessionClosedError(session.session_id) from e

    async def _readline(self, session: Session) -> str:
        raw = await session.process.stdout.readline()
        if not raw:
            session.state = SessionState.DEAD
            raise SessionClosedError(session.session_id)
        return raw.decode("utf-8", errors="replace").rstrip("\r\n")

    async def _await_marker(self, session: Session, marker: str) -> None:
        while True:
            line = await self._readline(session)
            if marker in line:
                return

    async def eval_sync(self, session: Session, source: str) -> List[str]:
        """Send `source` and wait for the reply.

        Returns the printed output lines in arrival order followed by the
        printed final value as the last fragment.
        """
        if session.process is None:
            raise ValueError(f"Session {session.session_id!r} has no process")
        markers = Markers(start=_marker("START"), value=_marker("VALUE"), done=_marker("DONE"))
        await self._send(session, build_session_request(source, markers, self.dialect))

        fragments: List[str] = []
        value_lines: List[str] = []
        phase = "before"
        while True:
            line = await self._readline(session)
            match phase:
                case "before":
                    # Anything ahead of the start marker is prompt noise
                    if markers.start in line:
                        phase = "output"
                case "output":
                    head, found, _ = line.partition(markers.value)
                    if found:
                        if head:
                            fragments.append(head)
                        phase = "value"
                    else:
                        fragments.append(line)
                case "value":
                    head, found, _ = line.partition(markers.done)
                    if found:
                        if head:
                            value_lines.append(head)
                        break
                    value_lines.append(line)
        fragments.append("\n".join(value_lines))
        return fragments

    def eval_async(self, session: Session, source: str,
                   on_complete: Callable[[List[str]], None]) -> asyncio.Task:
        """Run eval_sync as a task and hand the fragments to `on_complete`."""
        async def _run():
            fragments = await self.eval_sync(session, source)
            on_complete(fragments)
            return fragments
        return asyncio.get_running_loop().create_task(_run())

    async def _stop(self, session: Session, kill: bool = False) -> None:
        proc = session.process
        if proc is None:
            return
        if proc.returncode is None:
            try:
                proc.stdin.close()
            except Exception:
                pass
            try:
                if kill:
                    proc.kill()
                else:
                    proc.terminate()
            except ProcessLookupError:
                pass
        await proc.wait()
        session.state = SessionState.DEAD

    async def teardown(self, session_id: str) -> bool:
        session = self.registry.discard(session_id)
        if session is None:
            return False
        await self._stop(session)
        _dbg("SESSION", session_id, "torn down")
        return True

    async def teardown_all(self) -> int:
        count = 0
        for session_id in self.registry.ids():
            if await self.teardown(session_id):
                count += 1
        return count


__all__ = [
    "Session",
    "SessionRegistry",
    "SessionManager",
]
