#!/usr/bin/env python3
"""
Session State - Terminal sessions (tabs) sharing one sandbox filesystem

The interpreter is pure; this module is its caller. It owns the current
filesystem snapshot, each session's working directory, display lines and
command history, and applies every CommandResult to that state.
"""

import logging
import threading
import uuid
from collections import OrderedDict
from typing import Dict, List, Optional

from sandbox.filesystem import HOME_PATH, INITIAL_FS, DirNode
from sandbox.shell import CommandInterpreter

logger = logging.getLogger(__name__)


SYSTEM_BANNER = (
    'Sandbox OS v1.0.0\n'
    'Temporary isolated environment initialized.\n'
    'Type "help" for available commands.'
)

PROMPT_HOST = 'android'

LINE_TYPES = ('input', 'output', 'error', 'system')


class UnknownSessionError(KeyError):
    """Raised when a session id does not exist"""

    def __init__(self, session_id: str):
        super().__init__(session_id)
        self.session_id = session_id

    def __str__(self) -> str:
        return f"No such session: {self.session_id}"


def generate_id() -> str:
    """Short random identifier for sessions and lines"""
    return uuid.uuid4().hex[:7]


class TerminalLine:
    """One rendered line of terminal output"""

    def __init__(self, line_type: str, text: str, line_id: Optional[str] = None):
        if line_type not in LINE_TYPES:
            raise ValueError(f"Invalid line type: {line_type}")
        self.id = line_id or generate_id()
        self.type = line_type
        self.text = text

    def to_dict(self) -> Dict[str, str]:
        return {'id': self.id, 'type': self.type, 'text': self.text}

    def __repr__(self) -> str:
        return f"TerminalLine({self.type!r}, {self.text!r})"


class Session:
    """A single terminal tab"""

    def __init__(self, session_id: str, name: str):
        self.id = session_id
        self.name = name
        self.lines: List[TerminalLine] = [TerminalLine('system', SYSTEM_BANNER)]
        self.history: List[str] = []
        self.current_path = HOME_PATH

    def get_prompt(self) -> str:
        """Generate the shell prompt"""
        return f"sandbox@{PROMPT_HOST}:{self.current_path}$ "

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'name': self.name,
            'current_path': self.current_path,
            'prompt': self.get_prompt(),
            'history': list(self.history),
            'lines': [line.to_dict() for line in self.lines],
        }


class HistoryCursor:
    """Up/Down recall over a session's command history.

    Position -1 is the fresh input line; 0 is the newest entry.
    """

    def __init__(self, history: List[str]):
        self.history = history
        self.index = -1

    def older(self) -> Optional[str]:
        """Step to an older entry; sticks at the oldest. None if history is empty"""
        if not self.history:
            return None
        if self.index + 1 < len(self.history):
            self.index += 1
        return self.history[len(self.history) - 1 - self.index]

    def newer(self) -> Optional[str]:
        """Step to a newer entry, '' past the newest. None if already there"""
        if self.index > 0:
            self.index -= 1
            return self.history[len(self.history) - 1 - self.index]
        if self.index == 0:
            self.index = -1
            return ''
        return None


class SandboxVM:
    """Shared filesystem plus the set of open sessions"""

    def __init__(self, interpreter: Optional[CommandInterpreter] = None):
        self.interpreter = interpreter or CommandInterpreter()
        self.fs: DirNode = INITIAL_FS
        self.sessions: 'OrderedDict[str, Session]' = OrderedDict()
        self.active_session_id: Optional[str] = None
        self.lock = threading.Lock()
        self.new_session()

    def get_session(self, session_id: Optional[str] = None) -> Session:
        """Get a session by id, defaulting to the active one"""
        if session_id is None:
            session_id = self.active_session_id
        session = self.sessions.get(session_id)
        if session is None:
            raise UnknownSessionError(session_id)
        return session

    @property
    def active_session(self) -> Session:
        return self.get_session()

    def list_sessions(self) -> List[Session]:
        return list(self.sessions.values())

    def _open_session(self) -> Session:
        name = 'bash' if not self.sessions else f"bash-{len(self.sessions) + 1}"
        session = Session(generate_id(), name)
        self.sessions[session.id] = session
        self.active_session_id = session.id
        logger.info(f"Opened session {session.id} ({session.name})")
        return session

    def new_session(self) -> Session:
        """Open a new tab and make it active"""
        with self.lock:
            return self._open_session()

    def close_session(self, session_id: str) -> bool:
        """Close a tab. The last remaining tab cannot be closed"""
        with self.lock:
            if session_id not in self.sessions:
                raise UnknownSessionError(session_id)
            if len(self.sessions) == 1:
                return False

            del self.sessions[session_id]
            if self.active_session_id == session_id:
                self.active_session_id = next(reversed(self.sessions))
        logger.info(f"Closed session {session_id}")
        return True

    def switch_session(self, session_id: str) -> Session:
        """Make a session the active one"""
        with self.lock:
            session = self.get_session(session_id)
            self.active_session_id = session.id
        return session

    def handle_command(self, command_line: str,
                       session_id: Optional[str] = None) -> List[TerminalLine]:
        """Run a line in a session and return the lines it appended"""
        with self.lock:
            session = self.get_session(session_id)

            if not command_line.strip():
                blank = TerminalLine('input', '')
                session.lines.append(blank)
                return [blank]

            new_lines = [TerminalLine('input', command_line)]
            result = self.interpreter.execute(command_line, session.current_path, self.fs)

            if result.clear:
                session.lines = []
                new_lines = []
            else:
                if result.output:
                    new_lines.append(TerminalLine('output', result.output))
                if result.error:
                    new_lines.append(TerminalLine('error', result.error))
                session.lines.extend(new_lines)

            if result.new_fs is not None:
                self.fs = result.new_fs
            session.history.append(command_line)
            if result.new_path:
                session.current_path = result.new_path

        logger.debug(f"Session {session.id} ran {command_line!r}")
        return new_lines

    def reset(self) -> Session:
        """Restore the seed filesystem and replace every session with a fresh one"""
        with self.lock:
            self.fs = INITIAL_FS
            self.sessions.clear()
            logger.info("Sandbox reset to initial state")
            return self._open_session()
