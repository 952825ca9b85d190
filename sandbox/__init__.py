#!/usr/bin/env python3
"""
Sandbox OS Package
A simulated Unix shell over a disposable in-memory filesystem
"""

__version__ = '1.0.0'

from .filesystem import DirNode, FileNode, INITIAL_FS, resolve_path, get_node
from .shell import CommandInterpreter, CommandResult, execute_command
from .session import SandboxVM, Session, UnknownSessionError
from .ssh_server import SandboxSSH

__all__ = [
    'DirNode',
    'FileNode',
    'INITIAL_FS',
    'resolve_path',
    'get_node',
    'CommandInterpreter',
    'CommandResult',
    'execute_command',
    'SandboxVM',
    'Session',
    'UnknownSessionError',
    'SandboxSSH'
]
