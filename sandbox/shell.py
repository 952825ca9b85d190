#!/usr/bin/env python3
"""
Sandbox Shell - Command interpreter over the virtual filesystem

Every command is a pure function of (arguments, cwd, filesystem). Commands
that change the tree return a new root in CommandResult.new_fs and leave
the snapshot they were given untouched.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from sandbox.filesystem import (
    HOME_PATH, DirNode, FileNode, format_path, get_node, resolve_path,
    with_node, without_node,
)

logger = logging.getLogger(__name__)


HELP_TEXT = (
    'Available commands:\n'
    '  help, clear, ls, cd, pwd, echo, mkdir, touch, cat, rm\n'
    '  whoami, uname, python, git, curl, apt'
)

USERNAME = 'sandbox'

UNAME_BANNER = 'Linux sandbox 5.15.0-virtual #1 SMP x86_64 GNU/Linux'

PYTHON_BANNER = (
    'Python 3.10.12 (main, Nov 20 2023, 15:14:05) [GCC 11.4.0] on linux\n'
    'Type "help", "copyright", "credits" or "license" for more information.\n'
    '>>> exit()'
)

GIT_USAGE = '''usage: git [--version] [--help] [-C <path>] [-c <name>=<value>]
           [--exec-path[=<path>]] [--html-path] [--man-path] [--info-path]
           [-p | --paginate | -P | --no-pager] [--no-replace-objects] [--bare]
           [--git-dir=<path>] [--work-tree=<path>] [--namespace=<name>]
           [--super-prefix=<path>] [--config-env=<name>=<envvar>]
           <command> [<args>]'''

CURL_EXAMPLE_PAGE = '''<!doctype html>
<html>
<head>
    <title>Example Domain</title>
</head>
<body>
    <div>
        <h1>Example Domain</h1>
        <p>This domain is for use in illustrative examples in documents.</p>
    </div>
</body>
</html>'''

CURL_USAGE = "curl: try 'curl --help' or 'curl --manual' for more information"

APT_BANNER = 'apt 2.4.10 (amd64)\nUsage: apt [options] command'

APT_PACKAGE_VERSION = '1.0.0'
APT_REPOSITORY = 'sandbox-repo'


@dataclass
class CommandResult:
    """Outcome of one interpreted command line"""

    output: Optional[str] = None
    error: Optional[str] = None
    new_path: Optional[str] = None
    new_fs: Optional[DirNode] = None
    clear: bool = False


Handler = Callable[[List[str], str, DirNode], CommandResult]


class CommandInterpreter:
    """Parses command lines and dispatches them to command handlers"""

    def __init__(self):
        self.handlers: Dict[str, Handler] = {
            'help': self._cmd_help,
            'clear': self._cmd_clear,
            'pwd': self._cmd_pwd,
            'whoami': self._cmd_whoami,
            'uname': self._cmd_uname,
            'echo': self._cmd_echo,
            'ls': self._cmd_ls,
            'cd': self._cmd_cd,
            'cat': self._cmd_cat,
            'mkdir': self._cmd_mkdir,
            'touch': self._cmd_touch,
            'rm': self._cmd_rm,
            'python': self._cmd_python,
            'git': self._cmd_git,
            'curl': self._cmd_curl,
            'apt': self._cmd_apt,
        }

    def parse_command(self, command_line: str) -> Tuple[str, List[str]]:
        """Parse command line into command and arguments"""
        parts = command_line.strip().split()
        if not parts:
            return '', []
        return parts[0], parts[1:]

    def execute(self, command_line: str, cwd: str, fs: DirNode) -> CommandResult:
        """Run one command line against cwd and the filesystem snapshot"""
        command, args = self.parse_command(command_line)
        if not command:
            return CommandResult()

        handler = self.handlers.get(command)
        if handler is None:
            logger.debug(f"Unknown command: {command}")
            return CommandResult(error=f"{command}: command not found")

        logger.debug(f"Dispatching {command} with {len(args)} argument(s) in {cwd}")
        return handler(args, cwd, fs)

    # Informational commands
    def _cmd_help(self, args: List[str], cwd: str, fs: DirNode) -> CommandResult:
        return CommandResult(output=HELP_TEXT)

    def _cmd_clear(self, args: List[str], cwd: str, fs: DirNode) -> CommandResult:
        return CommandResult(clear=True)

    def _cmd_pwd(self, args: List[str], cwd: str, fs: DirNode) -> CommandResult:
        return CommandResult(output=cwd or '/')

    def _cmd_whoami(self, args: List[str], cwd: str, fs: DirNode) -> CommandResult:
        return CommandResult(output=USERNAME)

    def _cmd_uname(self, args: List[str], cwd: str, fs: DirNode) -> CommandResult:
        return CommandResult(output=UNAME_BANNER)

    def _cmd_echo(self, args: List[str], cwd: str, fs: DirNode) -> CommandResult:
        return CommandResult(output=' '.join(args))

    # Navigation and reading
    def _cmd_ls(self, args: List[str], cwd: str, fs: DirNode) -> CommandResult:
        """List directory contents"""
        target = args[0] if args else '.'
        node = get_node(fs, resolve_path(cwd, target))

        if node is None:
            return CommandResult(
                error=f"ls: cannot access '{target}': No such file or directory")
        if not node.is_directory:
            return CommandResult(output=target)
        return CommandResult(output='  '.join(node.names()))

    def _cmd_cd(self, args: List[str], cwd: str, fs: DirNode) -> CommandResult:
        """Change directory"""
        target = args[0] if args else HOME_PATH
        segments = resolve_path(cwd, target)
        node = get_node(fs, segments)

        if node is None:
            return CommandResult(error=f"cd: {target}: No such file or directory")
        if not node.is_directory:
            return CommandResult(error=f"cd: {target}: Not a directory")
        return CommandResult(new_path=format_path(segments))

    def _cmd_cat(self, args: List[str], cwd: str, fs: DirNode) -> CommandResult:
        """Print a file"""
        if not args:
            return CommandResult(error='cat: missing operand')

        target = args[0]
        node = get_node(fs, resolve_path(cwd, target))
        if node is None:
            return CommandResult(error=f"cat: {target}: No such file or directory")
        if node.is_directory:
            return CommandResult(error=f"cat: {target}: Is a directory")
        return CommandResult(output=node.content)

    # Mutating commands validate against fs and only then build a new root
    def _parent_directory(self, fs: DirNode, segments: List[str]) -> Optional[DirNode]:
        """Get the parent directory of segments, or None"""
        parent = get_node(fs, segments[:-1])
        if parent is None or not parent.is_directory:
            return None
        return parent

    def _cmd_mkdir(self, args: List[str], cwd: str, fs: DirNode) -> CommandResult:
        """Make a directory"""
        if not args:
            return CommandResult(error='mkdir: missing operand')

        target = args[0]
        segments = resolve_path(cwd, target)
        if not segments:
            return CommandResult(
                error=f"mkdir: cannot create directory '{target}': File exists")

        parent = self._parent_directory(fs, segments)
        if parent is None:
            return CommandResult(
                error=f"mkdir: cannot create directory '{target}': No such file or directory")
        if parent.child(segments[-1]) is not None:
            return CommandResult(
                error=f"mkdir: cannot create directory '{target}': File exists")

        return CommandResult(new_fs=with_node(fs, segments, DirNode()))

    def _cmd_touch(self, args: List[str], cwd: str, fs: DirNode) -> CommandResult:
        """Create an empty file if it does not exist"""
        if not args:
            return CommandResult(error='touch: missing operand')

        target = args[0]
        segments = resolve_path(cwd, target)
        if not segments:
            return CommandResult(error=f"touch: cannot touch '{target}': Permission denied")

        parent = self._parent_directory(fs, segments)
        if parent is None:
            return CommandResult(
                error=f"touch: cannot touch '{target}': No such file or directory")
        if parent.child(segments[-1]) is not None:
            return CommandResult()

        return CommandResult(new_fs=with_node(fs, segments, FileNode('')))

    def _cmd_rm(self, args: List[str], cwd: str, fs: DirNode) -> CommandResult:
        """Remove a file or directory"""
        if not args:
            return CommandResult(error='rm: missing operand')

        target = args[0]
        segments = resolve_path(cwd, target)
        if not segments:
            return CommandResult(error=f"rm: cannot remove '{target}': Permission denied")

        parent = self._parent_directory(fs, segments)
        if parent is None or parent.child(segments[-1]) is None:
            return CommandResult(
                error=f"rm: cannot remove '{target}': No such file or directory")

        return CommandResult(new_fs=without_node(fs, segments))

    # Canned tools
    def _cmd_python(self, args: List[str], cwd: str, fs: DirNode) -> CommandResult:
        return CommandResult(output=PYTHON_BANNER)

    def _cmd_git(self, args: List[str], cwd: str, fs: DirNode) -> CommandResult:
        return CommandResult(output=GIT_USAGE)

    def _cmd_curl(self, args: List[str], cwd: str, fs: DirNode) -> CommandResult:
        """Transfer data from or to a server"""
        if args:
            return CommandResult(output=CURL_EXAMPLE_PAGE)
        return CommandResult(output=CURL_USAGE)

    def _cmd_apt(self, args: List[str], cwd: str, fs: DirNode) -> CommandResult:
        """Package manager"""
        if not args or args[0] != 'install':
            return CommandResult(output=APT_BANNER)

        packages = args[1:]
        if not packages:
            return CommandResult(error='apt: missing package name')

        lines = [
            'Reading package lists... Done',
            'Building dependency tree... Done',
            'Reading state information... Done',
            'The following NEW packages will be installed:',
            f"  {' '.join(packages)}",
            f"0 upgraded, {len(packages)} newly installed, 0 to remove and 0 not upgraded.",
        ]
        for pkg in packages:
            lines.append(f"Inst {pkg} ({APT_PACKAGE_VERSION} {APT_REPOSITORY})")
            lines.append(f"Conf {pkg} ({APT_PACKAGE_VERSION} {APT_REPOSITORY})")
        return CommandResult(output='\n'.join(lines))


_default_interpreter = CommandInterpreter()


def execute_command(command_line: str, cwd: str, fs: DirNode) -> CommandResult:
    """Run one command line with the shared interpreter"""
    return _default_interpreter.execute(command_line, cwd, fs)
