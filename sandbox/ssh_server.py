#!/usr/bin/env python3
"""
SSH Terminal - Serves sandbox sessions over SSH

Every connection opens its own session (tab) on a shared SandboxVM, so all
connected clients see one filesystem while keeping separate working
directories and histories.
"""

import codecs
import logging
import os
import signal
import socket
import sys
import threading
from typing import Dict, List, Optional

import paramiko

from sandbox.session import HistoryCursor, SandboxVM, TerminalLine

logger = logging.getLogger(__name__)


SERVER_BANNER = 'SSH-2.0-OpenSSH_8.9p1 Sandbox-1.0'

CLEAR_SCREEN = '\033[2J\033[H'
ERASE_LINE = '\r\033[K'

EXIT_COMMANDS = ('exit', 'logout')


class SandboxSSHServer(paramiko.ServerInterface):
    """SSH server interface that lets everyone into the sandbox"""

    def __init__(self, client_ip: str):
        self.client_ip = client_ip
        self.event = threading.Event()
        self.username = None

    def check_channel_request(self, kind: str, chanid: int) -> int:
        """Accept session channel requests"""
        if kind == 'session':
            return paramiko.OPEN_SUCCEEDED
        return paramiko.OPEN_FAILED_ADMINISTRATIVELY_PROHIBITED

    def check_auth_password(self, username: str, password: str) -> int:
        """The sandbox is disposable; any credentials are fine"""
        self.username = username
        logger.info(f"Password login from {self.client_ip} as {username}")
        return paramiko.AUTH_SUCCESSFUL

    def check_auth_publickey(self, username: str, key: paramiko.PKey) -> int:
        self.username = username
        logger.info(f"Public key login from {self.client_ip} as {username}")
        return paramiko.AUTH_SUCCESSFUL

    def get_allowed_auths(self, username: str) -> str:
        return 'password,publickey'

    def check_channel_shell_request(self, channel: paramiko.Channel) -> bool:
        self.event.set()
        return True

    def check_channel_pty_request(self, channel: paramiko.Channel, term: str,
                                  width: int, height: int, pixelwidth: int,
                                  pixelheight: int, modes: bytes) -> bool:
        return True


def render_lines(lines: List[TerminalLine]) -> str:
    """Render terminal lines with CRLF line endings"""
    rendered = ''
    for line in lines:
        if line.type == 'input':
            continue
        rendered += line.text.replace('\n', '\r\n') + '\r\n'
    return rendered


class SSHTerminal:
    """Line editor and display loop for one sandbox session"""

    def __init__(self, channel, vm: SandboxVM, session_id: str):
        self.channel = channel
        self.vm = vm
        self.session_id = session_id
        self.running = True
        self.decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')

    @property
    def session(self):
        return self.vm.get_session(self.session_id)

    def send(self, data: str):
        """Send data to the client"""
        try:
            self.channel.send(data.encode('utf-8'))
        except (OSError, EOFError, paramiko.SSHException):
            self.running = False

    def recv(self) -> Optional[str]:
        """Receive one character from the client, or None at end of input"""
        while True:
            try:
                data = self.channel.recv(1)
            except (OSError, EOFError, paramiko.SSHException):
                data = b''
            if not data:
                self.running = False
                return None
            # Multi-byte characters arrive one byte at a time
            char = self.decoder.decode(data)
            if char:
                return char

    def read_escape(self) -> Optional[str]:
        """Consume a CSI sequence after ESC, returning it without the ESC [ prefix"""
        first = self.recv()
        if first is None:
            return None
        if first != '[':
            return ''
        sequence = ''
        while True:
            char = self.recv()
            if char is None:
                return None
            sequence += char
            if '@' <= char <= '~':
                return sequence

    def send_welcome(self):
        """Replay the session's existing lines, starting with the banner"""
        self.send(render_lines(self.session.lines))

    def redraw(self, command_line: str):
        self.send(ERASE_LINE + self.session.get_prompt() + command_line)

    def read_line(self):
        """Read one command line, or None when the client is gone"""
        cursor = HistoryCursor(self.session.history)
        command_line = ''

        while True:
            char = self.recv()
            if char is None:
                return None

            if char in ('\r', '\n'):
                self.send('\r\n')
                return command_line
            elif char in ('\x7f', '\x08'):  # Backspace
                if command_line:
                    command_line = command_line[:-1]
                    self.send('\x08 \x08')
            elif char == '\x03':  # Ctrl+C
                self.send('^C\r\n')
                return ''
            elif char == '\x04':  # Ctrl+D
                if not command_line:
                    self.running = False
                    return None
            elif char == '\x0c':  # Ctrl+L
                self.send(CLEAR_SCREEN)
                self.redraw(command_line)
            elif char == '\x1b':
                sequence = self.read_escape()
                if sequence is None:
                    return None
                # Only plain Up/Down are bound; other keys are swallowed
                if sequence == 'A':
                    recalled = cursor.older()
                elif sequence == 'B':
                    recalled = cursor.newer()
                else:
                    recalled = None
                if recalled is not None:
                    command_line = recalled
                    self.redraw(command_line)
            elif ord(char) >= 32:
                command_line += char
                self.send(char)

    def execute(self, command_line: str):
        """Run a line through the VM and display the result"""
        if command_line.strip() in EXIT_COMMANDS:
            self.send('logout\r\n')
            self.running = False
            return

        new_lines = self.vm.handle_command(command_line, self.session_id)
        if not new_lines:  # clear
            self.send(CLEAR_SCREEN)
            return
        self.send(render_lines(new_lines))

    def run(self):
        """Main shell loop"""
        try:
            self.send_welcome()
            while self.running:
                self.send(self.session.get_prompt())
                command_line = self.read_line()
                if command_line is None:
                    break
                self.execute(command_line)
        except Exception as e:
            logger.error(f"Terminal error in session {self.session_id}: {e}")
        finally:
            try:
                self.channel.close()
            except (OSError, EOFError, paramiko.SSHException):
                pass


class SandboxSSH:
    """SSH listener handing each client its own sandbox session"""

    def __init__(self, host: str = '0.0.0.0', port: int = 2222,
                 key_file: str = './config/host_key_rsa', vm: SandboxVM = None):
        self.host = host
        self.port = port
        self.key_file = key_file
        self.vm = vm or SandboxVM()
        self.server_socket = None
        self.running = False
        self.active_clients: Dict[str, threading.Thread] = {}

        self._setup_host_key()

    def _setup_host_key(self):
        """Generate or load RSA host key"""
        if not os.path.exists(self.key_file):
            logger.info("Generating new host key...")
            key = paramiko.RSAKey.generate(2048)
            os.makedirs(os.path.dirname(self.key_file) or '.', exist_ok=True)
            key.write_private_key_file(self.key_file)
            logger.info(f"Host key saved to {self.key_file}")
        else:
            logger.info(f"Loading existing host key from {self.key_file}")

    def handle_client(self, client_socket: socket.socket, client_ip: str, client_port: int):
        """Handle individual client connections"""
        logger.info(f"New connection from {client_ip}:{client_port}")

        transport = None
        session = None
        try:
            transport = paramiko.Transport(client_socket)
            transport.local_version = SERVER_BANNER
            transport.add_server_key(paramiko.RSAKey(filename=self.key_file))

            server = SandboxSSHServer(client_ip)
            transport.start_server(server=server)

            channel = transport.accept(30)
            if channel is None:
                logger.warning(f"No channel established for {client_ip}")
                return

            server.event.wait(10)
            if not server.event.is_set():
                logger.warning(f"No shell request from {client_ip}")
                channel.close()
                return

            session = self.vm.new_session()
            logger.info(f"Starting session {session.id} for {client_ip}")
            SSHTerminal(channel, self.vm, session.id).run()

        except (OSError, EOFError, paramiko.SSHException) as e:
            logger.error(f"Error handling client {client_ip}: {e}")
        finally:
            if session is not None and session.id in self.vm.sessions:
                self.vm.close_session(session.id)
            if transport:
                transport.close()
            try:
                client_socket.close()
            except OSError:
                pass

    def prune_finished_clients(self):
        """Forget client threads that have already disconnected"""
        for client_key, thread in list(self.active_clients.items()):
            if not thread.is_alive():
                del self.active_clients[client_key]

    def start(self):
        """Start the SSH listener"""
        self.running = True

        try:
            self.server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            self.server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self.server_socket.bind((self.host, self.port))
            self.server_socket.listen(100)

            logger.info(f"Sandbox SSH listening on {self.host}:{self.port}")

            while self.running:
                try:
                    client_socket, (client_ip, client_port) = self.server_socket.accept()
                    self.prune_finished_clients()

                    client_thread = threading.Thread(
                        target=self.handle_client,
                        args=(client_socket, client_ip, client_port),
                        daemon=True
                    )
                    client_thread.start()

                    self.active_clients[f"{client_ip}:{client_port}"] = client_thread

                except OSError as e:
                    if self.running:
                        logger.error(f"Error accepting connection: {e}")

        except OSError as e:
            logger.error(f"Server error: {e}")
        finally:
            self.stop()

    def stop(self):
        """Stop the SSH listener"""
        if not self.running:
            return
        logger.info("Stopping sandbox SSH...")
        self.running = False

        if self.server_socket:
            try:
                self.server_socket.close()
            except OSError:
                pass

        for client_key, thread in list(self.active_clients.items()):
            logger.info(f"Waiting for client {client_key} to disconnect...")
            thread.join(timeout=5)

        logger.info("Sandbox SSH stopped")


def main():
    """Main entry point"""
    logging.basicConfig(
        level=os.getenv('SANDBOX_LOG_LEVEL', 'INFO').upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    server = SandboxSSH(
        host=os.getenv('SANDBOX_SSH_HOST', '0.0.0.0'),
        port=int(os.getenv('SANDBOX_SSH_PORT', '2222')),
        key_file=os.getenv('SANDBOX_HOST_KEY_FILE', './config/host_key_rsa')
    )

    def signal_handler(signum, frame):
        logger.info("Received shutdown signal")
        server.stop()
        sys.exit(0)

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    server.start()


if __name__ == '__main__':
    main()
