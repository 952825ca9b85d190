#!/usr/bin/env python3
"""
Browser Terminal - Flask + Socket.IO front-end for the sandbox
"""

import logging
import os
import random
from typing import Dict

from flask import Flask, jsonify, render_template, request
from flask_socketio import SocketIO, emit

from sandbox.session import SandboxVM, UnknownSessionError

logger = logging.getLogger(__name__)

STATS_INTERVAL_SECONDS = 2

# Flask app setup
app = Flask(__name__)
app.config['SECRET_KEY'] = os.getenv('FLASK_SECRET_KEY', 'sandbox-secret-key')
socketio = SocketIO(app, cors_allowed_origins="*")

# One sandbox shared by every browser tab
vm = SandboxVM()


def sessions_payload() -> Dict:
    """Session list plus which one is active"""
    return {
        'active_session_id': vm.active_session_id,
        'sessions': [
            {'id': s.id, 'name': s.name, 'current_path': s.current_path}
            for s in vm.list_sessions()
        ],
    }


def run_command(session_id: str, command: str) -> Dict:
    """Execute a command and describe what the browser should render"""
    new_lines = vm.handle_command(command, session_id)
    session = vm.get_session(session_id)
    return {
        'session_id': session.id,
        'lines': [line.to_dict() for line in new_lines],
        'clear': not new_lines,
        'current_path': session.current_path,
        'prompt': session.get_prompt(),
    }


def simulated_stats() -> Dict:
    """Fake resource gauges for the header bar"""
    return {
        'cpu': random.randint(1, 15),
        'ram': random.randint(150, 199),
    }


@app.errorhandler(UnknownSessionError)
def handle_unknown_session(e):
    return jsonify({'error': str(e)}), 404


@app.route('/')
def index():
    """Terminal page"""
    return render_template('index.html')


@app.route('/api/sessions')
def get_sessions():
    """List open sessions"""
    return jsonify(sessions_payload())


@app.route('/api/sessions', methods=['POST'])
def create_session():
    """Open a new tab"""
    session = vm.new_session()
    return jsonify(session.to_dict()), 201


@app.route('/api/sessions/<session_id>')
def get_session(session_id):
    """Full state of one session"""
    return jsonify(vm.get_session(session_id).to_dict())


@app.route('/api/sessions/<session_id>', methods=['DELETE'])
def close_session(session_id):
    """Close a tab; the last one stays open"""
    if not vm.close_session(session_id):
        return jsonify({'error': 'Cannot close the last session'}), 409
    return jsonify(sessions_payload())


@app.route('/api/sessions/<session_id>/activate', methods=['POST'])
def activate_session(session_id):
    """Switch the active tab"""
    vm.switch_session(session_id)
    return jsonify(sessions_payload())


@app.route('/api/sessions/<session_id>/execute', methods=['POST'])
def execute(session_id):
    """Run one command line in a session"""
    data = request.get_json(silent=True) or {}
    command = data.get('command')
    if not isinstance(command, str):
        return jsonify({'error': 'command required'}), 400

    try:
        return jsonify(run_command(session_id, command))
    except UnknownSessionError:
        raise
    except Exception as e:
        logger.error(f"Error executing command in {session_id}: {e}")
        return jsonify({'error': str(e)}), 500


@app.route('/api/reset', methods=['POST'])
def reset():
    """Wipe the filesystem and all sessions"""
    session = vm.reset()
    return jsonify({'session': session.to_dict(), **sessions_payload()})


# WebSocket events
@socketio.on('connect')
def handle_connect():
    """Handle client connection"""
    logger.info('Browser connected to sandbox')
    emit('connected', sessions_payload())


@socketio.on('disconnect')
def handle_disconnect():
    logger.info('Browser disconnected from sandbox')


@socketio.on('command')
def handle_command(data):
    """Run a command sent over the socket"""
    if not isinstance(data, dict) or not isinstance(data.get('command'), str):
        emit('command_error', {'error': 'command required'})
        return

    session_id = data.get('session_id') or vm.active_session_id
    try:
        emit('lines', run_command(session_id, data['command']))
    except UnknownSessionError as e:
        emit('command_error', {'error': str(e)})


def broadcast_stats():
    """Background task pushing the simulated gauges"""
    while True:
        socketio.sleep(STATS_INTERVAL_SECONDS)
        socketio.emit('stats_update', simulated_stats())


def main():
    logging.basicConfig(
        level=os.getenv('SANDBOX_LOG_LEVEL', 'INFO').upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    socketio.start_background_task(broadcast_stats)

    socketio.run(
        app,
        host=os.getenv('WEB_HOST', '0.0.0.0'),
        port=int(os.getenv('WEB_PORT', '8080')),
        debug=os.getenv('FLASK_DEBUG', 'false').lower() == 'true',
        allow_unsafe_werkzeug=True
    )


if __name__ == '__main__':
    main()
