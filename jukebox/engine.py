"""
Media engine interface for jukebox.

The playback controller only needs to load a file, pause/resume, and hear
about the end of a file. MpvEngine provides that by driving an mpv process
over its JSON IPC socket.
"""

import json
import logging
import os
import queue
import socket
import subprocess
import tempfile
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

# mpv options always passed; the player window stays open between files
DEFAULT_MPV_OPTIONS = [
    '--idle=yes',
    '--keep-open=yes',
    '--fps=60',
    '--no-border',
    '--osd-level=0',
    '--sub-codepage=UTF-8-BROKEN',
]

EOF_OBSERVER_ID = 13
_EOF_EVENT = 'eof'


class EngineError(Exception):
    """A media engine command failed."""


class MediaEngine(ABC):
    """Abstract base class for media engines."""

    def __init__(self):
        self._eof_callback: Optional[Callable[[], None]] = None

    def set_eof_callback(self, callback: Optional[Callable[[], None]]):
        """
        Set the function called when the current file reaches its end.

        Engines may call it more than once per file, and once right after
        the next file starts loading.
        """
        self._eof_callback = callback

    def _emit_eof(self):
        callback = self._eof_callback
        if callback is not None:
            callback()

    @abstractmethod
    def start(self):
        """Start the engine."""
        ...

    @abstractmethod
    def stop(self):
        """Stop the engine and release its resources."""
        ...

    @abstractmethod
    def load(self, path: str):
        """Replace the current file with the given one."""
        ...

    @abstractmethod
    def resume(self):
        ...

    @abstractmethod
    def pause(self):
        ...

    @abstractmethod
    def toggle_pause(self):
        ...


def default_ipc_path() -> str:
    return os.path.join(tempfile.gettempdir(), 'jukebox-mpv.sock')


def build_mpv_args(mpv_path: str, ipc_path: str, options: Optional[List[str]] = None) -> List[str]:
    """Build the mpv command line."""
    return [mpv_path, *DEFAULT_MPV_OPTIONS, *(options or []), f'--input-ipc-server={ipc_path}']


class MpvEngine(MediaEngine):
    """Media engine backed by an mpv process and its JSON IPC socket."""

    def __init__(
        self,
        mpv_path: str = 'mpv',
        ipc_path: Optional[str] = None,
        options: Optional[List[str]] = None,
        command_timeout: float = 2.0,
        connect_timeout: float = 10.0,
    ):
        """
        Initialize MpvEngine.

        Args:
            mpv_path: mpv executable
            ipc_path: Unix socket path for --input-ipc-server
            options: Extra mpv command-line options
            command_timeout: Seconds to wait for a command reply
            connect_timeout: Seconds to wait for the IPC socket after launch
        """
        super().__init__()
        self.logger = logging.getLogger(__name__)
        self.mpv_path = mpv_path
        self.ipc_path = ipc_path or default_ipc_path()
        self.options = list(options or [])
        self.command_timeout = command_timeout
        self.connect_timeout = connect_timeout

        self._proc: Optional[subprocess.Popen] = None
        self._sock: Optional[socket.socket] = None
        self._lock = threading.RLock()
        self._send_lock = threading.Lock()
        self._replies_cond = threading.Condition()
        self._replies: Dict[int, Dict[str, Any]] = {}
        self._request_id = 0
        self._reader_thread: Optional[threading.Thread] = None

        # End-of-file callbacks run here, so they may issue commands whose
        # replies the reader thread has to deliver.
        self._events: "queue.Queue[Optional[str]]" = queue.Queue()
        self._dispatcher_thread: Optional[threading.Thread] = None

    # =========================================================================
    # Process Lifecycle
    # =========================================================================

    def start(self):
        """Launch mpv and connect to its IPC socket."""
        with self._lock:
            self._start_dispatcher()
            self._start_locked()

    def _start_locked(self):
        self._close_socket()
        self._terminate_process()
        self._cleanup_ipc_path()

        args = build_mpv_args(self.mpv_path, self.ipc_path, self.options)
        self.logger.info('Starting mpv: %s', ' '.join(args))
        try:
            self._proc = subprocess.Popen(
                args,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            self._proc = None
            raise EngineError(f'Failed to start mpv: {e}') from e

        sock = self._connect_ipc()
        if sock is None:
            self._terminate_process()
            raise EngineError(f'mpv IPC socket not available at {self.ipc_path}')
        self._attach_socket(sock)
        self.command('observe_property', EOF_OBSERVER_ID, 'eof-reached')
        self.logger.info('mpv started (pid %s)', self._proc.pid)

    def _connect_ipc(self) -> Optional[socket.socket]:
        deadline = time.monotonic() + self.connect_timeout
        while time.monotonic() < deadline:
            if self._proc is not None and self._proc.poll() is not None:
                return None
            if os.path.exists(self.ipc_path):
                sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
                try:
                    sock.connect(self.ipc_path)
                    return sock
                except OSError:
                    sock.close()
            time.sleep(0.1)
        return None

    def _attach_socket(self, sock: socket.socket):
        """Start reading replies and events from a connected socket."""
        self._sock = sock
        self._reader_thread = threading.Thread(
            target=self._read_loop, args=(sock,), daemon=True, name='MpvReader'
        )
        self._reader_thread.start()

    def _start_dispatcher(self):
        if self._dispatcher_thread and self._dispatcher_thread.is_alive():
            return
        self._dispatcher_thread = threading.Thread(
            target=self._dispatch_loop, daemon=True, name='MpvEvents'
        )
        self._dispatcher_thread.start()

    def _close_socket(self):
        sock = self._sock
        self._sock = None
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        sock.close()

    def _terminate_process(self):
        proc = self._proc
        self._proc = None
        if proc is None or proc.poll() is not None:
            return
        proc.terminate()
        try:
            proc.wait(timeout=5)
        except subprocess.TimeoutExpired:
            self.logger.warning('mpv did not exit, killing it')
            proc.kill()
            proc.wait(timeout=5)

    def _cleanup_ipc_path(self):
        try:
            os.remove(self.ipc_path)
        except FileNotFoundError:
            pass

    def stop(self):
        """Stop mpv and the event dispatcher."""
        with self._lock:
            self.logger.info('Stopping mpv')
            self._close_socket()
            self._terminate_process()
            self._cleanup_ipc_path()
            if self._dispatcher_thread and self._dispatcher_thread.is_alive():
                self._events.put(None)
                self._dispatcher_thread.join(timeout=2.0)
            self._dispatcher_thread = None

    def is_running(self) -> bool:
        return self._proc is not None and self._proc.poll() is None and self._sock is not None

    def _ensure_running(self):
        with self._lock:
            if self.is_running():
                return
            self.logger.warning('mpv is not running, restarting it')
            self._start_dispatcher()
            self._start_locked()

    # =========================================================================
    # IPC
    # =========================================================================

    def command(self, *args: Any) -> Any:
        """
        Send a command to mpv and wait for its reply.

        Returns:
            The reply's data field

        Raises:
            EngineError: If the command cannot be sent, times out or fails
        """
        sock = self._sock
        if sock is None:
            raise EngineError('mpv IPC socket is not connected')

        with self._replies_cond:
            self._request_id += 1
            request_id = self._request_id

        data = (json.dumps({'command': list(args), 'request_id': request_id}) + '\n').encode('utf-8')
        try:
            with self._send_lock:
                sock.sendall(data)
        except OSError as e:
            raise EngineError(f'Failed to send {args[0]} to mpv: {e}') from e

        with self._replies_cond:
            self._replies_cond.wait_for(
                lambda: request_id in self._replies or self._sock is not sock,
                timeout=self.command_timeout,
            )
            reply = self._replies.pop(request_id, None)

        if reply is None:
            raise EngineError(f'No reply from mpv to {args[0]}')
        if reply.get('error') != 'success':
            raise EngineError(f'mpv rejected {args[0]}: {reply.get("error")}')
        return reply.get('data')

    def _read_loop(self, sock: socket.socket):
        buffer = b''
        while True:
            try:
                chunk = sock.recv(4096)
            except OSError:
                break
            if not chunk:
                break
            buffer += chunk
            while b'\n' in buffer:
                line, buffer = buffer.split(b'\n', 1)
                if not line.strip():
                    continue
                try:
                    message = json.loads(line.decode('utf-8', errors='replace'))
                except ValueError:
                    self.logger.warning('Ignoring malformed mpv message: %r', line)
                    continue
                self._handle_message(message)

        self.logger.debug('mpv IPC reader stopped')
        if self._sock is sock:
            self._sock = None
        with self._replies_cond:
            self._replies_cond.notify_all()

    def _handle_message(self, message: Dict[str, Any]):
        """Route a message from mpv to a waiting command or the event queue."""
        if 'event' not in message:
            request_id = message.get('request_id')
            if request_id is not None:
                with self._replies_cond:
                    self._replies[request_id] = message
                    self._replies_cond.notify_all()
            return

        if (
            message.get('event') == 'property-change'
            and message.get('name') == 'eof-reached'
            and message.get('data') is True
        ):
            self._events.put(_EOF_EVENT)

    def _dispatch_loop(self):
        while True:
            event = self._events.get()
            if event is None:
                break
            try:
                self._emit_eof()
            except Exception as e:
                self.logger.error('Error handling end of file: %s', e, exc_info=True)

    # =========================================================================
    # Playback Commands
    # =========================================================================

    def load(self, path: str):
        self._ensure_running()
        self.command('loadfile', path, 'replace')

    def resume(self):
        self._ensure_running()
        self.command('set_property', 'pause', False)

    def pause(self):
        self._ensure_running()
        self.command('set_property', 'pause', True)

    def toggle_pause(self):
        self._ensure_running()
        self.command('cycle', 'pause')
