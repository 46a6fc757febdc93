"""Gateway state file: load, atomic save and an exclusive run lock."""

import fcntl
import json
import os
import tempfile
import threading
import time
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from natgw_lifecycle.utils.errors import StateError

from .models import State, TrackedGateway


class StateLockError(StateError):
    """Another process holds the state file lock."""


class StateNotFoundError(StateError):
    """No state file has been written for the project yet."""


class StateManager:
    """Owns one project's state file.

    Concurrent reconciliations within a run share one manager. Every
    ``put_gateway`` / ``remove_gateway`` is serialized and written straight to
    disk, so an id assigned by EC2 survives a crash later in the run. Separate
    runs against the same file are excluded with an ``flock`` on a sibling
    ``.lock`` file.
    """

    LOCK_POLL_INTERVAL = 0.1

    def __init__(self, state_path: str):
        self.state_path = Path(state_path)
        self.lock_path = self.state_path.with_suffix(".lock")
        self._lock_fd: Optional[int] = None
        self._current_state: Optional[State] = None
        self._mutex = threading.Lock()

    def load(self) -> State:
        """
        Read and validate the state file.

        Raises:
            StateNotFoundError: If the file does not exist
            StateError: If the file cannot be read or does not hold a valid state
        """
        try:
            raw = self.state_path.read_text()
        except FileNotFoundError:
            raise StateNotFoundError(f"State file not found: {self.state_path}")
        except OSError as e:
            raise StateError(f"Failed to read state file: {e}", cause=e)

        try:
            self._current_state = State.from_dict(json.loads(raw))
        except json.JSONDecodeError as e:
            raise StateError(f"Failed to parse state file {self.state_path}: {e}", cause=e)
        except ValidationError as e:
            raise StateError(f"Invalid state file {self.state_path}: {e}", cause=e)
        return self._current_state

    def save(self, state: State) -> None:
        """
        Write ``state`` to a temporary file beside the state file, then
        rename it over the original.

        Raises:
            StateError: If the file cannot be written
        """
        directory = self.state_path.parent
        directory.mkdir(parents=True, exist_ok=True)

        fd, temp_name = tempfile.mkstemp(prefix=f".{self.state_path.name}.", dir=directory)
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(state.to_dict(), f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_name, self.state_path)
        except OSError as e:
            raise StateError(f"Failed to save state file: {e}", cause=e)
        finally:
            # Only left over when the write or rename failed
            if os.path.exists(temp_name):
                os.unlink(temp_name)

        self._current_state = state

    def initialize(self, project_name: str, region: str) -> State:
        """Write an empty state for ``project_name`` in ``region``."""
        state = State(project_name=project_name, region=region)
        self.save(state)
        return state

    def load_or_initialize(self, project_name: str, region: str) -> State:
        if not self.exists():
            return self.initialize(project_name, region)

        state = self.load()
        if state.region != region:
            raise StateError(
                f"State file {self.state_path} tracks region {state.region}, not {region}",
                suggestions=['Use a separate state file per region'],
            )
        return state

    def exists(self) -> bool:
        return self.state_path.exists()

    def lock(self, timeout: float = 30) -> None:
        """
        Take the exclusive run lock, polling until ``timeout`` seconds pass.

        Raises:
            StateLockError: If another process still holds the lock
        """
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(str(self.lock_path), os.O_CREAT | os.O_RDWR)
        deadline = time.monotonic() + timeout

        while True:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    os.close(fd)
                    raise StateLockError(
                        f"State file {self.state_path} is locked",
                        suggestions=['Another natgw run may be in progress for this project'],
                    )
                time.sleep(self.LOCK_POLL_INTERVAL)
            else:
                self._lock_fd = fd
                return

    def unlock(self) -> None:
        if self._lock_fd is None:
            return
        try:
            fcntl.flock(self._lock_fd, fcntl.LOCK_UN)
        finally:
            os.close(self._lock_fd)
            self._lock_fd = None

    def __enter__(self):
        """Lock, then load the state if the file exists."""
        self.lock()
        try:
            if self.exists():
                self.load()
        except StateError:
            self.unlock()
            raise
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.unlock()

    def get_state(self) -> State:
        """
        Get the current state.

        Raises:
            StateError: If state is not loaded
        """
        if self._current_state is None:
            raise StateError("State not loaded. Call load() first.")

        return self._current_state

    def put_gateway(self, gateway: TrackedGateway) -> None:
        """Record a gateway and persist the state immediately."""
        with self._mutex:
            state = self.get_state()
            state.put_gateway(gateway)
            self.save(state)

    def remove_gateway(self, name: str) -> Optional[TrackedGateway]:
        """Forget a gateway and persist the state immediately."""
        with self._mutex:
            state = self.get_state()
            removed = state.remove_gateway(name)
            self.save(state)
            return removed
