"""
Live Preview Service - Try channel values on the rig before saving them

This module provides:
- PreviewSession: Per-project editing session holding channel overrides
- Write-through: Every override is pushed to the DMX engine immediately,
  taking precedence over scene playback on that channel
- Idle timeout: Sessions that see no edits are cancelled automatically
- Update callback: Snapshots of session + DMX output for UI streaming

Architecture:
- At most one active session per project; starting a new one cancels
  the previous one and removes its overrides from the engine
- Session state, idle timers and the update callback are guarded by one
  readers/writer lock. Accessors take it shared, mutators exclusive
- Snapshots are built under the lock and delivered to the callback on a
  fresh daemon thread, never under the lock

Override keys are "<universe>:<absolute channel>" with 1-based channels.

Version: 1.0.0
"""

import functools
import logging
import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from core.showfile.interfaces import DMXEngine, ShowRepository, check_cancelled
from core.showfile.models import UNIVERSE_SIZE, clamp_dmx_value, decode_channel_values

logger = logging.getLogger('stageshow.preview')

DEFAULT_SESSION_TIMEOUT = 30 * 60.0  # seconds


# ============================================================
# Readers/Writer Lock
# ============================================================

class ReadWriteLock:
    """
    Many readers or one writer. Waiting writers block new readers so a
    steady stream of reads cannot starve a mutation. Not re-entrant.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self):
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self):
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self):
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self):
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self):
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self):
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


# ============================================================
# Idle Timer
# ============================================================

class IdleTimer:
    """
    Restartable one-shot timer.

    Every arming bumps a generation counter and the underlying
    threading.Timer fires with the generation it was armed with. The
    expiry handler must check is_current(generation) while holding the
    lock that also guards start/reset/stop, so a timer that was stopped
    or reset after it already began firing does nothing.
    """

    def __init__(self, timeout: float, on_expire: Callable[["IdleTimer", int], None]):
        self.timeout = timeout
        self._on_expire = on_expire
        self._timer: Optional[threading.Timer] = None
        self.generation = 0
        self.stopped = False

    def start(self):
        self._arm()

    def reset(self):
        if not self.stopped:
            self._arm()

    def stop(self):
        self.stopped = True
        self.generation += 1
        if self._timer:
            self._timer.cancel()
            self._timer = None

    def is_current(self, generation: int) -> bool:
        return not self.stopped and generation == self.generation

    def _arm(self):
        if self._timer:
            self._timer.cancel()
        self.generation += 1
        self._timer = threading.Timer(self.timeout, self._on_expire, args=(self, self.generation))
        self._timer.daemon = True
        self._timer.start()


# ============================================================
# Session / Output
# ============================================================

@dataclass
class DMXOutput:
    """A full universe as the session would see it: 512 values, index 0 = channel 1"""
    universe: int
    channels: List[int]

    def to_dict(self) -> dict:
        return {'universe': self.universe, 'channels': list(self.channels)}


@dataclass
class PreviewSession:
    session_id: str
    project_id: str
    user_id: Optional[str] = None
    is_active: bool = True
    created_at: float = field(default_factory=time.time)
    channel_overrides: Dict[str, int] = field(default_factory=dict)

    def copy(self) -> "PreviewSession":
        return PreviewSession(
            session_id=self.session_id,
            project_id=self.project_id,
            user_id=self.user_id,
            is_active=self.is_active,
            created_at=self.created_at,
            channel_overrides=dict(self.channel_overrides),
        )

    def to_dict(self) -> dict:
        return {
            'session_id': self.session_id,
            'project_id': self.project_id,
            'user_id': self.user_id,
            'is_active': self.is_active,
            'created_at': datetime.fromtimestamp(self.created_at).isoformat(),
            'channel_overrides': dict(self.channel_overrides),
            'override_count': len(self.channel_overrides),
        }


def parse_channel_key(key: str) -> Tuple[int, int]:
    """'1:10' -> (1, 10)"""
    universe, channel = key.split(':', 1)
    return int(universe), int(channel)


def _new_session_id() -> str:
    return f"preview_{time.time_ns()}_{uuid.uuid4().hex[:12]}"


SessionCallback = Callable[[PreviewSession, List[DMXOutput]], None]
_Publication = Tuple[Optional[SessionCallback], PreviewSession, List[DMXOutput]]


# ============================================================
# Preview Service
# ============================================================

class PreviewService:
    """
    Manages preview sessions for live editing.

    Features:
    - One active session per project (newer sessions supersede older)
    - Clamped write-through overrides on the DMX engine
    - Seed a session from a stored scene
    - Idle timeout with reset on every edit
    - Asynchronous snapshot callback
    """

    def __init__(self, repository: ShowRepository, dmx_engine: Optional[DMXEngine],
                 session_timeout: float = DEFAULT_SESSION_TIMEOUT):
        self.repository = repository
        self.dmx_engine = dmx_engine
        self.session_timeout = session_timeout

        self._sessions: Dict[str, PreviewSession] = {}
        self._timers: Dict[str, IdleTimer] = {}
        self._callback: Optional[SessionCallback] = None
        self._lock = ReadWriteLock()

    def set_session_update_callback(self, callback: Optional[SessionCallback]):
        """Set callback for session updates: callback(session, dmx_outputs)"""
        with self._lock.write_locked():
            self._callback = callback

    # ─────────────────────────────────────────────────────────
    # Session Lifecycle
    # ─────────────────────────────────────────────────────────

    def start_session(self, project_id: str, user_id: Optional[str] = None,
                      cancel: Optional[threading.Event] = None) -> PreviewSession:
        """Start a session for a project, cancelling any active one first"""
        check_cancelled(cancel)
        publications = []

        with self._lock.write_locked():
            for existing_id, existing in list(self._sessions.items()):
                if existing.project_id == project_id and existing.is_active:
                    publications.append(self._cancel_locked(existing_id))
                    logger.info("Preview session %s superseded", existing_id)

            session = PreviewSession(
                session_id=_new_session_id(),
                project_id=project_id,
                user_id=user_id,
            )
            self._sessions[session.session_id] = session

            timer = IdleTimer(self.session_timeout,
                              functools.partial(self._on_idle_timeout, session.session_id))
            self._timers[session.session_id] = timer
            timer.start()

            publications.append(self._snapshot_locked(session))
            result = session.copy()

        for publication in publications:
            self._dispatch(publication)

        logger.info("Preview session %s started for project %s", result.session_id, project_id)
        return result

    def update_channel_value(self, session_id: str, fixture_id: str, channel_index: int,
                             value: int, cancel: Optional[threading.Event] = None) -> bool:
        """
        Override one fixture channel. channel_index is 0-based within the
        fixture; value is clamped to 0-255. False when the session or the
        fixture does not exist.
        """
        check_cancelled(cancel)

        with self._lock.write_locked():
            session = self._sessions.get(session_id)
            if session is None or not session.is_active:
                return False

            fixture = self.repository.find_fixture(fixture_id)
            if fixture is None:
                return False

            absolute_channel = fixture.start_channel + channel_index
            clamped = clamp_dmx_value(value)
            session.channel_overrides[f"{fixture.universe}:{absolute_channel}"] = clamped

            if self.dmx_engine is not None:
                self.dmx_engine.set_channel_override(fixture.universe, absolute_channel, clamped)

            timer = self._timers.get(session_id)
            if timer:
                timer.reset()
            # created_at tracks the last edit
            session.created_at = time.time()

            publication = self._snapshot_locked(session)

        self._dispatch(publication)
        return True

    def initialize_with_scene(self, session_id: str, scene_id: str,
                              cancel: Optional[threading.Event] = None) -> bool:
        """Load every fixture value of a scene into the session as overrides"""
        check_cancelled(cancel)

        with self._lock.write_locked():
            session = self._sessions.get(session_id)
            if session is None or not session.is_active:
                return False

            scene = self.repository.find_scene(scene_id)
            if scene is None:
                return False

            for fixture_value in self.repository.get_fixture_values(scene_id):
                check_cancelled(cancel)
                try:
                    fixture = self.repository.find_fixture(fixture_value.fixture_id)
                except Exception as e:
                    logger.warning("Preview: fixture %s lookup failed, skipping: %s",
                                   fixture_value.fixture_id, e)
                    continue
                if fixture is None:
                    continue

                try:
                    channels = decode_channel_values(fixture_value.channels)
                except ValueError as e:
                    logger.warning("Preview: bad channel payload for fixture %s in scene %s: %s",
                                   fixture_value.fixture_id, scene_id, e)
                    continue

                for ch in channels:
                    absolute_channel = fixture.start_channel + ch.offset
                    clamped = clamp_dmx_value(ch.value)
                    session.channel_overrides[f"{fixture.universe}:{absolute_channel}"] = clamped
                    if self.dmx_engine is not None:
                        self.dmx_engine.set_channel_override(fixture.universe, absolute_channel,
                                                             clamped)

            publication = self._snapshot_locked(session)

        self._dispatch(publication)
        return True

    def commit_session(self, session_id: str) -> bool:
        """
        End the session keeping its edits.

        Overrides were written through as they were made, so this shares
        the cancel path and clears them from the engine as well.
        """
        return self.cancel_session(session_id)

    def cancel_session(self, session_id: str) -> bool:
        """Discard a session and remove its overrides from the engine"""
        with self._lock.write_locked():
            if session_id not in self._sessions:
                return False
            publication = self._cancel_locked(session_id)

        self._dispatch(publication)
        logger.info("Preview session %s cancelled", session_id)
        return True

    def shutdown(self):
        """Stop every idle timer (service teardown)"""
        with self._lock.write_locked():
            for timer in self._timers.values():
                timer.stop()
            self._timers.clear()

    # ─────────────────────────────────────────────────────────
    # Accessors
    # ─────────────────────────────────────────────────────────

    def get_session(self, session_id: str) -> Optional[PreviewSession]:
        with self._lock.read_locked():
            session = self._sessions.get(session_id)
            return session.copy() if session else None

    def get_project_session(self, project_id: str) -> Optional[PreviewSession]:
        """The active session of a project, if any"""
        with self._lock.read_locked():
            for session in self._sessions.values():
                if session.project_id == project_id and session.is_active:
                    return session.copy()
            return None

    def get_dmx_output(self, session_id: str) -> Optional[List[DMXOutput]]:
        """Per touched universe: engine output with the session's overrides laid on top"""
        with self._lock.read_locked():
            session = self._sessions.get(session_id)
            if session is None:
                return None
            return self._dmx_output_locked(session)

    def list_sessions(self) -> List[Dict]:
        with self._lock.read_locked():
            return [s.to_dict() for s in self._sessions.values()]

    def get_status(self) -> Dict:
        """Get preview service status"""
        with self._lock.read_locked():
            sessions = [s.to_dict() for s in self._sessions.values()]
            has_callback = self._callback is not None

        return {
            'session_count': len(sessions),
            'active_count': sum(1 for s in sessions if s['is_active']),
            'override_count': sum(s['override_count'] for s in sessions),
            'session_timeout': self.session_timeout,
            'callback_installed': has_callback,
            'sessions': sessions,
        }

    # ─────────────────────────────────────────────────────────
    # Internal (callers hold the exclusive lock)
    # ─────────────────────────────────────────────────────────

    def _cancel_locked(self, session_id: str) -> _Publication:
        timer = self._timers.pop(session_id, None)
        if timer:
            timer.stop()

        session = self._sessions.pop(session_id)
        if self.dmx_engine is not None:
            for key in session.channel_overrides:
                universe, channel = parse_channel_key(key)
                self.dmx_engine.clear_channel_override(universe, channel)

        session.is_active = False
        return self._callback, session.copy(), []

    def _snapshot_locked(self, session: PreviewSession) -> _Publication:
        return self._callback, session.copy(), self._dmx_output_locked(session)

    def _dmx_output_locked(self, session: PreviewSession) -> List[DMXOutput]:
        overrides: Dict[int, List[Tuple[int, int]]] = {}
        for key, value in session.channel_overrides.items():
            universe, channel = parse_channel_key(key)
            overrides.setdefault(universe, []).append((channel, value))

        outputs = []
        for universe in sorted(overrides):
            channels = [0] * UNIVERSE_SIZE
            if self.dmx_engine is not None:
                current = self.dmx_engine.get_universe(universe)
                channels[:len(current)] = list(current)[:UNIVERSE_SIZE]
            for channel, value in overrides[universe]:
                if 1 <= channel <= UNIVERSE_SIZE:
                    channels[channel - 1] = value
            outputs.append(DMXOutput(universe=universe, channels=channels))
        return outputs

    def _on_idle_timeout(self, session_id: str, timer: IdleTimer, generation: int):
        """Runs on the timer thread"""
        with self._lock.write_locked():
            if self._timers.get(session_id) is not timer or not timer.is_current(generation):
                return
            publication = self._cancel_locked(session_id)

        self._dispatch(publication)
        logger.info("Preview session %s expired after %.0fs idle", session_id, timer.timeout)

    def _dispatch(self, publication: _Publication):
        callback, session, outputs = publication
        if callback is None:
            return
        threading.Thread(
            target=self._deliver,
            args=(callback, session, outputs),
            daemon=True,
        ).start()

    @staticmethod
    def _deliver(callback: SessionCallback, session: PreviewSession, outputs: List[DMXOutput]):
        try:
            callback(session, outputs)
        except Exception:
            logger.exception("Preview session update callback failed")
