import logging
import threading
import time

from arena import socketio
from arena.errors import SessionNotFound, CodeSpaceExhausted
from arena.models import generate_game_code, normalize_code
from .session import GameSession

MAX_CODE_ATTEMPTS = 100


class SessionRegistry:
    """Owns the live sessions of one app, keyed by game code.

    The map itself is guarded by a plain lock; each session serialises its
    own transitions, so sessions never contend with each other.
    """

    def __init__(self, oracle, *, round_duration: float = 60, result_delay: float = 3,
                 expiry: float = 1800, sweep_interval: float = 300, starting_health: int = 100,
                 oracle_timeout: float = 15, max_text_length: int = 1000, max_avatar_length: int = 16,
                 spawn=None, sleep=None, notify=None, on_expire=None, logger=None, rng=None,
                 clock=time.time, code_factory=generate_game_code):
        self.oracle = oracle
        self.expiry = expiry
        self.sweep_interval = sweep_interval
        self.logger = logger or logging.getLogger('arena')
        self._clock = clock
        self._code_factory = code_factory
        self._spawn = spawn
        self._sleep = sleep
        self._on_expire = on_expire
        self._session_options = dict(
            round_duration=round_duration,
            result_delay=result_delay,
            starting_health=starting_health,
            oracle_timeout=oracle_timeout,
            max_text_length=max_text_length,
            max_avatar_length=max_avatar_length,
            spawn=spawn,
            sleep=sleep,
            notify=notify,
            logger=self.logger,
            rng=rng,
            clock=clock,
        )
        self._sessions = {}
        self._lock = threading.Lock()
        self._sweeper_running = False

    @classmethod
    def from_config(cls, config, oracle, **kwargs):
        return cls(
            oracle,
            round_duration=float(config.get('ROUND_DURATION_SEC', 60)),
            result_delay=float(config.get('ROUND_RESULT_DELAY_SEC', 3)),
            expiry=float(config.get('SESSION_EXPIRY_SEC', 1800)),
            sweep_interval=float(config.get('SESSION_SWEEP_INTERVAL_SEC', 300)),
            starting_health=int(config.get('STARTING_HEALTH', 100)),
            oracle_timeout=float(config.get('ORACLE_TIMEOUT_SEC', 15)),
            max_text_length=int(config.get('MAX_TEXT_LENGTH', 1000)),
            max_avatar_length=int(config.get('MAX_AVATAR_LENGTH', 16)),
            **kwargs,
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, code) -> bool:
        with self._lock:
            return isinstance(code, str) and code.strip().upper() in self._sessions

    def codes(self) -> list:
        with self._lock:
            return list(self._sessions)

    def create_session(self) -> str:
        """Register a fresh session under a code no live session holds."""
        with self._lock:
            for _ in range(MAX_CODE_ATTEMPTS):
                code = self._code_factory()
                if code not in self._sessions:
                    break
            else:
                raise CodeSpaceExhausted('Could not allocate a unique game code')
            self._sessions[code] = GameSession(code, self.oracle, **self._session_options)
        self.logger.info(f"[create] game={code} live={len(self)}")
        return code

    def get_session(self, code) -> GameSession:
        key = normalize_code(code)
        with self._lock:
            session = self._sessions.get(key)
        if session is None:
            raise SessionNotFound('Game not found')
        return session

    def remove_session(self, code) -> bool:
        key = normalize_code(code)
        with self._lock:
            session = self._sessions.pop(key, None)
        if session is None:
            return False
        session.close()
        return True

    def sweep(self, now=None) -> list:
        """Drop sessions older than the expiry threshold; returns their codes."""
        now = self._clock() if now is None else now
        with self._lock:
            expired = [code for code, s in self._sessions.items() if now - s.created_at >= self.expiry]
            sessions = [self._sessions.pop(code) for code in expired]
        for session in sessions:
            session.close()
            self.logger.info(f"[expire] game={session.code} age={int(now - session.created_at)}s")
            if self._on_expire:
                self._on_expire(session.code)
        return expired

    def start_sweeper(self) -> None:
        if self._sweeper_running:
            return
        self._sweeper_running = True
        spawn = self._spawn or socketio.start_background_task
        spawn(self._sweep_loop)

    def stop_sweeper(self) -> None:
        self._sweeper_running = False

    def _sweep_loop(self) -> None:
        sleep = self._sleep or socketio.sleep
        self.logger.info(f"[sweeper-start] interval={self.sweep_interval}s expiry={self.expiry}s")
        while self._sweeper_running:
            sleep(self.sweep_interval)
            if not self._sweeper_running:
                break
            try:
                self.sweep()
            except Exception:
                self.logger.exception("[sweeper-error] sweep failed")

    def shutdown(self) -> None:
        self.stop_sweeper()
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.close()
