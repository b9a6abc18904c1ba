import time

from arena import socketio


class RoundTimer:
    """Single-shot, cancelable deadline tied to one session.

    Each ``arm`` runs a background task that sleeps for the duration and then
    takes the session lock before firing. Arming or cancelling bumps the
    generation, so a sleeper that wakes up for an older generation finds it
    stale and exits without touching the session. Because the check and the
    callback run under the session lock, a cancel issued while holding that
    lock either happens before the fire (which then no-ops) or after it
    (where it is a harmless no-op itself).
    """

    def __init__(self, lock, name: str = 'round', spawn=None, sleep=None, logger=None,
                 clock=time.time, on_fired=None):
        self._lock = lock
        self.name = name
        self._spawn = spawn or socketio.start_background_task
        self._sleep = sleep or socketio.sleep
        self._logger = logger
        self._clock = clock
        # Called after the lock is released when the callback returns truthy
        self._on_fired = on_fired
        self._generation = 0
        self._armed = False
        self.deadline = None

    @property
    def armed(self) -> bool:
        return self._armed

    def arm(self, duration: float, callback) -> float:
        """Schedule ``callback`` after ``duration`` seconds, replacing any pending fire."""
        with self._lock:
            self._generation += 1
            generation = self._generation
            self._armed = True
            self.deadline = self._clock() + duration
        self._spawn(self._run, generation, duration, callback)
        return self.deadline

    def cancel(self) -> bool:
        """Disarm. Safe to call any number of times; returns whether it was armed."""
        with self._lock:
            was_armed = self._armed
            self._generation += 1
            self._armed = False
            self.deadline = None
        return was_armed

    def _run(self, generation: int, duration: float, callback) -> None:
        self._sleep(duration)
        with self._lock:
            if generation != self._generation or not self._armed:
                if self._logger:
                    self._logger.debug(f"[timer-abort] timer={self.name} generation={generation} stale")
                return
            self._armed = False
            self.deadline = None
            changed = callback()
        if changed and self._on_fired:
            self._on_fired()
