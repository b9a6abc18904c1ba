"""One match between two players.

Every mutation happens under ``GameSession.lock``; timer callbacks take the
same lock before they run, so player actions and timeouts are serialised per
session. The only work done outside the lock is the oracle call, which runs
in a background task and re-enters through :meth:`GameSession.apply_result`.

Exactly-once scoring hinges on two things:

- the move into ``evaluating`` happens only from ``round_active`` and, in the
  same critical section, cancels the round timer and flips the phase, so a
  second trigger (the other submit, or the timer) sees ``evaluating`` and
  does nothing;
- each round mints a fresh ``evaluation_token``; results and delayed
  callbacks carry the token they were started with and are dropped if the
  session has since moved on (reset, rematch, expiry).
"""

import asyncio
import logging
import threading
import time
import uuid
from functools import partial

from arena import socketio
from arena.errors import InvalidInput, WrongPhase, SessionFull
from arena.models import (
    PlayerSlot, SLOTS, TIE, WAITING, SELECTING_AVATAR, ROUND_ACTIVE, EVALUATING, FINISHED,
    clamp_health, other_slot,
)
from .oracle import Fighter, judge_round
from .timers import RoundTimer


class GameSession:

    def __init__(self, code: str, oracle, *, round_duration: float = 60, result_delay: float = 3,
                 starting_health: int = 100, oracle_timeout: float = 15,
                 max_text_length: int = 1000, max_avatar_length: int = 16,
                 spawn=None, sleep=None, notify=None, logger=None, rng=None, clock=time.time):
        self.code = code
        self.oracle = oracle
        self.round_duration = round_duration
        self.result_delay = result_delay
        self.starting_health = starting_health
        self.oracle_timeout = oracle_timeout
        self.max_text_length = max_text_length
        self.max_avatar_length = max_avatar_length
        self.logger = logger or logging.getLogger('arena')
        self._spawn = spawn or socketio.start_background_task
        self._notify_cb = notify
        self._rng = rng

        self.lock = threading.RLock()
        self.created_at = clock()
        self.round_timer = RoundTimer(self.lock, 'round', spawn=spawn, sleep=sleep, logger=self.logger,
                                      clock=clock, on_fired=self._notify)
        self.result_timer = RoundTimer(self.lock, 'result', spawn=spawn, sleep=sleep, logger=self.logger,
                                       clock=clock, on_fired=self._notify)
        self.closed = False
        self._init_match()

    def _init_match(self) -> None:
        self.slots = [PlayerSlot(health=self.starting_health) for _ in SLOTS]
        self.phase = WAITING
        self.round_number = 0
        self.winner = None
        self.round_deadline = None
        self.evaluation_token = None
        self._awaiting_result = None
        self.rematch_requests = [False, False]
        self.history = []

    # ---- player actions ----

    def claim_slot(self) -> int:
        """Connect the first free slot and return its index."""
        with self.lock:
            for slot in SLOTS:
                if not self.slots[slot].connected:
                    self._connect(slot)
                    break
            else:
                raise SessionFull('Game is full')
        self._notify()
        return slot

    def connect(self, slot: int) -> None:
        _check_slot(slot)
        with self.lock:
            self._connect(slot)
        self._notify()

    def select_avatar(self, slot: int, avatar) -> bool:
        """Pick an avatar. The first choice is final; later picks are ignored.

        Returns whether the pick was recorded.
        """
        _check_slot(slot)
        if not isinstance(avatar, str) or not avatar.strip():
            raise InvalidInput('Avatar required')
        avatar = avatar.strip()
        if len(avatar) > self.max_avatar_length:
            raise InvalidInput(f'Avatar must be at most {self.max_avatar_length} characters')
        with self.lock:
            player = self.slots[slot]
            if player.avatar is not None:
                return False
            if self.phase != SELECTING_AVATAR:
                raise WrongPhase('Not in avatar selection phase')
            player.avatar = avatar
            if all(s.avatar is not None for s in self.slots):
                self._start_round()
        self._notify()
        return True

    def submit_text(self, slot: int, text) -> None:
        _check_slot(slot)
        if text is None:
            text = ''
        if not isinstance(text, str):
            raise InvalidInput('Text must be a string')
        if len(text) > self.max_text_length:
            raise InvalidInput(f'Text must be at most {self.max_text_length} characters')
        with self.lock:
            if self.phase != ROUND_ACTIVE:
                raise WrongPhase('Not in round phase')
            player = self.slots[slot]
            player.submitted_text = text
            player.has_submitted = True
            if all(s.has_submitted for s in self.slots):
                self._begin_evaluation(trigger='submit')
        self._notify()

    def request_rematch(self, slot: int) -> None:
        _check_slot(slot)
        with self.lock:
            if self.phase != FINISHED:
                raise WrongPhase('Game is not over yet')
            self.rematch_requests[slot] = True
            if all(self.rematch_requests):
                self._restart()
        self._notify()

    def reset(self) -> None:
        """Return to the initial waiting state, dropping players and avatars."""
        with self.lock:
            self.round_timer.cancel()
            self.result_timer.cancel()
            self._init_match()
            self.logger.info(f"[reset] game={self.code}")
        self._notify()

    def close(self) -> None:
        """Disarm everything; used when the registry drops the session."""
        with self.lock:
            self.round_timer.cancel()
            self.result_timer.cancel()
            self.evaluation_token = None
            self._awaiting_result = None
            self.closed = True

    # ---- transitions (lock held) ----

    def _connect(self, slot: int) -> None:
        self.slots[slot].connected = True
        if self.phase == WAITING and all(s.connected for s in self.slots):
            self.phase = SELECTING_AVATAR

    def _start_round(self) -> None:
        self.round_number += 1
        for player in self.slots:
            player.clear_round()
        token = uuid.uuid4().hex
        self.evaluation_token = token
        self.phase = ROUND_ACTIVE
        self.round_deadline = self.round_timer.arm(self.round_duration, partial(self._on_round_timeout, token))
        self.logger.info(
            f"[round-start] game={self.code} round={self.round_number} duration={self.round_duration}s"
        )

    def _on_round_timeout(self, token: str) -> bool:
        if self.phase != ROUND_ACTIVE or token != self.evaluation_token:
            self.logger.info(f"[timer-abort] game={self.code} phase={self.phase} round={self.round_number}")
            return False
        self.logger.info(f"[timer-fire] game={self.code} round={self.round_number}")
        for player in self.slots:
            if not player.has_submitted:
                player.submitted_text = ''
                player.has_submitted = True
        self._begin_evaluation(trigger='timeout')
        return True

    def _begin_evaluation(self, trigger: str) -> None:
        # Lock held and phase is round_active; cancel and flip happen together
        self.round_timer.cancel()
        self.phase = EVALUATING
        self.round_deadline = None
        token = self.evaluation_token
        self._awaiting_result = token
        fighters = tuple(Fighter(s.avatar, s.submitted_text) for s in self.slots)
        self.logger.info(f"[eval-start] game={self.code} round={self.round_number} trigger={trigger}")
        self._spawn(self._run_evaluation, token, fighters)

    def _run_evaluation(self, token: str, fighters) -> None:
        dealt = None
        try:
            dealt = asyncio.run(judge_round(self.oracle, fighters, self.oracle_timeout, rng=self._rng, log=self.logger))
        except asyncio.CancelledError:
            self.logger.exception(f"[eval-error] game={self.code} round={self.round_number} evaluation cancelled")
        finally:
            # Always settle the round; a missing verdict scores as neutral
            self.apply_result(token, dealt)

    def apply_result(self, token: str, dealt) -> bool:
        """Apply an oracle verdict for the round identified by ``token``.

        ``dealt`` is ``(dealt_by_slot0, dealt_by_slot1)``, or ``None`` when the
        oracle failed, in which case the round is scored as neutral.
        """
        with self.lock:
            if self.closed or self.phase != EVALUATING or token is None or token != self._awaiting_result:
                self.logger.info(f"[eval-stale] game={self.code} phase={self.phase} round={self.round_number}")
                return False
            self._awaiting_result = None
            fallback = dealt is None
            if fallback:
                self.logger.warning(f"[eval-fallback] game={self.code} round={self.round_number} neutral round")
                dealt = (0, 0)
            first, second = self.slots
            first.health = clamp_health(first.health - dealt[1], self.starting_health)
            second.health = clamp_health(second.health - dealt[0], self.starting_health)
            self.history.append({'round': self.round_number, 'dealt': [dealt[0], dealt[1]], 'fallback': fallback})

            down = [s.health <= 0 for s in self.slots]
            if all(down):
                self._finish(TIE)
            elif any(down):
                self._finish(other_slot(down.index(True)))
            else:
                self.result_timer.arm(self.result_delay, partial(self._on_result_delay, token))
        self._notify()
        return True

    def _on_result_delay(self, token: str) -> bool:
        if self.phase != EVALUATING or token != self.evaluation_token:
            return False
        self._start_round()
        return True

    def _finish(self, winner) -> None:
        self.winner = winner
        self.phase = FINISHED
        self.rematch_requests = [False, False]
        self.logger.info(f"[finish] game={self.code} round={self.round_number} winner={winner}")

    def _restart(self) -> None:
        self.logger.info(f"[rematch] game={self.code}")
        self.result_timer.cancel()
        for player in self.slots:
            player.health = self.starting_health
            player.clear_round()
        self.winner = None
        self.rematch_requests = [False, False]
        self.history = []
        self.round_number = 0
        self._start_round()

    def _notify(self) -> None:
        if self._notify_cb and not self.closed:
            self._notify_cb(self.code)


def _check_slot(slot) -> None:
    if slot not in SLOTS:
        raise InvalidInput('Invalid player slot')
