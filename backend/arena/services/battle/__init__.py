"""Battle domain services: sessions, timers, the damage oracle and projections.

This package holds the game logic that HTTP routes and socket handlers call
into, keeping transport concerns separated from the match state machine.
"""

from .oracle import DamageOracle, FixedDamageOracle, OpenAIDamageOracle, build_oracle
from .projection import project_state
from .registry import SessionRegistry
from .session import GameSession
from .timers import RoundTimer
