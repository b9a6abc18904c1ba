from dataclasses import dataclass
import random

from arena.errors import InvalidInput

# Session phases, in the order a match normally walks through them
WAITING = 'waiting'
SELECTING_AVATAR = 'selecting_avatar'
ROUND_ACTIVE = 'round_active'
EVALUATING = 'evaluating'
FINISHED = 'finished'

PHASES = (WAITING, SELECTING_AVATAR, ROUND_ACTIVE, EVALUATING, FINISHED)

TIE = 'tie'
SLOTS = (0, 1)

# Uppercase letters and digits minus the easily confused I, O and 0
CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ123456789'
CODE_LENGTH = 6

_code_rng = random.SystemRandom()


def generate_game_code(length=CODE_LENGTH):
    """Draw a random code. Uniqueness is the registry's job."""
    return ''.join(_code_rng.choice(CODE_ALPHABET) for _ in range(length))


def normalize_code(code) -> str:
    if not isinstance(code, str) or not code.strip():
        raise InvalidInput('Game code is required')
    return code.strip().upper()


def other_slot(slot: int) -> int:
    return 1 - slot


def slot_from_player(player) -> int:
    """Map the wire-level player number ('1'/'2') onto a slot index."""
    if str(player) not in ('1', '2'):
        raise InvalidInput('Invalid player ID')
    return int(player) - 1


def player_label(slot: int) -> int:
    return slot + 1


def clamp_health(value: int, ceiling: int = 100) -> int:
    return max(0, min(ceiling, value))


@dataclass
class PlayerSlot:
    connected: bool = False
    avatar: str = None
    health: int = 100
    submitted_text: str = ''
    has_submitted: bool = False

    def clear_round(self) -> None:
        self.submitted_text = ''
        self.has_submitted = False

    def to_dict(self, include_text: bool = False) -> dict:
        data = {
            'connected': self.connected,
            'avatar': self.avatar,
            'health': self.health,
            'has_submitted': self.has_submitted,
        }
        if include_text:
            data['text'] = self.submitted_text
        return data
