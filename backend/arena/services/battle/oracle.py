"""Damage oracle adapters.

The oracle is an opaque, possibly slow and possibly failing judge. It gets two
fighters and answers with the damage each one *deals* to the other. Callers go
through :func:`judge_round`, which shuffles the presentation order to blunt
positional bias, bounds the call with a timeout, and turns any failure into
``None`` so the session can apply its neutral fallback.
"""

import asyncio
import json
import logging
import random
from collections import namedtuple
from typing import Optional, Protocol, Tuple

from openai import AsyncOpenAI

from arena.errors import OracleError

logger = logging.getLogger('arena')

Fighter = namedtuple('Fighter', ['avatar', 'text'])
DamagePair = Tuple[int, int]

SYSTEM_PROMPT = """
You are a battle evaluator for a prompt fighting game. Two players each have an
avatar and write a prompt to attack the opponent's avatar.

Rules:
- Each player starts with 100 health
- Prompts can deal 0-30 damage to the opponent
- Reward unique, creative, out-of-the-box or meta prompts
- An empty prompt means the player did nothing this round
- Return ONLY a JSON object with this exact structure:

{
  "player1_damage": <number 0-30>,
  "player2_damage": <number 0-30>
}

- "player1_damage" = damage that Player 1's prompt deals TO Player 2
- "player2_damage" = damage that Player 2's prompt deals TO Player 1
"""

USER_PROMPT_TEMPLATE = """
Player 1 avatar: {first_avatar}
Player 1 prompt: "{first_text}"

Player 2 avatar: {second_avatar}
Player 2 prompt: "{second_text}"

Evaluate both prompts and return the damage values.
"""


class DamageOracle(Protocol):
    async def evaluate(self, first: Fighter, second: Fighter) -> DamagePair:
        ...


def coerce_pair(result) -> DamagePair:
    """Validate an oracle answer and normalise it to a pair of ints."""
    try:
        first, second = result
    except (TypeError, ValueError):
        raise OracleError(f'Expected a damage pair, got {result!r}')
    values = []
    for value in (first, second):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise OracleError(f'Damage must be numeric, got {value!r}')
        values.append(int(round(value)))
    return values[0], values[1]


def parse_damage(content: str) -> DamagePair:
    """Parse the judge's JSON reply."""
    try:
        payload = json.loads(content or '')
    except ValueError as exc:
        raise OracleError(f'Unparseable oracle reply: {exc}')
    if not isinstance(payload, dict):
        raise OracleError('Oracle reply is not a JSON object')
    try:
        return coerce_pair((payload['player1_damage'], payload['player2_damage']))
    except KeyError as exc:
        raise OracleError(f'Oracle reply missing {exc}')


class OpenAIDamageOracle:
    """Asks an OpenAI chat model to judge the round."""

    def __init__(self, api_key: str, model: str = 'gpt-4o-mini', temperature: float = 0.7,
                 max_tokens: int = 150, timeout: float = 15.0):
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout

    def build_messages(self, first: Fighter, second: Fighter) -> list:
        user_prompt = USER_PROMPT_TEMPLATE.format(
            first_avatar=first.avatar,
            first_text=first.text,
            second_avatar=second.avatar,
            second_text=second.text,
        )
        return [
            {'role': 'system', 'content': SYSTEM_PROMPT},
            {'role': 'user', 'content': user_prompt},
        ]

    async def evaluate(self, first: Fighter, second: Fighter) -> DamagePair:
        # A fresh client per call: each evaluation runs on its own event loop
        async with AsyncOpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0) as client:
            completion = await client.chat.completions.create(
                model=self.model,
                messages=self.build_messages(first, second),
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                response_format={'type': 'json_object'},
            )
        if not completion.choices:
            raise OracleError('Oracle returned no choices')
        return parse_damage(completion.choices[0].message.content)


class FixedDamageOracle:
    """Constant verdict; keeps the game playable without an API key."""

    def __init__(self, dealt: DamagePair = (5, 5)):
        self.dealt = tuple(dealt)

    async def evaluate(self, first: Fighter, second: Fighter) -> DamagePair:
        return self.dealt


def build_oracle(config) -> DamageOracle:
    api_key = config.get('OPENAI_API_KEY')
    if not api_key:
        logger.info("[oracle] no OPENAI_API_KEY configured, using fixed damage")
        return FixedDamageOracle()
    return OpenAIDamageOracle(
        api_key=api_key,
        model=config.get('OPENAI_MODEL', 'gpt-4o-mini'),
        temperature=float(config.get('ORACLE_TEMPERATURE', 0.7)),
        max_tokens=int(config.get('ORACLE_MAX_TOKENS', 150)),
        timeout=float(config.get('ORACLE_TIMEOUT_SEC', 15)),
    )


async def judge_round(oracle: DamageOracle, fighters, timeout: float, rng=None,
                      log=None) -> Optional[DamagePair]:
    """Return ``(dealt_by_slot0, dealt_by_slot1)`` or ``None`` on any failure."""
    rng = rng or random
    log = log or logger
    swapped = rng.random() < 0.5
    first, second = (fighters[1], fighters[0]) if swapped else (fighters[0], fighters[1])
    try:
        dealt = coerce_pair(await asyncio.wait_for(oracle.evaluate(first, second), timeout))
    except asyncio.TimeoutError:
        log.warning(f"[oracle-timeout] timeout={timeout}s")
        return None
    except Exception:
        log.exception("[oracle-error] damage oracle call failed")
        return None
    if swapped:
        dealt = (dealt[1], dealt[0])
    return dealt
