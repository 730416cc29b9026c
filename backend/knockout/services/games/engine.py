"""Seating, eliminator and win-condition rules.

Everything here is pure: no database access, no app context. The round
state machine in ``rounds.py`` feeds these functions the persisted orders.
"""
import random
import secrets
from typing import List, Optional, Sequence, TypeVar

from knockout.errors import InvalidState

T = TypeVar('T')

FIRST_TO_X = 'firstToX'
FIXED_SETS = 'fixedSets'

DEFAULT_SHUFFLE_ATTEMPTS = 10


def _random_index(upper: int) -> int:
    """Uniform integer in [0, upper)."""
    try:
        return secrets.randbelow(upper)
    except NotImplementedError:
        # No OS randomness source on this platform
        return random.randrange(upper)


def shuffle(items: Sequence[T]) -> List[T]:
    """Return a Fisher-Yates shuffled copy of ``items``."""
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = _random_index(i + 1)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def pick_order_avoiding_server(remaining: Sequence[int], previous_server: Optional[int] = None,
                               attempts: int = DEFAULT_SHUFFLE_ATTEMPTS) -> List[int]:
    """Shuffle ``remaining`` so that the new head differs from ``previous_server``.

    Re-shuffles up to ``attempts`` times, then swaps the first two seats.
    With fewer than two players there is nothing to avoid.
    """
    order = shuffle(remaining)
    if previous_server is None or len(order) < 2:
        return order

    tries = 0
    while order[0] == previous_server and tries < attempts:
        order = shuffle(remaining)
        tries += 1
    if order[0] == previous_server:
        order[0], order[1] = order[1], order[0]
    return order


def resolve_eliminator(eliminated: int, order: Sequence[int], already_eliminated: Sequence[int]) -> int:
    """Nearest active player seated before ``eliminated`` in the circle."""
    if eliminated not in order:
        raise InvalidState('Player not in current order')

    out = set(already_eliminated)
    index = order.index(eliminated)
    for _ in range(len(order)):
        index = (index - 1) % len(order)
        candidate = order[index]
        if candidate == eliminated:
            break
        if candidate not in out:
            return candidate
    raise InvalidState('Cannot determine eliminator - invalid game state')


def should_end_game(mode: str, config: dict, state: dict) -> bool:
    """Win condition check for a game or heat.

    ``config`` carries ``winning_points`` / ``sets_per_game``; ``state``
    carries ``max_points`` / ``sets_completed``. A missing target never ends
    the game.
    """
    if mode == FIRST_TO_X:
        target = config.get('winning_points')
        return bool(target) and (state.get('max_points') or 0) >= target
    if mode == FIXED_SETS:
        target = config.get('sets_per_game')
        return bool(target) and (state.get('sets_completed') or 0) >= target
    return False
