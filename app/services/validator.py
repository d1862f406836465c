"""Business invariants checked before a game night is written."""
from dataclasses import dataclass
from typing import Union

from app.domain.game_night import GameNight

MINIMUM_PLAYERS = 2
MINIMUM_PLAYERS_VIOLATION = "minimum-players-violation"
MINIMUM_PLAYERS_MESSAGE = "You need at least two players!"


@dataclass(frozen=True)
class Accepted:
    pass


@dataclass(frozen=True)
class Rejected:
    reason: str
    message: str


def validate(candidate: GameNight) -> Union[Accepted, Rejected]:
    """Check a candidate game night against the minimum player count.

    Pure function: no storage access, same input always gives the same outcome.
    """
    if candidate.minimum_number_of_players < MINIMUM_PLAYERS:
        return Rejected(reason=MINIMUM_PLAYERS_VIOLATION, message=MINIMUM_PLAYERS_MESSAGE)
    return Accepted()
