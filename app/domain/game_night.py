"""Domain models for game nights and the players attending them."""
from typing import List, Optional
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class Player(BaseModel):
    """A player attending exactly one game night.

    The parent is referenced by ``game_night_id`` only; there is no owned
    back-reference to the GameNight object.

    Attributes:
        id: Identifier assigned by storage on creation
        name: Display name (unconstrained)
        game_night_id: Identifier of the parent game night
    """
    id: Optional[int] = None
    name: Optional[str] = None
    game_night_id: Optional[int] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "id": 12,
                "name": "Ann",
                "gameNightId": 3
            }
        }


class GameNight(BaseModel):
    """Aggregate root owning a collection of players.

    Attributes:
        id: Identifier assigned by storage on creation, immutable afterwards
        minimum_number_of_players: Must be at least 2 to be persisted
        players: Owned players, only populated when explicitly included
        version: Optimistic concurrency token, bumped on every update
    """
    id: Optional[int] = None
    minimum_number_of_players: int = 0
    players: List[Player] = Field(default_factory=list)
    version: Optional[int] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "id": 3,
                "minimumNumberOfPlayers": 4,
                "players": [],
                "version": 1
            }
        }
