"""Storage gateway interface and the in-memory backend.

The resource handlers only talk to a ``StorageGateway``. A gateway handle is
built per request from the factory returned by :func:`build_gateway_factory`;
the data it wraps (an ``InMemoryStore`` or a Redis connection) is the only
state shared between requests.
"""
import threading
from functools import partial
from typing import Callable, Dict, List, Optional, Protocol

from app.core.config import Settings
from app.core.logging import get_logger
from app.domain.game_night import GameNight, Player

logger = get_logger(__name__)


class ConcurrencyConflictError(Exception):
    """Raised when a versioned update could not be applied.

    Attributes:
        game_night_id: Identifier of the record being updated
        still_exists: False if the record was deleted before the write
        expected_version: Version the writer last read
        actual_version: Version currently stored, if known
    """

    def __init__(
        self,
        game_night_id: int,
        still_exists: bool,
        expected_version: Optional[int] = None,
        actual_version: Optional[int] = None,
    ):
        self.game_night_id = game_night_id
        self.still_exists = still_exists
        self.expected_version = expected_version
        self.actual_version = actual_version
        state = "modified concurrently" if still_exists else "no longer exists"
        super().__init__(f"GameNight {game_night_id} {state}")


class MissingParentError(Exception):
    """Raised when a player is inserted under a game night that no longer exists."""

    def __init__(self, game_night_id: int):
        self.game_night_id = game_night_id
        super().__init__(f"GameNight {game_night_id} no longer exists")


class StorageGateway(Protocol):
    """Durable record store for game nights and players."""

    async def scan_game_nights(self, include_players: bool = False) -> List[GameNight]:
        """Return every game night ordered by ascending id."""
        ...

    async def find_game_night(
        self, game_night_id: int, include_players: bool = False
    ) -> Optional[GameNight]:
        """Return the game night or None when absent."""
        ...

    async def insert_game_night(self, game_night: GameNight) -> GameNight:
        """Persist a new game night (and any nested players), assigning ids."""
        ...

    async def insert_player(self, player: Player) -> Player:
        """Persist a new player, raising MissingParentError if its game night is gone."""
        ...

    async def update_game_night(self, game_night: GameNight) -> GameNight:
        """Replace the stored game night, raising ConcurrencyConflictError on a stale version."""
        ...

    async def delete_game_night(self, game_night: GameNight) -> None:
        """Remove the game night and its players."""
        ...

    async def ping(self) -> bool:
        ...


class InMemoryStore:
    """Process-local record storage shared by in-memory gateways.

    Records are stored without their players; players live in their own
    table keyed by id. Sequences only ever grow, so ids are never reused.
    """

    def __init__(self):
        self.lock = threading.Lock()
        self.game_nights: Dict[int, GameNight] = {}
        self.players: Dict[int, Player] = {}
        self.next_game_night_id = 1
        self.next_player_id = 1


class InMemoryStorageGateway:
    """StorageGateway backed by an :class:`InMemoryStore`.

    Records are copied on the way in and out so callers never share mutable
    state with the store.
    """

    def __init__(self, store: InMemoryStore):
        self._store = store

    def _players_of(self, game_night_id: int) -> List[Player]:
        return [
            player.model_copy()
            for player_id, player in sorted(self._store.players.items())
            if player.game_night_id == game_night_id
        ]

    def _load(self, stored: GameNight, include_players: bool) -> GameNight:
        players = self._players_of(stored.id) if include_players else []
        return stored.model_copy(update={"players": players})

    def _add_player(self, player: Player) -> Player:
        created = player.model_copy(update={"id": self._store.next_player_id})
        self._store.next_player_id += 1
        self._store.players[created.id] = created
        return created.model_copy()

    async def scan_game_nights(self, include_players: bool = False) -> List[GameNight]:
        with self._store.lock:
            return [
                self._load(stored, include_players)
                for _, stored in sorted(self._store.game_nights.items())
            ]

    async def find_game_night(
        self, game_night_id: int, include_players: bool = False
    ) -> Optional[GameNight]:
        with self._store.lock:
            stored = self._store.game_nights.get(game_night_id)
            if stored is None:
                return None
            return self._load(stored, include_players)

    async def insert_game_night(self, game_night: GameNight) -> GameNight:
        with self._store.lock:
            game_night_id = self._store.next_game_night_id
            self._store.next_game_night_id += 1

            stored = game_night.model_copy(
                update={"id": game_night_id, "version": 1, "players": []}
            )
            self._store.game_nights[game_night_id] = stored

            players = [
                self._add_player(player.model_copy(update={"id": None, "game_night_id": game_night_id}))
                for player in game_night.players
            ]
            return stored.model_copy(update={"players": players})

    async def insert_player(self, player: Player) -> Player:
        with self._store.lock:
            if player.game_night_id not in self._store.game_nights:
                raise MissingParentError(player.game_night_id)
            return self._add_player(player)

    async def update_game_night(self, game_night: GameNight) -> GameNight:
        with self._store.lock:
            current = self._store.game_nights.get(game_night.id)
            if current is None:
                raise ConcurrencyConflictError(
                    game_night.id, still_exists=False, expected_version=game_night.version
                )
            if game_night.version != current.version:
                raise ConcurrencyConflictError(
                    game_night.id,
                    still_exists=True,
                    expected_version=game_night.version,
                    actual_version=current.version,
                )

            updated = game_night.model_copy(
                update={"version": current.version + 1, "players": []}
            )
            self._store.game_nights[game_night.id] = updated
            return updated.model_copy()

    async def delete_game_night(self, game_night: GameNight) -> None:
        with self._store.lock:
            self._store.game_nights.pop(game_night.id, None)
            orphaned = [
                player_id
                for player_id, player in self._store.players.items()
                if player.game_night_id == game_night.id
            ]
            for player_id in orphaned:
                del self._store.players[player_id]

    async def ping(self) -> bool:
        return True


def build_gateway_factory(settings: Settings) -> Callable[[], StorageGateway]:
    """Return a callable producing a fresh gateway handle for each request.

    Falls back to in-memory storage when the Redis backend is configured but
    the server cannot be reached.
    """
    if settings.storage_backend == "redis":
        from app.infrastructure.redis import RedisStorageGateway, get_redis_client

        client = get_redis_client(
            host=settings.redis_host,
            port=settings.redis_port,
            db=settings.redis_db,
            password=settings.redis_password,
        )
        if client is not None:
            logger.info("Using Redis storage backend")
            return partial(RedisStorageGateway, client, key_prefix=settings.redis_key_prefix)
        logger.warning("Redis unavailable, falling back to in-memory storage")

    logger.info("Using in-memory storage backend")
    return partial(InMemoryStorageGateway, InMemoryStore())
