"""Redis-backed storage gateway.

Game nights are stored as JSON strings with an ordered index, players as
JSON strings grouped per game night. Replace uses WATCH/MULTI/EXEC so two
writers holding the same version cannot both commit.

Key layout (all keys carry the configured prefix):
- ``seq:game_night`` / ``seq:player``: INCR sequences, ids never reused
- ``game_night_ids``: sorted set of game night ids (score = id)
- ``game_night:{id}``: GameNight JSON without players
- ``game_night:{id}:players``: set of player ids
- ``player:{id}``: Player JSON
"""
import asyncio
import redis
from functools import partial
from typing import List, Optional

from app.core.logging import get_logger
from app.core.config import settings
from app.domain.game_night import GameNight, Player
from app.infrastructure.storage import ConcurrencyConflictError, MissingParentError

logger = get_logger(__name__)

# Redis connection pool (lazy initialization)
_redis_pool: Optional[redis.ConnectionPool] = None
_redis_client: Optional[redis.Redis] = None

# Thread pool for blocking Redis calls
_executor = None


def _get_executor():
    """Get or create thread pool executor for blocking calls."""
    global _executor
    if _executor is None:
        import concurrent.futures
        _executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=10,
            thread_name_prefix="redis_storage"
        )
    return _executor


def get_redis_client(
    host: Optional[str] = None,
    port: Optional[int] = None,
    db: Optional[int] = None,
    password: Optional[str] = None,
    decode_responses: bool = True
) -> Optional[redis.Redis]:
    """Get or create Redis client with connection pooling.

    Uses settings from environment variables if not explicitly provided.
    Returns None if Redis is not available (graceful fallback).

    Args:
        host: Redis host (default from REDIS_HOST env)
        port: Redis port (default from REDIS_PORT env)
        db: Redis database number (default from REDIS_DB env)
        password: Redis password (default from REDIS_PASSWORD env)
        decode_responses: Whether to decode responses to strings

    Returns:
        Redis client instance or None if unavailable
    """
    global _redis_pool, _redis_client

    host = host or settings.redis_host
    port = port or settings.redis_port
    db = db if db is not None else settings.redis_db
    password = password or settings.redis_password

    if _redis_client is None:
        logger.info(f"Initializing Redis connection pool: {host}:{port}")

        try:
            _redis_pool = redis.ConnectionPool(
                host=host,
                port=port,
                db=db,
                password=password,
                decode_responses=decode_responses,
                max_connections=50,
                socket_connect_timeout=5,
                socket_timeout=5,
            )

            _redis_client = redis.Redis(connection_pool=_redis_pool)

            # Test connection
            _redis_client.ping()
            logger.info("Redis connection established successfully")

        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.error(f"Failed to connect to Redis: {e}", exc_info=True)
            _redis_client = None
            return None

    return _redis_client


class RedisStorageGateway:
    """StorageGateway implementation on top of a synchronous Redis client.

    Each public coroutine runs its blocking Redis work in a thread pool so
    the event loop is never blocked.

    Example:
        >>> gateway = RedisStorageGateway(get_redis_client())
        >>> night = await gateway.insert_game_night(GameNight(minimum_number_of_players=4))
        >>> night.id
        1
    """

    def __init__(self, redis_client: redis.Redis, key_prefix: str = "gamenights:"):
        self.redis = redis_client
        self.key_prefix = key_prefix

    # -- keys ---------------------------------------------------------------

    def _key(self, suffix: str) -> str:
        return f"{self.key_prefix}{suffix}"

    def _game_night_key(self, game_night_id: int) -> str:
        return self._key(f"game_night:{game_night_id}")

    def _players_key(self, game_night_id: int) -> str:
        return self._key(f"game_night:{game_night_id}:players")

    def _player_key(self, player_id: int) -> str:
        return self._key(f"player:{player_id}")

    @property
    def _index_key(self) -> str:
        return self._key("game_night_ids")

    async def _run(self, func, *args):
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(_get_executor(), partial(func, *args))

    # -- blocking helpers ---------------------------------------------------

    def _load_players(self, game_night_id: int) -> List[Player]:
        player_ids = sorted(int(pid) for pid in self.redis.smembers(self._players_key(game_night_id)))
        if not player_ids:
            return []
        raw = self.redis.mget([self._player_key(pid) for pid in player_ids])
        return [Player.model_validate_json(data) for data in raw if data is not None]

    def _load(self, data: str, include_players: bool) -> GameNight:
        night = GameNight.model_validate_json(data)
        if include_players:
            night.players = self._load_players(night.id)
        return night

    def _scan(self, include_players: bool) -> List[GameNight]:
        ids = self.redis.zrange(self._index_key, 0, -1)
        if not ids:
            return []
        raw = self.redis.mget([self._game_night_key(int(i)) for i in ids])
        # A record deleted between ZRANGE and MGET comes back as None
        return [self._load(data, include_players) for data in raw if data is not None]

    def _find(self, game_night_id: int, include_players: bool) -> Optional[GameNight]:
        data = self.redis.get(self._game_night_key(game_night_id))
        if data is None:
            return None
        return self._load(data, include_players)

    def _insert_game_night(self, game_night: GameNight) -> GameNight:
        game_night_id = int(self.redis.incr(self._key("seq:game_night")))
        stored = game_night.model_copy(update={"id": game_night_id, "version": 1, "players": []})
        players = [
            player.model_copy(update={
                "id": int(self.redis.incr(self._key("seq:player"))),
                "game_night_id": game_night_id,
            })
            for player in game_night.players
        ]

        pipe = self.redis.pipeline(transaction=True)
        pipe.set(self._game_night_key(game_night_id), stored.model_dump_json(exclude={"players"}))
        pipe.zadd(self._index_key, {str(game_night_id): game_night_id})
        for player in players:
            pipe.set(self._player_key(player.id), player.model_dump_json())
            pipe.sadd(self._players_key(game_night_id), player.id)
        pipe.execute()

        return stored.model_copy(update={"players": players})

    def _insert_player(self, player: Player) -> Player:
        parent_key = self._game_night_key(player.game_night_id)
        created = player.model_copy(update={"id": int(self.redis.incr(self._key("seq:player")))})
        with self.redis.pipeline() as pipe:
            while True:
                try:
                    pipe.watch(parent_key)
                    if not pipe.exists(parent_key):
                        raise MissingParentError(player.game_night_id)
                    pipe.multi()
                    pipe.set(self._player_key(created.id), created.model_dump_json())
                    pipe.sadd(self._players_key(created.game_night_id), created.id)
                    pipe.execute()
                    return created
                except redis.WatchError:
                    # Parent was replaced or deleted mid-insert; re-check it
                    continue

    def _update_game_night(self, game_night: GameNight) -> GameNight:
        key = self._game_night_key(game_night.id)
        try:
            with self.redis.pipeline() as pipe:
                pipe.watch(key)
                data = pipe.get(key)
                if data is None:
                    raise ConcurrencyConflictError(
                        game_night.id, still_exists=False, expected_version=game_night.version
                    )
                current = GameNight.model_validate_json(data)
                if game_night.version != current.version:
                    raise ConcurrencyConflictError(
                        game_night.id,
                        still_exists=True,
                        expected_version=game_night.version,
                        actual_version=current.version,
                    )

                updated = game_night.model_copy(update={"version": current.version + 1, "players": []})
                pipe.multi()
                pipe.set(key, updated.model_dump_json(exclude={"players"}))
                pipe.execute()
                return updated
        except redis.WatchError:
            still_exists = bool(self.redis.exists(key))
            raise ConcurrencyConflictError(
                game_night.id, still_exists=still_exists, expected_version=game_night.version
            )

    def _delete_game_night(self, game_night: GameNight) -> None:
        player_ids = self.redis.smembers(self._players_key(game_night.id))
        pipe = self.redis.pipeline(transaction=True)
        for player_id in player_ids:
            pipe.delete(self._player_key(int(player_id)))
        pipe.delete(self._players_key(game_night.id))
        pipe.delete(self._game_night_key(game_night.id))
        pipe.zrem(self._index_key, str(game_night.id))
        pipe.execute()

    # -- StorageGateway -----------------------------------------------------

    async def scan_game_nights(self, include_players: bool = False) -> List[GameNight]:
        return await self._run(self._scan, include_players)

    async def find_game_night(
        self, game_night_id: int, include_players: bool = False
    ) -> Optional[GameNight]:
        return await self._run(self._find, game_night_id, include_players)

    async def insert_game_night(self, game_night: GameNight) -> GameNight:
        return await self._run(self._insert_game_night, game_night)

    async def insert_player(self, player: Player) -> Player:
        return await self._run(self._insert_player, player)

    async def update_game_night(self, game_night: GameNight) -> GameNight:
        return await self._run(self._update_game_night, game_night)

    async def delete_game_night(self, game_night: GameNight) -> None:
        await self._run(self._delete_game_night, game_night)

    async def ping(self) -> bool:
        try:
            return bool(await self._run(self.redis.ping))
        except redis.RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False
