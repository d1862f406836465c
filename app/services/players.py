"""Request handling for players nested under a game night."""
from app.core.logging import get_logger
from app.domain.game_night import Player
from app.domain.results import NotFound, Ok, Outcome
from app.infrastructure.storage import MissingParentError, StorageGateway

logger = get_logger(__name__)


async def create_player_for_game_night(
    gateway: StorageGateway, game_night_id: int, payload: Player
) -> Outcome:
    """Add a player to an existing game night.

    The game night id from the path always overrides ``payload.game_night_id``.
    """
    game_night = await gateway.find_game_night(game_night_id)
    if game_night is None:
        logger.info(
            f"Cannot add player: GameNight {game_night_id} not found",
            extra={"game_night_id": game_night_id},
        )
        return NotFound("GameNight", game_night_id)

    try:
        player = await gateway.insert_player(
            payload.model_copy(update={"id": None, "game_night_id": game_night.id})
        )
    except MissingParentError:
        logger.info(
            f"GameNight {game_night_id} was deleted before the player was added",
            extra={"game_night_id": game_night_id},
        )
        return NotFound("GameNight", game_night_id)

    logger.info(
        f"Added player {player.id} to GameNight {game_night_id}",
        extra={"game_night_id": game_night_id, "player_id": player.id},
    )
    return Ok(player)
