"""Request handling for the GameNight resource.

Each operation receives the storage gateway for the current request and
returns a typed outcome from :mod:`app.domain.results`. Validation and
not-found conditions are resolved here; a conflicting concurrent write is
reported as ``ConcurrencyConflict`` and never retried.
"""
from app.core.logging import get_logger
from app.domain.game_night import GameNight
from app.domain.results import (
    ConcurrencyConflict,
    Created,
    NotFound,
    Ok,
    Outcome,
    ValidationFailed,
)
from app.infrastructure.storage import ConcurrencyConflictError, StorageGateway
from app.services.validator import Rejected, validate

logger = get_logger(__name__)

RESOURCE = "GameNight"
ID_MISMATCH = "id-mismatch"
VERSION_REQUIRED = "version-required"


async def list_game_nights(gateway: StorageGateway) -> Ok:
    """Return every game night in ascending id order, players included."""
    game_nights = await gateway.scan_game_nights(include_players=True)
    return Ok(game_nights)


async def get_game_night(gateway: StorageGateway, game_night_id: int) -> Outcome:
    """Return a single game night without its players."""
    game_night = await gateway.find_game_night(game_night_id)
    if game_night is None:
        logger.debug(f"GameNight {game_night_id} not found", extra={"game_night_id": game_night_id})
        return NotFound(RESOURCE, game_night_id)
    return Ok(game_night)


async def replace_game_night(
    gateway: StorageGateway, game_night_id: int, payload: GameNight
) -> Outcome:
    """Replace the stored game night with ``payload``.

    Requires the ``version`` last read by the caller. Returns the submitted
    payload, minus nested players, on success. A write that lost the race
    against a delete becomes ``NotFound``; one that lost against another
    update becomes ``ConcurrencyConflict``.
    """
    if payload.id != game_night_id:
        logger.info(
            f"Rejected replace of GameNight {game_night_id}: body id {payload.id}",
            extra={"game_night_id": game_night_id, "reason": ID_MISMATCH},
        )
        return ValidationFailed(
            ID_MISMATCH,
            f"Body id {payload.id} does not match GameNight id {game_night_id}",
        )

    verdict = validate(payload)
    if isinstance(verdict, Rejected):
        logger.info(
            f"Rejected replace of GameNight {game_night_id}: {verdict.reason}",
            extra={"game_night_id": game_night_id, "reason": verdict.reason},
        )
        return ValidationFailed(verdict.reason, verdict.message)

    if payload.version is None:
        logger.info(
            f"Rejected replace of GameNight {game_night_id}: no version",
            extra={"game_night_id": game_night_id, "reason": VERSION_REQUIRED},
        )
        return ValidationFailed(
            VERSION_REQUIRED,
            "Send the version from your last read of this GameNight",
        )

    try:
        await gateway.update_game_night(payload)
    except ConcurrencyConflictError as exc:
        if not exc.still_exists:
            logger.info(
                f"GameNight {game_night_id} was deleted before replace",
                extra={"game_night_id": game_night_id},
            )
            return NotFound(RESOURCE, game_night_id)

        logger.warning(
            f"Concurrent modification of GameNight {game_night_id}",
            extra={"game_night_id": game_night_id, "version": exc.expected_version},
        )
        return ConcurrencyConflict(RESOURCE, game_night_id, exc.expected_version)

    # Nested players are not written by a replace
    return Ok(payload.model_copy(update={"players": []}))


async def create_game_night(gateway: StorageGateway, payload: GameNight) -> Outcome:
    """Persist a new game night; the id always comes from storage."""
    verdict = validate(payload)
    if isinstance(verdict, Rejected):
        logger.info(f"Rejected new GameNight: {verdict.reason}", extra={"reason": verdict.reason})
        return ValidationFailed(verdict.reason, verdict.message)

    created = await gateway.insert_game_night(payload.model_copy(update={"id": None}))
    logger.info(f"Created GameNight {created.id}", extra={"game_night_id": created.id})
    return Created(created, location_id=created.id)


async def delete_game_night(gateway: StorageGateway, game_night_id: int) -> Outcome:
    """Delete a game night and return the snapshot that was removed."""
    game_night = await gateway.find_game_night(game_night_id)
    if game_night is None:
        return NotFound(RESOURCE, game_night_id)

    await gateway.delete_game_night(game_night)
    logger.info(f"Deleted GameNight {game_night_id}", extra={"game_night_id": game_night_id})
    return Ok(game_night)
