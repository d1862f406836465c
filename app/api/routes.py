"""FastAPI routes for the GameNight resource and its nested players.

Routes translate handler outcomes into HTTP responses:
- ``Ok`` -> 200, ``Created`` -> 201 with a ``Location`` header
- ``ValidationFailed`` -> 400, ``NotFound`` -> 404
- ``ConcurrencyConflict`` -> 409
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from app.core.config import settings
from app.core.logging import ContextLogger, get_logger, LogTimer
from app.domain.game_night import GameNight, Player
from app.domain.results import ConcurrencyConflict, Created, NotFound, Ok, Outcome, ValidationFailed
from app.infrastructure.storage import StorageGateway
from app.services import game_nights as game_night_service
from app.services import players as player_service

router = APIRouter(prefix=f"{settings.api_prefix}/GameNights", tags=["game-nights"])


def get_gateway(request: Request) -> StorageGateway:
    """FastAPI dependency returning a storage gateway scoped to this request."""
    return request.app.state.gateway_factory()


def get_request_logger(request: Request) -> ContextLogger:
    """FastAPI dependency returning this module's logger bound to the request id."""
    return get_logger(__name__, {"request_id": getattr(request.state, "request_id", None)})


def _unwrap(outcome: Outcome):
    """Return the value of a successful outcome or raise the matching HTTPException."""
    if isinstance(outcome, (Ok, Created)):
        return outcome.value
    if isinstance(outcome, ValidationFailed):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": outcome.message, "reason": outcome.reason},
        )
    if isinstance(outcome, NotFound):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": outcome.message},
        )
    if isinstance(outcome, ConcurrencyConflict):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": outcome.message, "reason": "concurrency-conflict"},
        )
    raise TypeError(f"Unexpected outcome {outcome!r}")


# -----------------
# GAME NIGHTS
# -----------------

@router.get("", response_model=List[GameNight])
async def get_game_nights(
    gateway: StorageGateway = Depends(get_gateway),
    log: ContextLogger = Depends(get_request_logger),
):
    """Return all game nights ordered by id, each with its players."""
    with LogTimer(log, "list_game_nights"):
        outcome = await game_night_service.list_game_nights(gateway)
    return _unwrap(outcome)


@router.get("/{game_night_id}", response_model=GameNight)
async def get_game_night(
    game_night_id: int,
    gateway: StorageGateway = Depends(get_gateway),
    log: ContextLogger = Depends(get_request_logger),
):
    """Return one game night. Players are not included."""
    with LogTimer(log, f"get_game_night:{game_night_id}"):
        outcome = await game_night_service.get_game_night(gateway, game_night_id)
    return _unwrap(outcome)


@router.put("/{game_night_id}", response_model=GameNight)
async def put_game_night(
    game_night_id: int,
    game_night: GameNight,
    gateway: StorageGateway = Depends(get_gateway),
    log: ContextLogger = Depends(get_request_logger),
):
    """Replace a game night.

    The body must carry the same id as the URL. Send back the ``version``
    from the last read to have concurrent edits detected.
    """
    with LogTimer(log, f"replace_game_night:{game_night_id}"):
        outcome = await game_night_service.replace_game_night(gateway, game_night_id, game_night)
    return _unwrap(outcome)


@router.post("", response_model=GameNight, status_code=status.HTTP_201_CREATED)
async def post_game_night(
    game_night: GameNight,
    request: Request,
    response: Response,
    gateway: StorageGateway = Depends(get_gateway),
    log: ContextLogger = Depends(get_request_logger),
):
    """Create a game night. The ``Location`` header points at the new record."""
    with LogTimer(log, "create_game_night"):
        outcome = await game_night_service.create_game_night(gateway, game_night)
    created = _unwrap(outcome)
    response.headers["Location"] = str(
        request.url_for("get_game_night", game_night_id=outcome.location_id)
    )
    return created


@router.delete("/{game_night_id}", response_model=GameNight)
async def delete_game_night(
    game_night_id: int,
    gateway: StorageGateway = Depends(get_gateway),
    log: ContextLogger = Depends(get_request_logger),
):
    """Delete a game night and its players, returning the deleted record."""
    with LogTimer(log, f"delete_game_night:{game_night_id}"):
        outcome = await game_night_service.delete_game_night(gateway, game_night_id)
    return _unwrap(outcome)


# -----------------
# PLAYERS
# -----------------

@router.post("/{game_night_id}/Players", response_model=Player)
async def create_player_for_game_night(
    game_night_id: int,
    player: Player,
    gateway: StorageGateway = Depends(get_gateway),
    log: ContextLogger = Depends(get_request_logger),
):
    """Add a player to a game night. The URL id always wins over the body's."""
    with LogTimer(log, f"create_player:{game_night_id}"):
        outcome = await player_service.create_player_for_game_night(gateway, game_night_id, player)
    return _unwrap(outcome)
