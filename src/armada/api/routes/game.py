"""JSON routes for playing a game against the computer."""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from typing import Annotated, Any, TypeVar

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from armada.core.config import MAX_SESSIONS
from armada.core.result import ServiceResult
from armada.game.board import Orientation, ShotResult
from armada.game.session import GameSession, TurnInProgressError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/game", tags=["game"])

# Insertion-ordered; the oldest session is evicted once MAX_SESSIONS is reached.
_SESSIONS: dict[str, GameSession] = {}

T = TypeVar("T")


# Request payloads

class PlacementRequest(BaseModel):
    """Where to put one ship of the human fleet."""

    row: int = Field(ge=0)
    col: int = Field(ge=0)
    orientation: Orientation = Orientation.HORIZONTAL


class ShotRequest(BaseModel):
    row: int = Field(ge=0)
    col: int = Field(ge=0)


class TestModeRequest(BaseModel):
    enabled: bool


# Helpers

def get_session(game_id: str) -> GameSession:
    session = _SESSIONS.get(game_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No such game")
    return session


SessionDep = Annotated[GameSession, Depends(get_session)]


def _guarded(action: Callable[..., T], *args: Any) -> T:
    """Run a session action, turning a busy session into HTTP 409."""
    try:
        return action(*args)
    except TurnInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e


def _shot_payload(shot: ShotResult | None) -> dict[str, Any] | None:
    if shot is None:
        return None
    return {
        "row": shot.coord[0],
        "col": shot.coord[1],
        "outcome": shot.outcome.value,
        "sunk_cells": [list(c) for c in shot.sunk_cells],
    }


def _respond(game_id: str, session: GameSession, result: ServiceResult[Any]) -> dict[str, Any]:
    if not result:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.error)
    return {"id": game_id, **session.snapshot()}


# Routes

@router.post("", status_code=status.HTTP_201_CREATED)
def create_game() -> dict[str, Any]:
    """Open a new session in the setup phase."""
    while _SESSIONS and len(_SESSIONS) >= MAX_SESSIONS:
        evicted = next(iter(_SESSIONS))
        del _SESSIONS[evicted]
        logger.info("Session limit reached, evicted game %s", evicted)

    game_id = secrets.token_urlsafe(8)
    session = GameSession()
    _SESSIONS[game_id] = session
    logger.info("Created game %s", game_id)
    return {"id": game_id, **session.snapshot()}


@router.get("/{game_id}")
def read_game(game_id: str, session: SessionDep) -> dict[str, Any]:
    return {"id": game_id, **session.snapshot()}


@router.delete("/{game_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_game(game_id: str) -> None:
    if _SESSIONS.pop(game_id, None) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No such game")
    logger.info("Deleted game %s", game_id)


@router.post("/{game_id}/ships/{ship_id}")
def place_ship(
    game_id: str, ship_id: int, payload: PlacementRequest, session: SessionDep
) -> dict[str, Any]:
    result = _guarded(
        session.place_ship, ship_id, (payload.row, payload.col), payload.orientation
    )
    return _respond(game_id, session, result)


@router.delete("/{game_id}/ships/{ship_id}")
def remove_ship(game_id: str, ship_id: int, session: SessionDep) -> dict[str, Any]:
    return _respond(game_id, session, _guarded(session.remove_ship, ship_id))


@router.post("/{game_id}/auto-place")
def auto_place(game_id: str, session: SessionDep) -> dict[str, Any]:
    return _respond(game_id, session, _guarded(session.auto_place))


@router.post("/{game_id}/start")
def start_game(game_id: str, session: SessionDep) -> dict[str, Any]:
    return _respond(game_id, session, _guarded(session.start))


@router.post("/{game_id}/fire")
def fire(game_id: str, payload: ShotRequest, session: SessionDep) -> dict[str, Any]:
    """Fire at the computer's waters; the computer answers in the same turn."""
    result = _guarded(session.fire, (payload.row, payload.col))

    body = _respond(game_id, session, result)
    body["player_shot"] = _shot_payload(result.data["player"])
    body["computer_shot"] = _shot_payload(result.data["computer"])
    return body


@router.post("/{game_id}/test-mode")
def set_test_mode(
    game_id: str, payload: TestModeRequest, session: SessionDep
) -> dict[str, Any]:
    """Turn the computer's suggest-then-commit test mode on or off."""
    return _respond(game_id, session, _guarded(session.set_test_mode, payload.enabled))


@router.post("/{game_id}/computer-shot")
def commit_computer_shot(
    game_id: str, payload: ShotRequest, session: SessionDep
) -> dict[str, Any]:
    """Commit the computer's next shot at a cell of the human board (test mode)."""
    result = _guarded(session.commit_computer_shot, (payload.row, payload.col))

    body = _respond(game_id, session, result)
    body["computer_shot"] = _shot_payload(result.data)
    return body


@router.post("/{game_id}/reset")
def reset_game(game_id: str, session: SessionDep) -> dict[str, Any]:
    _guarded(session.reset)
    return {"id": game_id, **session.snapshot()}
