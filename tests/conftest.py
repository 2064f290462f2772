"""Shared fixtures: seeded randomness and fresh engines/boards."""

from __future__ import annotations

import random

import pytest

from armada.ai.targeting import TargetingEngine
from armada.game.board import Board

SEED = 1234
FLEET = (5, 4, 3, 3, 2)
SIZE = 10


@pytest.fixture()
def rng() -> random.Random:
    return random.Random(SEED)


@pytest.fixture()
def engine(rng: random.Random) -> TargetingEngine:
    return TargetingEngine(size=SIZE, fleet=FLEET, rng=rng, deterministic=False)


@pytest.fixture()
def board() -> Board:
    return Board(size=SIZE)
