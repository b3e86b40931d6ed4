# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Sample types shared by the tests."""

from functools import cached_property
from typing import ClassVar, List, Optional


class Vector:
    x: float
    y: float


class Weapon:
    damage: int


class Entity:
    name: str

    def describe(self) -> str:
        return self.name


class Player(Entity):
    MAX_LIVES: ClassVar[int] = 3

    health: int
    _secret: str
    weapon: Weapon
    inventory: List[Weapon]

    def __init__(self) -> None:
        self.name = "player"
        self.health = 100
        self._label = ""

    def __repr__(self) -> str:
        return f"Player({self.name})"

    def move(self, speed: Vector) -> None:
        pass

    def _think(self, depth: int = 1) -> Optional[str]:
        return None

    def get_score(self) -> int:
        return 0

    def set_score(self, value: int) -> None:
        pass

    @staticmethod
    def create() -> "Player":
        return Player()

    @property
    def label(self) -> str:
        return self._label

    @label.setter
    def label(self, value: str) -> None:
        self._label = value

    @property
    def _hidden(self) -> int:
        return 1

    @cached_property
    def power(self) -> float:
        return 1.0


class Boss(Player):
    rage: float


class Loner:
    count: int
