"""
Deterministic scatter of the numbered cells.

Every participant computes the layout locally from the room's layout seed, so the output must be bit-identical everywhere.
To make that hold across implementations, the random stream is defined purely in 32-bit integer arithmetic:

* seed hash: h = (h * 31 + byte) mod 2**32 over the UTF-8 bytes of the seed
* generator: LCG  s = (1664525 * s + 1013904223) mod 2**32, drawn as s / 2**32

The layout itself is two-staged: numbers are first assigned to shuffled cells of a square grid (so no two numbers ever
share a cell), then each one is jittered and rotated a little inside its cell.
"""

import math
from dataclasses import dataclass
from typing import Callable, TypeVar
from uuid import uuid4

# All coordinates are percentages of the (square) canvas
CANVAS_SIZE = 100.0
PADDING = 6.0
JITTER_FRACTION = 0.25
MAX_ROTATION = 15.0

_MODULUS = 2**32
_LCG_MULTIPLIER = 1664525
_LCG_INCREMENT = 1013904223

RandomFn = Callable[[], float]
T = TypeVar("T")


@dataclass(frozen=True)
class NumberPosition:
    number: int
    x: float
    y: float
    rotation: float
    row: int
    col: int


def seed_hash(seed: str) -> int:
    h = 0
    for byte in seed.encode("utf-8"):
        h = (h * 31 + byte) % _MODULUS
    return h


def seeded_random(seed: str) -> RandomFn:
    """Stream of floats in [0, 1), fully determined by the seed string."""
    state = seed_hash(seed)

    def _next() -> float:
        nonlocal state
        state = (_LCG_MULTIPLIER * state + _LCG_INCREMENT) % _MODULUS
        return state / _MODULUS

    return _next


def grid_size(count: int) -> int:
    """Side of the smallest square grid holding `count` cells (ceil of the square root, at least 1)."""
    if count <= 1:
        return 1
    root = math.isqrt(count)
    return root if root * root == count else root + 1


def shuffle(items: list[T], random: RandomFn) -> list[T]:
    """Fisher-Yates (walking down from the end) using the given stream. Returns a new list."""
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = math.floor(random() * (i + 1))
        result[i], result[j] = result[j], result[i]
    return result


def positions(seed: str, count: int) -> list[NumberPosition]:
    """Positions of numbers 1..count, in order."""
    if count <= 0:
        return []

    random = seeded_random(seed)
    size = grid_size(count)
    cell = CANVAS_SIZE / size
    jitter = cell * JITTER_FRACTION

    cells = [(row, col) for row in range(size) for col in range(size)]
    cells = shuffle(cells, random)

    # Surplus cells (count not a perfect square) simply stay empty
    result: list[NumberPosition] = []
    for number in range(1, count + 1):
        row, col = cells[number - 1]
        base_x = (col + 0.5) * cell
        base_y = (row + 0.5) * cell
        # order of draws matters: x, y, rotation
        x = _clamp(base_x + (random() - 0.5) * jitter * 2)
        y = _clamp(base_y + (random() - 0.5) * jitter * 2)
        rotation = (random() - 0.5) * MAX_ROTATION * 2
        result.append(NumberPosition(number, x, y, rotation, row, col))
    return result


def new_layout_seed() -> str:
    return uuid4().hex


def _clamp(value: float) -> float:
    return max(PADDING, min(CANVAS_SIZE - PADDING, value))
