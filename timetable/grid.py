"""
Tabla 2D de celdas (franja × aula) sobre un arreglo numpy de objetos.

Todas las estructuras del paquete que se indexan por (timeslot, room) pasan
por aquí para que un índice fuera de rango falle de inmediato en lugar de
envolver con índices negativos como hace numpy.
"""
from typing import Generic, Iterator, Optional, Tuple, TypeVar

import numpy as np

from .model import InvariantViolation

T = TypeVar("T")
Cell = Tuple[int, int]


class Grid2D(Generic[T]):
    def __init__(self, width: int, height: int):
        # width = franjas, height = aulas
        if width <= 0 or height <= 0:
            raise InvariantViolation(f"Grid must be non-empty, got {width}x{height}")
        self._data = np.full((width, height), None, dtype=object)

    @property
    def width(self) -> int:
        return self._data.shape[0]

    @property
    def height(self) -> int:
        return self._data.shape[1]

    def check(self, x: int, y: int) -> Cell:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise InvariantViolation(f"Cell ({x}, {y}) outside grid {self.width}x{self.height}")
        return x, y

    def __getitem__(self, index: Cell) -> Optional[T]:
        return self._data[self.check(*index)]

    def __setitem__(self, index: Cell, value: Optional[T]) -> None:
        self._data[self.check(*index)] = value

    def cells(self) -> Iterator[Tuple[Cell, Optional[T]]]:
        for x in range(self.width):
            for y in range(self.height):
                yield (x, y), self._data[x, y]

    def occupied(self) -> Iterator[Tuple[Cell, T]]:
        for cell, value in self.cells():
            if value is not None:
                yield cell, value

    def copy(self) -> "Grid2D[T]":
        # copia superficial del arreglo: los valores guardados son inmutables
        clone = Grid2D.__new__(Grid2D)
        clone._data = self._data.copy()
        return clone


def rectangle(x0: int, x1: int, y0: int, y1: int) -> Iterator[Cell]:
    """Celdas de ``[x0, x1) × [y0, y1)`` en orden franja-mayor."""
    for x in range(x0, x1):
        for y in range(y0, y1):
            yield x, y
