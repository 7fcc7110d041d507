# timetable/candidate.py
from typing import Iterator, Optional

from .constraints import cell_violations
from .grid import Cell, Grid2D
from .model import Allocation, ProblemInstance


class CandidateSolution:
    """
    Un horario candidato: tabla franja × aula de asignaciones opcionales.

    ``total_violations`` siempre es la suma de las violaciones cacheadas en
    las celdas ocupadas, y cada valor cacheado coincide con un recálculo
    desde cero. Para mantenerlo, ``allocate`` vuelve a evaluar las celdas
    ocupadas de la misma franja (las restricciones globales solo miran esa
    franja). La tabla solo se modifica a través de ``allocate``.
    """

    def __init__(self, instance: ProblemInstance):
        self._table: Grid2D[Allocation] = Grid2D(instance.num_timeslots, instance.num_rooms)
        self._num_events = instance.num_events
        self._allocated = 0
        self.total_violations = 0

    @property
    def num_timeslots(self) -> int:
        return self._table.width

    @property
    def num_rooms(self) -> int:
        return self._table.height

    @property
    def unallocated_event_count(self) -> int:
        return self._num_events - self._allocated

    def score(self) -> int:
        return self.total_violations + self.unallocated_event_count

    def get(self, timeslot: int, room: int) -> Optional[Allocation]:
        return self._table[timeslot, room]

    def allocate(self, timeslot: int, room: int, event_index: Optional[int], instance: ProblemInstance) -> None:
        """Coloca ``event_index`` en la celda (o la vacía si es None)."""
        if event_index is not None:
            instance.event(event_index)  # índice inválido -> InvariantViolation
        previous = self._table[timeslot, room]
        if previous is not None:
            self.total_violations -= previous.violations
            self._allocated -= 1

        if event_index is None:
            self._table[timeslot, room] = None
        else:
            self._table[timeslot, room] = Allocation(event_index, timeslot, room)
            self._allocated += 1

        self._refresh_timeslot(timeslot, instance)

    def deallocate_event(self, event_index: int, instance: ProblemInstance, keep: Optional[Cell] = None) -> None:
        """Vacía toda celda que tenga ``event_index``, salvo ``keep``."""
        cells = [
            (a.timeslot_index, a.room_index) for a in self.allocations() if a.event_index == event_index
        ]
        for timeslot, room in cells:
            if (timeslot, room) != keep:
                self.allocate(timeslot, room, None, instance)

    def _refresh_timeslot(self, timeslot: int, instance: ProblemInstance) -> None:
        for room in range(self.num_rooms):
            current = self._table[timeslot, room]
            if current is None:
                continue
            fresh = cell_violations(self, timeslot, room, instance)
            if fresh != current.violations:
                self.total_violations += fresh - current.violations
                self._table[timeslot, room] = Allocation(
                    current.event_index, current.timeslot_index, current.room_index, fresh
                )

    def allocations(self) -> Iterator[Allocation]:
        for _, allocation in self._table.occupied():
            yield allocation

    def count_allocated(self) -> int:
        """Cuenta las celdas ocupadas recorriendo toda la tabla."""
        return sum(1 for _ in self._table.occupied())

    def copy(self) -> "CandidateSolution":
        clone = CandidateSolution.__new__(CandidateSolution)
        clone._table = self._table.copy()
        clone._num_events = self._num_events
        clone._allocated = self._allocated
        clone.total_violations = self.total_violations
        return clone

    def __repr__(self) -> str:
        return (
            f"CandidateSolution(score={self.score()}, violations={self.total_violations}, "
            f"unallocated={self.unallocated_event_count})"
        )
