"""
Restricciones del horario.

El conjunto es cerrado: cinco tipos, dos ligados a un evento (ROOM, TIMESLOT)
y tres globales. Ninguno guarda datos propios; lo que necesitan (aulas
válidas, franjas prohibidas, docente, currícula) vive en el Event.
"""
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .candidate import CandidateSolution
    from .model import ProblemInstance


class Constraint(Enum):
    ROOM = "room"
    TIMESLOT = "timeslot"
    ROOM_CAPACITY = "room_capacity"
    CURRICULUM = "curriculum"
    TEACHER = "teacher"

    @property
    def is_global(self) -> bool:
        return self in (Constraint.ROOM_CAPACITY, Constraint.CURRICULUM, Constraint.TEACHER)


def violations(
    constraint: Constraint,
    candidate: "CandidateSolution",
    timeslot: int,
    room: int,
    instance: "ProblemInstance",
) -> int:
    """Número de violaciones de ``constraint`` para el ocupante actual de la celda."""
    allocation = candidate.get(timeslot, room)
    if allocation is None:
        return 0
    event = instance.event(allocation.event_index)

    if constraint is Constraint.ROOM:
        return 0 if event.allows_room(room) else 1

    if constraint is Constraint.TIMESLOT:
        return 1 if instance.timeslot(timeslot) in event.banned_timeslots else 0

    if constraint is Constraint.ROOM_CAPACITY:
        # Se penaliza el aula más grande que el grupo, tal como en el modelo original.
        return 1 if instance.room(room).capacity > event.students else 0

    if constraint is Constraint.CURRICULUM:
        matches = sum(
            1 for other in _events_in_timeslot(candidate, timeslot, instance)
            if other.curriculum_id == event.curriculum_id
        )
        # se espera exactamente una coincidencia (la propia celda)
        return matches - 1

    if constraint is Constraint.TEACHER:
        matches = sum(
            1 for other in _events_in_timeslot(candidate, timeslot, instance)
            if other.teacher_id == event.teacher_id
        )
        return 0 if matches == 1 else 1

    raise ValueError(f"Unknown constraint {constraint!r}")


def cell_violations(candidate: "CandidateSolution", timeslot: int, room: int, instance: "ProblemInstance") -> int:
    """Suma de las restricciones del evento más todas las globales."""
    allocation = candidate.get(timeslot, room)
    if allocation is None:
        return 0
    event = instance.event(allocation.event_index)
    total = 0
    for c in event.constraints:
        total += violations(c, candidate, timeslot, room, instance)
    for c in instance.constraints:
        total += violations(c, candidate, timeslot, room, instance)
    return total


def _events_in_timeslot(candidate: "CandidateSolution", timeslot: int, instance: "ProblemInstance"):
    for room_index in range(instance.num_rooms):
        other = candidate.get(timeslot, room_index)
        if other is not None:
            yield instance.event(other.event_index)
