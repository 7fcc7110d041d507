# timetable/model.py
from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Tuple

from .constraints import Constraint

EventIdx = int
RoomIdx = int
SlotIdx = int


class InvariantViolation(ValueError):
    """La descripción del problema (o un índice hacia ella) es inconsistente."""


@dataclass(frozen=True)
class TimeSlot:
    day: int
    period: int


@dataclass(frozen=True)
class Room:
    id: str
    capacity: int
    building: str = ""


@dataclass(frozen=True)
class Event:
    # Una sesión (lecture) de un curso. Las aulas se referencian por índice.
    course_id: str
    teacher_id: str
    students: int
    curriculum_id: Optional[str] = None
    constraints: Tuple[Constraint, ...] = ()
    banned_timeslots: FrozenSet[TimeSlot] = frozenset()
    valid_rooms: FrozenSet[RoomIdx] = frozenset()  # vacío = todas las aulas

    def allows_room(self, room: RoomIdx) -> bool:
        return not self.valid_rooms or room in self.valid_rooms


@dataclass(frozen=True)
class Allocation:
    event_index: EventIdx
    timeslot_index: SlotIdx
    room_index: RoomIdx
    violations: int = 0


DEFAULT_GLOBAL_CONSTRAINTS: Tuple[Constraint, ...] = (
    Constraint.ROOM_CAPACITY,
    Constraint.CURRICULUM,
    Constraint.TEACHER,
)


@dataclass(frozen=True)
class ProblemInstance:
    """
    Descripción inmutable de un problema de horarios.

    El resto del paquete referencia eventos, aulas y franjas solo por índice;
    la instancia es la única dueña de los registros. Los índices de franja
    son densos: ``day * periods_per_day + period``.
    """
    days: int
    periods_per_day: int
    rooms: Tuple[Room, ...]
    events: Tuple[Event, ...]
    constraints: Tuple[Constraint, ...] = DEFAULT_GLOBAL_CONSTRAINTS
    name: Optional[str] = None
    daily_lectures: Tuple[int, int] = (0, 24)
    timeslots: Tuple[TimeSlot, ...] = field(init=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, "rooms", tuple(self.rooms))
        object.__setattr__(self, "events", tuple(self.events))
        object.__setattr__(self, "constraints", tuple(self.constraints))
        object.__setattr__(
            self,
            "timeslots",
            tuple(TimeSlot(d, p) for d in range(self.days) for p in range(self.periods_per_day)),
        )
        self._validate()

    def _validate(self) -> None:
        if self.days <= 0 or self.periods_per_day <= 0:
            raise InvariantViolation(
                f"Instance needs at least one timeslot (days={self.days}, "
                f"periods_per_day={self.periods_per_day})"
            )
        if not self.rooms:
            raise InvariantViolation("Instance needs at least one room")
        for c in self.constraints:
            if not c.is_global:
                raise InvariantViolation(f"{c.name} is event scoped, not a global constraint")
        for idx, ev in enumerate(self.events):
            for c in ev.constraints:
                if c.is_global:
                    raise InvariantViolation(f"Event {idx} ({ev.course_id}) lists global constraint {c.name}")
            bad_rooms = [r for r in ev.valid_rooms if not 0 <= r < len(self.rooms)]
            if bad_rooms:
                raise InvariantViolation(f"Event {idx} ({ev.course_id}) references unknown rooms {sorted(bad_rooms)}")
            for ts in ev.banned_timeslots:
                if not (0 <= ts.day < self.days and 0 <= ts.period < self.periods_per_day):
                    raise InvariantViolation(f"Event {idx} ({ev.course_id}) bans timeslot {ts} outside the week")

    # --- índices

    def to_timeslot_index(self, day: int, period: int) -> SlotIdx:
        return self.periods_per_day * day + period

    def event(self, event_index: EventIdx) -> Event:
        if not 0 <= event_index < len(self.events):
            raise InvariantViolation(f"Invalid event index {event_index} (instance has {len(self.events)})")
        return self.events[event_index]

    def room(self, room_index: RoomIdx) -> Room:
        if not 0 <= room_index < len(self.rooms):
            raise InvariantViolation(f"Invalid room index {room_index} (instance has {len(self.rooms)})")
        return self.rooms[room_index]

    def timeslot(self, timeslot_index: SlotIdx) -> TimeSlot:
        if not 0 <= timeslot_index < len(self.timeslots):
            raise InvariantViolation(
                f"Invalid timeslot index {timeslot_index} (instance has {len(self.timeslots)})"
            )
        return self.timeslots[timeslot_index]

    @property
    def num_events(self) -> int:
        return len(self.events)

    @property
    def num_rooms(self) -> int:
        return len(self.rooms)

    @property
    def num_timeslots(self) -> int:
        return len(self.timeslots)
