"""
Lector de instancias en formato ECTT (curriculum-based course timetabling).

Cada curso se expande en tantos eventos como lecciones declara. Las
restricciones de indisponibilidad y de aula se cargan en los eventos del
curso; las globales (capacidad, currícula, docente) quedan en la instancia.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from .constraints import Constraint
from .model import Event, ProblemInstance, Room, TimeSlot

SECTIONS = (
    "COURSES:",
    "ROOMS:",
    "CURRICULA:",
    "UNAVAILABILITY_CONSTRAINTS:",
    "ROOM_CONSTRAINTS:",
)

_HEADER_KEYS = {
    "name": "Name",
    "courses": "Courses",
    "rooms": "Rooms",
    "days": "Days",
    "periods_per_day": "Periods_per_day",
    "curricula": "Curricula",
    "daily_lectures": "Min_Max_Daily_Lectures",
    "unavailability": "UnavailabilityConstraints",
    "room_constraints": "RoomConstraints",
}


@dataclass
class _Course:
    course_id: str
    teacher_id: str
    lectures: int
    min_days: int
    students: int
    double_lectures: bool
    curriculum_id: Optional[str] = None
    banned: List[TimeSlot] = field(default_factory=list)
    rooms: Set[int] = field(default_factory=set)


def _int(token: str, line_no: int) -> int:
    try:
        return int(token)
    except ValueError:
        raise ValueError(f"line {line_no}: expected an integer, got {token!r}") from None


def _split_sections(lines: List[Tuple[int, str]]) -> Tuple[Dict[str, str], Dict[str, List[Tuple[int, List[str]]]]]:
    header: Dict[str, str] = {}
    sections: Dict[str, List[Tuple[int, List[str]]]] = defaultdict(list)
    current = None
    for line_no, line in lines:
        if line == "END.":
            break
        if line in SECTIONS:
            current = line
            continue
        if current is None:
            if ":" not in line:
                raise ValueError(f"line {line_no}: malformed header entry {line!r}")
            key, value = line.split(":", 1)
            header[key.strip()] = value.strip()
        else:
            sections[current].append((line_no, line.split()))
    return header, sections


def _header_int(header: Dict[str, str], key: str) -> int:
    label = _HEADER_KEYS[key]
    if label not in header:
        raise ValueError(f"missing header entry {label!r}")
    try:
        return int(header[label])
    except ValueError:
        raise ValueError(f"header {label!r} must be an integer, got {header[label]!r}") from None


def _expect_count(section: str, rows: list, expected: int) -> None:
    if len(rows) != expected:
        raise ValueError(f"{section} declares {expected} entries but has {len(rows)}")


def parse_ectt(text: str) -> ProblemInstance:
    lines = [(n, raw.strip()) for n, raw in enumerate(text.splitlines(), start=1) if raw.strip()]
    header, sections = _split_sections(lines)

    days = _header_int(header, "days")
    periods = _header_int(header, "periods_per_day")
    daily = header.get(_HEADER_KEYS["daily_lectures"], "0 24").split()
    if len(daily) != 2:
        raise ValueError(f"{_HEADER_KEYS['daily_lectures']} needs two integers")
    daily_lectures = (int(daily[0]), int(daily[1]))

    # --- cursos
    rows = sections["COURSES:"]
    _expect_count("COURSES", rows, _header_int(header, "courses"))
    courses: Dict[str, _Course] = {}
    for line_no, tok in rows:
        if len(tok) != 6:
            raise ValueError(f"line {line_no}: course needs 6 fields, got {len(tok)}")
        double = _int(tok[5], line_no)
        if double not in (0, 1):
            raise ValueError(f"line {line_no}: double lectures flag must be 0 or 1, got {double}")
        courses[tok[0]] = _Course(
            course_id=tok[0],
            teacher_id=tok[1],
            lectures=_int(tok[2], line_no),
            min_days=_int(tok[3], line_no),
            students=_int(tok[4], line_no),
            double_lectures=bool(double),
        )

    # --- aulas
    rows = sections["ROOMS:"]
    _expect_count("ROOMS", rows, _header_int(header, "rooms"))
    rooms: List[Room] = []
    for line_no, tok in rows:
        if len(tok) < 2:
            raise ValueError(f"line {line_no}: room needs an id and a capacity")
        rooms.append(Room(id=tok[0], capacity=_int(tok[1], line_no), building=tok[2] if len(tok) > 2 else ""))
    room_index = {room.id: i for i, room in enumerate(rooms)}

    # --- currículas (si un curso aparece en varias, queda la última)
    rows = sections["CURRICULA:"]
    _expect_count("CURRICULA", rows, _header_int(header, "curricula"))
    for line_no, tok in rows:
        if len(tok) < 2:
            raise ValueError(f"line {line_no}: curriculum needs an id and a course count")
        n = _int(tok[1], line_no)
        members = tok[2:]
        if len(members) != n:
            raise ValueError(f"line {line_no}: curriculum {tok[0]} declares {n} courses but lists {len(members)}")
        for course_id in members:
            _course(courses, course_id, line_no).curriculum_id = tok[0]

    # --- franjas prohibidas
    rows = sections["UNAVAILABILITY_CONSTRAINTS:"]
    _expect_count("UNAVAILABILITY_CONSTRAINTS", rows, _header_int(header, "unavailability"))
    for line_no, tok in rows:
        if len(tok) != 3:
            raise ValueError(f"line {line_no}: unavailability needs course, day and period")
        _course(courses, tok[0], line_no).banned.append(TimeSlot(_int(tok[1], line_no), _int(tok[2], line_no)))

    # --- aulas válidas
    rows = sections["ROOM_CONSTRAINTS:"]
    _expect_count("ROOM_CONSTRAINTS", rows, _header_int(header, "room_constraints"))
    for line_no, tok in rows:
        if len(tok) != 2:
            raise ValueError(f"line {line_no}: room constraint needs course and room")
        if tok[1] not in room_index:
            raise ValueError(f"line {line_no}: unknown room {tok[1]!r}")
        _course(courses, tok[0], line_no).rooms.add(room_index[tok[1]])

    events: List[Event] = []
    for course in courses.values():
        constraints: List[Constraint] = []
        if course.banned:
            constraints.append(Constraint.TIMESLOT)
        if course.rooms:
            constraints.append(Constraint.ROOM)
        for _ in range(course.lectures):
            events.append(Event(
                course_id=course.course_id,
                teacher_id=course.teacher_id,
                students=course.students,
                curriculum_id=course.curriculum_id,
                constraints=tuple(constraints),
                banned_timeslots=frozenset(course.banned),
                valid_rooms=frozenset(course.rooms),
            ))

    return ProblemInstance(
        days=days,
        periods_per_day=periods,
        rooms=tuple(rooms),
        events=tuple(events),
        name=header.get(_HEADER_KEYS["name"]),
        daily_lectures=daily_lectures,
    )


def _course(courses: Dict[str, _Course], course_id: str, line_no: int) -> _Course:
    if course_id not in courses:
        raise ValueError(f"line {line_no}: unknown course {course_id!r}")
    return courses[course_id]


def load_instance(path: str) -> ProblemInstance:
    return parse_ectt(Path(path).read_text(encoding="utf-8"))
