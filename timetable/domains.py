# timetable/domains.py
from dataclasses import dataclass
from typing import Dict, List

from .model import ProblemInstance


@dataclass(frozen=True)
class EventDomain:
    # Dominio estático de un evento; el filtro por docente se hace al construir.
    timeslot_ids: List[int]
    room_ids: List[int]


def build_event_domains(instance: ProblemInstance) -> Dict[int, EventDomain]:
    """
    Franjas no prohibidas y aulas válidas de cada evento.

    Un evento sin aulas declaradas puede ir en cualquiera.
    """
    all_rooms = list(range(instance.num_rooms))
    domains: Dict[int, EventDomain] = {}
    for idx, ev in enumerate(instance.events):
        timeslot_ids = [
            instance.to_timeslot_index(ts.day, ts.period)
            for ts in instance.timeslots
            if ts not in ev.banned_timeslots
        ]
        room_ids = sorted(ev.valid_rooms) if ev.valid_rooms else all_rooms
        domains[idx] = EventDomain(timeslot_ids=timeslot_ids, room_ids=room_ids)
    return domains
