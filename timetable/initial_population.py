# timetable/initial_population.py
from typing import Dict, List, Optional

import numpy as np

from .candidate import CandidateSolution
from .domains import EventDomain, build_event_domains
from .model import ProblemInstance


def _pop_random(items: List[int], rng: np.random.Generator) -> int:
    return items.pop(int(rng.integers(len(items))))


def _teacher_busy(candidate: CandidateSolution, timeslot: int, teacher_id: str, instance: ProblemInstance) -> bool:
    for room in range(candidate.num_rooms):
        other = candidate.get(timeslot, room)
        if other is not None and instance.event(other.event_index).teacher_id == teacher_id:
            return True
    return False


def place_event(
    candidate: CandidateSolution,
    event_index: int,
    dom: EventDomain,
    instance: ProblemInstance,
    rng: np.random.Generator,
) -> bool:
    """
    Coloca el evento en la primera celda libre que encuentre al azar.

    Se descartan las franjas donde su docente ya dicta; si no queda ninguna se
    vuelve a todas las franjas (se acepta un posible choque antes que dejar el
    evento fuera). Devuelve False si no hubo celda libre.
    """
    teacher = instance.event(event_index).teacher_id
    timeslots = [t for t in dom.timeslot_ids if not _teacher_busy(candidate, t, teacher, instance)]
    if not timeslots:
        timeslots = list(range(instance.num_timeslots))

    while timeslots:
        timeslot = _pop_random(timeslots, rng)
        rooms = list(dom.room_ids)
        while rooms:
            room = _pop_random(rooms, rng)
            if candidate.get(timeslot, room) is None:
                candidate.allocate(timeslot, room, event_index, instance)
                return True
    return False


def build_random_candidate(
    instance: ProblemInstance,
    rng: np.random.Generator,
    domains: Optional[Dict[int, EventDomain]] = None,
) -> CandidateSolution:
    if domains is None:
        domains = build_event_domains(instance)
    candidate = CandidateSolution(instance)
    pending = list(range(instance.num_events))
    while pending:
        event_index = _pop_random(pending, rng)
        place_event(candidate, event_index, domains[event_index], instance, rng)
    return candidate


def build_initial_population(
    instance: ProblemInstance,
    pop_size: int,
    rng: np.random.Generator,
) -> List[CandidateSolution]:
    domains = build_event_domains(instance)
    return [build_random_candidate(instance, rng, domains) for _ in range(pop_size)]
