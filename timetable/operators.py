from typing import List, Sequence, Tuple

import numpy as np

from .candidate import CandidateSolution
from .grid import rectangle
from .model import ProblemInstance


def elitism_selection(population: Sequence[CandidateSolution], n: int) -> List[CandidateSolution]:
    """Copias de los ``n`` mejores; ``population`` ya viene ordenada por score."""
    return [c.copy() for c in population[:n]]


def tournament_selection(
    population: Sequence[CandidateSolution],
    k: int,
    rng: np.random.Generator,
) -> CandidateSolution:
    """
    Torneo de ``k`` participantes sorteados con reemplazo.

    Gana el de menor score; en empate se queda el primero sorteado.
    """
    if k <= 0:
        raise ValueError("tournament size must be positive")
    best = None
    for _ in range(k):
        contender = population[int(rng.integers(len(population)))]
        if best is None or contender.score() < best.score():
            best = contender
    return best


def crossover(
    a: CandidateSolution,
    b: CandidateSolution,
    rng: np.random.Generator,
    instance: ProblemInstance,
) -> Tuple[CandidateSolution, CandidateSolution]:
    """
    Cruce de un punto sobre la tabla (franja, aula).

    El hijo A vuelve a colocar los genes de A en ``[0, t) × [0, r)``; el hijo B
    recibe los genes de A en ``[t, T) × [r, R)``. El resto de cada hijo
    conserva su copia de origen. Antes de colocar un evento se retira de
    cualquier otra celda del hijo, así ningún evento queda duplicado; el
    ocupante que se pisa queda sin asignar.
    """
    child_a = a.copy()
    child_b = b.copy()
    cut_t = int(rng.integers(a.num_timeslots))
    cut_r = int(rng.integers(a.num_rooms))

    for t, r in rectangle(0, cut_t, 0, cut_r):
        _place(child_a, t, r, _event_at(a, t, r), instance)
    for t, r in rectangle(cut_t, a.num_timeslots, cut_r, a.num_rooms):
        _place(child_b, t, r, _event_at(a, t, r), instance)
    return child_a, child_b


def _place(child: CandidateSolution, t: int, r: int, event_index, instance: ProblemInstance) -> None:
    if event_index is not None:
        child.deallocate_event(event_index, instance, keep=(t, r))
    child.allocate(t, r, event_index, instance)


def mutate(candidate: CandidateSolution, rng: np.random.Generator, instance: ProblemInstance) -> None:
    """Intercambia los ocupantes de dos celdas al azar (pueden estar vacías o coincidir)."""
    t1 = int(rng.integers(candidate.num_timeslots))
    r1 = int(rng.integers(candidate.num_rooms))
    t2 = int(rng.integers(candidate.num_timeslots))
    r2 = int(rng.integers(candidate.num_rooms))
    event1 = _event_at(candidate, t1, r1)
    event2 = _event_at(candidate, t2, r2)
    candidate.allocate(t1, r1, event2, instance)
    candidate.allocate(t2, r2, event1, instance)


def _event_at(candidate: CandidateSolution, timeslot: int, room: int):
    allocation = candidate.get(timeslot, room)
    return allocation.event_index if allocation is not None else None
