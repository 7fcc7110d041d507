# timetable/evaluation.py
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List

from .candidate import CandidateSolution
from .constraints import Constraint, violations
from .model import ProblemInstance


@dataclass
class EvaluationResult:
    score: int
    total_violations: int
    by_constraint: Dict[Constraint, int]
    allocated: int
    unallocated: int
    duplicated_events: List[int] = field(default_factory=list)
    missing_events: List[int] = field(default_factory=list)
    messages: List[str] = field(default_factory=list)


def evaluate(candidate: CandidateSolution, instance: ProblemInstance) -> EvaluationResult:
    """
    Recalcula desde cero todas las celdas del candidato.

    No usa los valores cacheados, así que sirve para auditar la contabilidad
    incremental de ``CandidateSolution`` y para los reportes.
    """
    by_constraint: Dict[Constraint, int] = {c: 0 for c in Constraint}
    messages: List[str] = []
    seen: Counter = Counter()
    allocated = 0

    for t in range(candidate.num_timeslots):
        for r in range(candidate.num_rooms):
            allocation = candidate.get(t, r)
            if allocation is None:
                continue
            allocated += 1
            seen[allocation.event_index] += 1
            event = instance.event(allocation.event_index)
            ts = instance.timeslot(t)
            for c in tuple(event.constraints) + tuple(instance.constraints):
                n = violations(c, candidate, t, r, instance)
                if n:
                    by_constraint[c] += n
                    messages.append(
                        f"{c.name} x{n}: {event.course_id} ({event.teacher_id}) "
                        f"día {ts.day} periodo {ts.period} aula {instance.room(r).id}"
                    )

    total = sum(by_constraint.values())
    unallocated = instance.num_events - allocated
    return EvaluationResult(
        score=total + unallocated,
        total_violations=total,
        by_constraint=by_constraint,
        allocated=allocated,
        unallocated=unallocated,
        duplicated_events=sorted(e for e, n in seen.items() if n > 1),
        missing_events=[e for e in range(instance.num_events) if e not in seen],
        messages=messages,
    )
