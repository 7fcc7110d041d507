import argparse
import time
from pathlib import Path
from typing import List

import pandas as pd

from timetable.candidate import CandidateSolution
from timetable.config import GAConfig, load_config
from timetable.data_loader import load_instance
from timetable.evaluation import EvaluationResult, evaluate
from timetable.ga import GeneticSolver
from timetable.model import ProblemInstance


def candidate_to_dataframe(candidate: CandidateSolution, instance: ProblemInstance) -> pd.DataFrame:
    data = []
    for alloc in candidate.allocations():
        ev = instance.event(alloc.event_index)
        ts = instance.timeslot(alloc.timeslot_index)
        data.append(
            {
                "Evento": alloc.event_index,
                "Curso": ev.course_id,
                "Docente": ev.teacher_id,
                "Curricula": ev.curriculum_id or "",
                "Alumnos": ev.students,
                "Dia": ts.day,
                "Periodo": ts.period,
                "Aula": instance.room(alloc.room_index).id,
                "Capacidad": instance.room(alloc.room_index).capacity,
                "Violaciones": alloc.violations,
            }
        )
    columns = ["Evento", "Curso", "Docente", "Curricula", "Alumnos", "Dia", "Periodo", "Aula", "Capacidad", "Violaciones"]
    return pd.DataFrame(data, columns=columns).sort_values(["Dia", "Periodo", "Aula"]).reset_index(drop=True)


def timetable_matrix(candidate: CandidateSolution, instance: ProblemInstance) -> pd.DataFrame:
    """Vista franja × aula con el curso de cada celda."""
    rows = []
    for t, ts in enumerate(instance.timeslots):
        row = {}
        for r, room in enumerate(instance.rooms):
            alloc = candidate.get(t, r)
            row[room.id] = instance.event(alloc.event_index).course_id if alloc else ""
        rows.append(row)
    index = [f"D{ts.day} P{ts.period}" for ts in instance.timeslots]
    return pd.DataFrame(rows, index=index, columns=[room.id for room in instance.rooms])


def format_ranking(candidates: List[CandidateSolution]) -> str:
    return "[" + ", ".join(str(c.score()) for c in candidates) + "]"


def export_outputs(df_schedule: pd.DataFrame, eval_res: EvaluationResult, out_dir: Path):
    out_dir.mkdir(parents=True, exist_ok=True)
    df_schedule.to_csv(out_dir / "schedule.csv", index=False)
    conflicts = pd.DataFrame(
        [{"tipo": c.value, "valor": n} for c, n in eval_res.by_constraint.items()]
        + [
            {"tipo": "no_asignados", "valor": eval_res.unallocated},
            {"tipo": "score", "valor": eval_res.score},
        ]
    )
    conflicts.to_csv(out_dir / "conflicts.csv", index=False)


def main():
    parser = argparse.ArgumentParser(description="Asignación de horarios con algoritmo genético")
    parser.add_argument("instance", nargs="?", default="data/toy.ectt", help="Instancia en formato ECTT")
    parser.add_argument("--config", default="config.yaml", help="Ruta al archivo de configuración")
    parser.add_argument("--out_dir", default="outputs", help="Directorio de resultados")
    args = parser.parse_args()

    cfg: GAConfig = load_config(args.config)

    print("Cargando datos...")
    instance = load_instance(args.instance)
    print(
        f"Instancia {instance.name}: {instance.num_events} eventos, "
        f"{instance.num_rooms} aulas, {instance.num_timeslots} franjas"
    )

    solver = GeneticSolver(instance, cfg)
    print(f"Generaciones: {cfg.generations} | Población: {cfg.candidates_size}")
    start = time.perf_counter()
    candidates = solver.evolve()
    elapsed = time.perf_counter() - start

    best = candidates[0]
    eval_res = evaluate(best, instance)

    print(format_ranking(candidates))
    print("\n--- MEJOR SOLUCIÓN ---")
    print(f"Score: {best.score()} | Violaciones: {best.total_violations} | "
          f"No asignados: {best.unallocated_event_count} | Tiempo: {elapsed:.2f}s")
    print(" ".join(f"{c.value}={n}" for c, n in eval_res.by_constraint.items()))
    for msg in eval_res.messages[:20]:
        print(f"  {msg}")

    out_dir = Path(args.out_dir)
    export_outputs(candidate_to_dataframe(best, instance), eval_res, out_dir)
    if solver.history:
        pd.DataFrame(solver.history).to_csv(out_dir / "history.csv", index=False)
    metrics = {
        "best_score": best.score(),
        "violations": best.total_violations,
        "unallocated": best.unallocated_event_count,
        "termination": solver.termination.value,
        "seed": " ".join(str(w) for w in solver.seed),
        "time_sec": elapsed,
        "generations_ran": len(solver.history) - 1,
    }
    pd.DataFrame([metrics]).to_csv(out_dir / "metrics.csv", index=False)
    print(f"Se guardaron resultados en {out_dir}/schedule.csv y {out_dir}/conflicts.csv")


if __name__ == "__main__":
    main()
