import unittest
from pathlib import Path

import numpy as np

from timetable.candidate import CandidateSolution
from timetable.config import GAConfig
from timetable.constraints import Constraint, cell_violations, violations
from timetable.data_loader import load_instance
from timetable.evaluation import evaluate
from timetable.ga import GeneticSolver, Termination
from timetable.initial_population import build_initial_population, build_random_candidate
from timetable.model import Event, InvariantViolation, ProblemInstance, Room, TimeSlot
from timetable.operators import crossover, elitism_selection, mutate, tournament_selection

TOY = Path(__file__).resolve().parent.parent / "data" / "toy.ectt"


def make_instance(events, rooms=1, capacity=100, days=1, periods=1, constraints=()):
    return ProblemInstance(
        days=days,
        periods_per_day=periods,
        rooms=tuple(Room(f"r{i}", capacity) for i in range(rooms)),
        events=tuple(events),
        constraints=constraints,
    )


class ScriptedRng:
    """Generador con valores fijos para probar los operadores paso a paso."""

    def __init__(self, values):
        self.values = list(values)

    def integers(self, n):
        return self.values.pop(0)

    def random(self):
        return 0.0


class ConsistencyMixin:
    def assertConsistent(self, cand, inst):
        self.assertEqual(cand.total_violations, sum(a.violations for a in cand.allocations()))
        for a in cand.allocations():
            self.assertEqual(a.violations, cell_violations(cand, a.timeslot_index, a.room_index, inst))
        self.assertEqual(cand.total_violations, evaluate(cand, inst).total_violations)
        self.assertEqual(cand.unallocated_event_count, inst.num_events - cand.count_allocated())
        self.assertEqual(cand.score(), cand.total_violations + cand.unallocated_event_count)


class ConstraintTests(unittest.TestCase):
    def test_room_constraint_unrestricted_event(self):
        inst = make_instance([Event("C1", "T", 10, constraints=(Constraint.ROOM,))], rooms=3)
        for r in range(3):
            cand = CandidateSolution(inst)
            cand.allocate(0, r, 0, inst)
            self.assertEqual(violations(Constraint.ROOM, cand, 0, r, inst), 0)

    def test_room_constraint_restricted_event(self):
        ev = Event("C1", "T", 10, constraints=(Constraint.ROOM,), valid_rooms=frozenset({2}))
        inst = make_instance([ev], rooms=3)
        cand = CandidateSolution(inst)
        cand.allocate(0, 2, 0, inst)
        self.assertEqual(violations(Constraint.ROOM, cand, 0, 2, inst), 0)
        cand.allocate(0, 2, None, inst)
        cand.allocate(0, 0, 0, inst)
        self.assertEqual(violations(Constraint.ROOM, cand, 0, 0, inst), 1)
        self.assertEqual(cand.total_violations, 1)

    def test_timeslot_constraint(self):
        ev = Event("C1", "T", 10, constraints=(Constraint.TIMESLOT,), banned_timeslots=frozenset({TimeSlot(0, 1)}))
        inst = make_instance([ev], periods=2)
        cand = CandidateSolution(inst)
        cand.allocate(1, 0, 0, inst)
        self.assertEqual(violations(Constraint.TIMESLOT, cand, 1, 0, inst), 1)
        cand.allocate(1, 0, None, inst)
        cand.allocate(0, 0, 0, inst)
        self.assertEqual(cand.total_violations, 0)

    def test_room_capacity_penalizes_bigger_rooms(self):
        inst_small = make_instance([Event("C1", "T", 10)], capacity=5, constraints=(Constraint.ROOM_CAPACITY,))
        cand = CandidateSolution(inst_small)
        cand.allocate(0, 0, 0, inst_small)
        self.assertEqual(cand.total_violations, 0)

        inst_big = make_instance([Event("C1", "T", 10)], capacity=20, constraints=(Constraint.ROOM_CAPACITY,))
        cand = CandidateSolution(inst_big)
        cand.allocate(0, 0, 0, inst_big)
        self.assertEqual(cand.total_violations, 1)

    def test_teacher_constraint(self):
        events = [Event("C1", "T", 10), Event("C2", "T", 10)]
        inst = make_instance(events, rooms=2, periods=2, constraints=(Constraint.TEACHER,))
        cand = CandidateSolution(inst)
        cand.allocate(0, 0, 0, inst)
        self.assertEqual(violations(Constraint.TEACHER, cand, 0, 0, inst), 0)
        self.assertEqual(cand.total_violations, 0)

        cand.allocate(0, 1, 1, inst)
        self.assertEqual(violations(Constraint.TEACHER, cand, 0, 0, inst), 1)
        self.assertEqual(violations(Constraint.TEACHER, cand, 0, 1, inst), 1)
        self.assertEqual(cand.total_violations, 2)

        # moverlo a otra franja limpia ambas celdas
        cand.allocate(0, 1, None, inst)
        cand.allocate(1, 1, 1, inst)
        self.assertEqual(cand.total_violations, 0)

    def test_curriculum_same_timeslot(self):
        events = [Event("C1", "A", 30, curriculum_id="K"), Event("C2", "B", 30, curriculum_id="K")]
        inst = ProblemInstance(
            days=1, periods_per_day=2, rooms=(Room("r0", 30), Room("r1", 30)), events=tuple(events)
        )
        cand = CandidateSolution(inst)
        cand.allocate(0, 0, 0, inst)
        cand.allocate(0, 1, 1, inst)
        self.assertEqual(violations(Constraint.CURRICULUM, cand, 0, 0, inst), 1)
        self.assertEqual(violations(Constraint.CURRICULUM, cand, 0, 1, inst), 1)
        self.assertEqual(cand.get(0, 0).violations, 1)
        self.assertEqual(cand.get(0, 1).violations, 1)
        self.assertEqual(cand.score(), 2)

        other = CandidateSolution(inst)
        other.allocate(0, 0, 0, inst)
        other.allocate(1, 1, 1, inst)
        self.assertEqual(violations(Constraint.CURRICULUM, other, 0, 0, inst), 0)
        self.assertEqual(violations(Constraint.CURRICULUM, other, 1, 1, inst), 0)
        self.assertEqual(other.score(), 0)

    def test_events_without_curriculum_compare_equal(self):
        events = [Event("C1", "A", 10), Event("C2", "B", 10)]
        inst = make_instance(events, rooms=2, constraints=(Constraint.CURRICULUM,))
        cand = CandidateSolution(inst)
        cand.allocate(0, 0, 0, inst)
        cand.allocate(0, 1, 1, inst)
        self.assertEqual(cand.total_violations, 2)

    def test_empty_cell_has_no_violations(self):
        inst = make_instance([Event("C1", "T", 10)], constraints=(Constraint.TEACHER,))
        cand = CandidateSolution(inst)
        for c in Constraint:
            self.assertEqual(violations(c, cand, 0, 0, inst), 0)


class CandidateTests(ConsistencyMixin, unittest.TestCase):
    def setUp(self):
        self.inst = load_instance(str(TOY))

    def test_new_candidate_counts_all_events_unallocated(self):
        cand = CandidateSolution(self.inst)
        self.assertEqual(cand.total_violations, 0)
        self.assertEqual(cand.unallocated_event_count, self.inst.num_events)
        self.assertEqual(cand.score(), self.inst.num_events)

    def test_random_edits_keep_score_consistent(self):
        rng = np.random.default_rng(7)
        cand = CandidateSolution(self.inst)
        for _ in range(300):
            t = int(rng.integers(self.inst.num_timeslots))
            r = int(rng.integers(self.inst.num_rooms))
            e = int(rng.integers(-1, self.inst.num_events))
            cand.allocate(t, r, None if e < 0 else e, self.inst)
        self.assertConsistent(cand, self.inst)

    def test_get_has_no_side_effects(self):
        cand = build_random_candidate(self.inst, np.random.default_rng(3))
        score = cand.score()
        first = [cand.get(t, r) for t in range(cand.num_timeslots) for r in range(cand.num_rooms)]
        second = [cand.get(t, r) for t in range(cand.num_timeslots) for r in range(cand.num_rooms)]
        self.assertEqual(first, second)
        self.assertEqual(cand.score(), score)

    def test_copy_does_not_share_grid(self):
        cand = build_random_candidate(self.inst, np.random.default_rng(3))
        before = list(cand.allocations())
        score = cand.score()
        clone = cand.copy()
        for a in before:
            clone.allocate(a.timeslot_index, a.room_index, None, self.inst)
        self.assertEqual(list(cand.allocations()), before)
        self.assertEqual(cand.score(), score)
        self.assertEqual(clone.unallocated_event_count, self.inst.num_events)
        self.assertConsistent(clone, self.inst)

    def test_invalid_indices_fail_fast(self):
        cand = CandidateSolution(self.inst)
        with self.assertRaises(InvariantViolation):
            cand.allocate(0, 0, self.inst.num_events, self.inst)
        with self.assertRaises(InvariantViolation):
            cand.allocate(self.inst.num_timeslots, 0, 0, self.inst)
        with self.assertRaises(InvariantViolation):
            cand.get(0, -1)
        self.assertEqual(cand.score(), self.inst.num_events)

    def test_degenerate_instances_rejected(self):
        with self.assertRaises(InvariantViolation):
            ProblemInstance(days=1, periods_per_day=1, rooms=(), events=())
        with self.assertRaises(InvariantViolation):
            ProblemInstance(days=0, periods_per_day=4, rooms=(Room("r0", 10),), events=())
        with self.assertRaises(InvariantViolation):
            make_instance([Event("C1", "T", 10, valid_rooms=frozenset({5}))], rooms=2)
        with self.assertRaises(InvariantViolation):
            make_instance([Event("C1", "T", 10, constraints=(Constraint.TEACHER,))])

    def test_timeslot_index_is_dense(self):
        self.assertEqual(self.inst.num_timeslots, self.inst.days * self.inst.periods_per_day)
        for t, ts in enumerate(self.inst.timeslots):
            self.assertEqual(self.inst.to_timeslot_index(ts.day, ts.period), t)


class InitialPopulationTests(ConsistencyMixin, unittest.TestCase):
    def test_toy_population_respects_static_rules(self):
        inst = load_instance(str(TOY))
        for cand in build_initial_population(inst, 10, np.random.default_rng(11)):
            res = evaluate(cand, inst)
            self.assertEqual(res.unallocated, 0)
            self.assertEqual(res.duplicated_events, [])
            self.assertEqual(res.by_constraint[Constraint.ROOM], 0)
            self.assertEqual(res.by_constraint[Constraint.TIMESLOT], 0)
            self.assertEqual(res.by_constraint[Constraint.TEACHER], 0)
            self.assertConsistent(cand, inst)

    def test_fallback_to_banned_timeslot(self):
        ev = Event("C1", "T", 10, constraints=(Constraint.TIMESLOT,), banned_timeslots=frozenset({TimeSlot(0, 0)}))
        inst = make_instance([ev])
        cand = build_random_candidate(inst, np.random.default_rng(0))
        self.assertEqual(cand.get(0, 0).event_index, 0)
        self.assertEqual(cand.score(), 1)

    def test_fallback_when_teacher_busy_everywhere(self):
        inst = make_instance([Event("C1", "T", 10), Event("C2", "T", 10)], rooms=2, constraints=(Constraint.TEACHER,))
        cand = build_random_candidate(inst, np.random.default_rng(0))
        self.assertEqual(cand.unallocated_event_count, 0)
        self.assertEqual(cand.total_violations, 2)

    def test_event_left_unallocated_without_free_cell(self):
        inst = make_instance([Event("C1", "A", 10), Event("C2", "B", 10)])
        cand = build_random_candidate(inst, np.random.default_rng(0))
        self.assertEqual(cand.count_allocated(), 1)
        self.assertEqual(cand.unallocated_event_count, 1)
        self.assertEqual(cand.score(), 1)


class OperatorTests(ConsistencyMixin, unittest.TestCase):
    def setUp(self):
        events = [Event(f"C{i}", f"T{i}", 10) for i in range(4)]
        self.inst = make_instance(events, rooms=2, periods=2, constraints=(Constraint.TEACHER,))
        self.full = CandidateSolution(self.inst)
        for i, (t, r) in enumerate([(0, 0), (0, 1), (1, 0), (1, 1)]):
            self.full.allocate(t, r, i, self.inst)
        self.empty = CandidateSolution(self.inst)

    def test_tournament_returns_lowest_score(self):
        pop = [self.empty, self.full]
        self.assertIs(tournament_selection(pop, 2, ScriptedRng([0, 1])), self.full)
        self.assertIs(tournament_selection(pop, 1, ScriptedRng([0])), self.empty)

    def test_tournament_tie_keeps_first_drawn(self):
        twin = self.full.copy()
        pop = [self.full, twin]
        self.assertIs(tournament_selection(pop, 2, ScriptedRng([1, 0])), twin)
        self.assertIs(tournament_selection(pop, 2, ScriptedRng([0, 1])), self.full)

    def test_tournament_rejects_empty_tournament(self):
        with self.assertRaises(ValueError):
            tournament_selection([self.full], 0, ScriptedRng([]))

    def test_elitism_copies_best(self):
        elite = elitism_selection([self.full, self.empty], 1)
        self.assertEqual(len(elite), 1)
        self.assertIsNot(elite[0], self.full)
        self.assertEqual(list(elite[0].allocations()), list(self.full.allocations()))

    def test_crossover_replaces_one_quadrant_of_child_b(self):
        child_a, child_b = crossover(self.full, self.empty, ScriptedRng([1, 1]), self.inst)
        self.assertEqual(list(child_a.allocations()), list(self.full.allocations()))
        self.assertEqual(child_b.get(1, 1).event_index, 3)
        self.assertIsNone(child_b.get(0, 0))
        self.assertIsNone(child_b.get(0, 1))
        self.assertIsNone(child_b.get(1, 0))
        # los padres no cambian
        self.assertEqual(self.empty.count_allocated(), 0)
        self.assertEqual(self.full.count_allocated(), 4)
        self.assertConsistent(child_a, self.inst)
        self.assertConsistent(child_b, self.inst)

    def test_crossover_cut_at_origin(self):
        child_a, child_b = crossover(self.full, self.empty, ScriptedRng([0, 0]), self.inst)
        self.assertEqual(child_b.count_allocated(), 4)
        self.assertEqual(child_a.score(), self.full.score())

    def rotated(self):
        cand = CandidateSolution(self.inst)
        for i, (t, r) in enumerate([(1, 1), (1, 0), (0, 1), (0, 0)]):
            cand.allocate(t, r, i, self.inst)
        return cand

    def test_crossover_moves_shared_event_instead_of_copying(self):
        # el evento 3 está en (0,0) en B y en (1,1) en A
        child_a, child_b = crossover(self.full, self.rotated(), ScriptedRng([1, 1]), self.inst)
        self.assertEqual(child_b.get(1, 1).event_index, 3)
        self.assertIsNone(child_b.get(0, 0))
        report = evaluate(child_b, self.inst)
        self.assertEqual(report.duplicated_events, [])
        self.assertEqual(report.missing_events, [0])
        self.assertEqual(child_b.unallocated_event_count, 1)
        self.assertEqual(evaluate(child_a, self.inst).duplicated_events, [])
        self.assertConsistent(child_b, self.inst)

    def test_crossover_whole_grid_rebuilds_parent_a(self):
        _, child_b = crossover(self.full, self.rotated(), ScriptedRng([0, 0]), self.inst)
        self.assertEqual(
            [(a.event_index, a.timeslot_index, a.room_index) for a in child_b.allocations()],
            [(a.event_index, a.timeslot_index, a.room_index) for a in self.full.allocations()],
        )
        self.assertEqual(evaluate(child_b, self.inst).duplicated_events, [])
        self.assertConsistent(child_b, self.inst)

    def test_deallocate_event_keeps_requested_cell(self):
        cand = CandidateSolution(self.inst)
        cand.allocate(0, 0, 2, self.inst)
        cand.allocate(1, 1, 2, self.inst)
        cand.deallocate_event(2, self.inst, keep=(1, 1))
        self.assertIsNone(cand.get(0, 0))
        self.assertEqual(cand.get(1, 1).event_index, 2)
        self.assertConsistent(cand, self.inst)
        cand.deallocate_event(2, self.inst)
        self.assertEqual(cand.count_allocated(), 0)
        self.assertEqual(cand.unallocated_event_count, 4)

    def test_mutation_swaps_cells(self):
        cand = CandidateSolution(self.inst)
        cand.allocate(0, 0, 0, self.inst)
        mutate(cand, ScriptedRng([0, 0, 1, 1]), self.inst)
        self.assertIsNone(cand.get(0, 0))
        self.assertEqual(cand.get(1, 1).event_index, 0)
        self.assertConsistent(cand, self.inst)

    def test_mutation_same_cell_is_noop(self):
        cand = self.full.copy()
        mutate(cand, ScriptedRng([1, 0, 1, 0]), self.inst)
        self.assertEqual(list(cand.allocations()), list(self.full.allocations()))

    def test_mutation_creates_teacher_clash(self):
        events = [Event("C1", "T", 10), Event("C2", "T", 10)]
        inst = make_instance(events, rooms=2, periods=2, constraints=(Constraint.TEACHER,))
        cand = CandidateSolution(inst)
        cand.allocate(0, 0, 0, inst)
        cand.allocate(1, 0, 1, inst)
        self.assertEqual(cand.total_violations, 0)
        mutate(cand, ScriptedRng([1, 0, 0, 1]), inst)
        self.assertEqual(cand.total_violations, 2)
        self.assertConsistent(cand, inst)


class GeneticSolverTests(ConsistencyMixin, unittest.TestCase):
    def setUp(self):
        self.inst = load_instance(str(TOY))

    def small_cfg(self, **kw):
        params = dict(generations=4, candidates_size=10, tournament_size=3, elite_number=2,
                      mutation_weight=2, seed=[1, 2, 3, 4])
        params.update(kw)
        return GAConfig(**params)

    def test_single_event_end_to_end(self):
        inst = ProblemInstance(
            days=1, periods_per_day=1, rooms=(Room("r0", 5),), events=(Event("C1", "T", 10),)
        )
        cfg = GAConfig(generations=1, candidates_size=1, tournament_size=1, elite_number=0, seed=[1, 2, 3, 4])
        result = GeneticSolver(inst, cfg, verbose=False).evolve()
        self.assertEqual(len(result), 1)
        self.assertEqual(result[0].score(), 0)
        self.assertEqual(result[0].get(0, 0).event_index, 0)

    def test_perfect_solution_stops_early(self):
        inst = ProblemInstance(
            days=1, periods_per_day=1, rooms=(Room("r0", 5),), events=(Event("C1", "T", 10),)
        )
        solver = GeneticSolver(inst, GAConfig(generations=5, candidates_size=2, tournament_size=1,
                                              elite_number=0, seed=[1, 2, 3, 4]), verbose=False)
        solver.evolve()
        self.assertEqual(solver.termination, Termination.PERFECT_SOLUTION_FOUND)
        self.assertEqual(solver.generations_left, 5)

    def test_population_sorted_and_consistent(self):
        solver = GeneticSolver(self.inst, self.small_cfg(), verbose=False)
        result = solver.evolve()
        scores = [c.score() for c in result]
        self.assertEqual(scores, sorted(scores))
        self.assertGreaterEqual(len(result), 10)
        for cand in result:
            self.assertConsistent(cand, self.inst)
            self.assertEqual(evaluate(cand, self.inst).duplicated_events, [])
        if solver.termination is Termination.MAX_GENERATIONS_REACHED:
            self.assertEqual(len(solver.history), 5)
            self.assertEqual(solver.generations_left, 0)
        else:
            self.assertPerfect(result[0])

    def assertPerfect(self, cand):
        report = evaluate(cand, self.inst)
        self.assertEqual(report.duplicated_events, [])
        self.assertEqual(report.missing_events, [])
        self.assertEqual(report.total_violations, 0)
        self.assertEqual(cand.score(), 0)

    def test_longer_runs_keep_every_event_once(self):
        cfg = dict(generations=15, candidates_size=20, tournament_size=5, elite_number=2, mutation_weight=5)
        for first in range(3):
            with self.subTest(seed=first):
                solver = GeneticSolver(self.inst, self.small_cfg(seed=[first, 1, 2, 3], **cfg), verbose=False)
                result = solver.evolve()
                for cand in result:
                    self.assertGreaterEqual(cand.score(), 0)
                    self.assertEqual(evaluate(cand, self.inst).duplicated_events, [])
                if solver.termination is Termination.PERFECT_SOLUTION_FOUND:
                    self.assertPerfect(result[0])
                else:
                    self.assertGreater(result[0].score(), 0)

    def test_step_and_done_drive_the_same_loop(self):
        solver = GeneticSolver(self.inst, self.small_cfg(generations=2), verbose=False)
        population = build_initial_population(self.inst, 10, solver.rng)
        population.sort(key=lambda c: c.score())
        steps = 0
        while not solver.done(population):
            population = solver.step(population)
            steps += 1
        self.assertLessEqual(steps, 2)
        self.assertEqual(solver.generation, steps)
        termination = solver.finish(population)
        self.assertIs(termination, solver.termination)
        self.assertEqual(termination is Termination.PERFECT_SOLUTION_FOUND, population[0].score() == 0)

    def test_elitism_never_worsens_best(self):
        solver = GeneticSolver(self.inst, self.small_cfg(generations=6), verbose=False)
        solver.evolve()
        best = [h["best_score"] for h in solver.history]
        self.assertEqual(best, sorted(best, reverse=True))

    def test_odd_population_can_overshoot_by_one(self):
        cfg = self.small_cfg(generations=1, candidates_size=3, tournament_size=2, elite_number=0)
        result = GeneticSolver(self.inst, cfg, verbose=False).evolve()
        self.assertEqual(len(result), 4)

    def test_same_seed_same_output(self):
        def run():
            result = GeneticSolver(self.inst, self.small_cfg(), verbose=False).evolve()
            return [(c.score(), tuple(c.allocations())) for c in result]

        self.assertEqual(run(), run())

    def test_invalid_config_rejected_before_running(self):
        with self.assertRaises(ValueError):
            GeneticSolver(self.inst, self.small_cfg(tournament_size=11), verbose=False)
        with self.assertRaises(ValueError):
            GeneticSolver(self.inst, self.small_cfg(elite_number=10), verbose=False)


if __name__ == "__main__":
    unittest.main()
