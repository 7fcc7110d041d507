from enum import Enum
from typing import Dict, List, Optional

import numpy as np

from .candidate import CandidateSolution
from .config import GAConfig
from .initial_population import build_initial_population
from .model import ProblemInstance
from .operators import crossover, elitism_selection, mutate, tournament_selection


class Termination(Enum):
    MAX_GENERATIONS_REACHED = "max_generations_reached"
    PERFECT_SOLUTION_FOUND = "perfect_solution_found"


def _by_score(population: List[CandidateSolution]) -> List[CandidateSolution]:
    return sorted(population, key=lambda c: c.score())


def is_perfect(candidate: CandidateSolution) -> bool:
    """Sin violaciones y con todos los eventos asignados."""
    return candidate.score() == 0


class GeneticSolver:
    """
    Algoritmo genético sobre tablas de asignación.

    Cada solver tiene su propio generador (numpy) sembrado con la semilla de
    cuatro palabras del config: la misma instancia, config y semilla producen
    siempre la misma población final.
    """

    def __init__(self, instance: ProblemInstance, cfg: GAConfig, verbose: bool = True):
        cfg.validate()
        self.instance = instance
        self.cfg = cfg
        self.verbose = verbose
        self.seed = cfg.resolve_seed()
        self.rng = np.random.default_rng(self.seed)
        self.generations_left = cfg.generations
        self.generation = 0
        self.termination: Optional[Termination] = None
        self.history: List[Dict] = []

    def _log(self, message: str) -> None:
        if self.verbose:
            print(message)

    def _record(self, gen: int, population: List[CandidateSolution]) -> None:
        scores = [c.score() for c in population]
        self.history.append({
            "generation": gen,
            "best_score": scores[0],
            "avg_score": sum(scores) / len(scores),
            "worst_score": scores[-1],
        })

    def next_generation(self, population: List[CandidateSolution]) -> List[CandidateSolution]:
        cfg = self.cfg
        children = elitism_selection(population, cfg.elite_number)
        while len(children) < cfg.candidates_size:
            p1 = tournament_selection(population, cfg.tournament_size, self.rng)
            p2 = tournament_selection(population, cfg.tournament_size, self.rng)
            child1, child2 = crossover(p1, p2, self.rng, self.instance)
            if self.rng.random() < cfg.mutation_probability:
                mutate(child1, self.rng, self.instance)
            if self.rng.random() < cfg.mutation_probability:
                mutate(child2, self.rng, self.instance)
            # con tamaños impares la generación puede quedar con uno de más
            children.append(child1)
            children.append(child2)
        return _by_score(children)

    def evolve(self, population: Optional[List[CandidateSolution]] = None) -> List[CandidateSolution]:
        """Corre el AG y devuelve la población entera ordenada por score ascendente."""
        if population is None:
            population = build_initial_population(self.instance, self.cfg.candidates_size, self.rng)
            self._log(f"Población inicial: {len(population)} candidatos")
        population = _by_score(population)
        self._record(self.generation, population)

        while not self.done(population):
            population = self.step(population)
            last = self.history[-1]
            if self.generation % 5 == 0 or self.generations_left == 0 or is_perfect(population[0]):
                self._log(f"Gen {self.generation}: Mejor score={last['best_score']} Avg={last['avg_score']:.2f}")

        self.finish(population)
        return population

    def step(self, population: List[CandidateSolution]) -> List[CandidateSolution]:
        """Una generación: reemplaza la población y descuenta una de las restantes."""
        population = self.next_generation(population)
        self.generation += 1
        self.generations_left -= 1
        self._record(self.generation, population)
        return population

    def done(self, population: List[CandidateSolution]) -> bool:
        return self.generations_left <= 0 or is_perfect(population[0])

    def finish(self, population: List[CandidateSolution]) -> Termination:
        if is_perfect(population[0]):
            self.termination = Termination.PERFECT_SOLUTION_FOUND
            self._log(f"Solución perfecta encontrada en la generación {self.generation}")
        else:
            self.termination = Termination.MAX_GENERATIONS_REACHED
        return self.termination
