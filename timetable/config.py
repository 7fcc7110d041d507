"""
Configuración del algoritmo genético.

Los parámetros se leen de un YAML (``config.yaml`` por defecto). Se aceptan
también los nombres del archivo de opciones anterior: una tabla ``genetic:``
anidada y ``population_size`` como alias de ``candidates_size``.
"""
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import yaml

SEED_WORDS = 4

_ALIASES = {
    "population_size": "candidates_size",
    "elite_size": "elite_number",
}


@dataclass
class GAConfig:
    generations: int = 6
    candidates_size: int = 100
    tournament_size: int = 50
    elite_number: int = 2
    mutation_weight: int = 80  # probabilidad de mutar = 1 / mutation_weight
    seed: Optional[List[int]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GAConfig":
        if isinstance(data.get("genetic"), dict):
            data = {**data, **data["genetic"]}
        merged = asdict(cls())
        for k, v in data.items():
            k = _ALIASES.get(k, k)
            if k in merged:
                merged[k] = v
        if merged["seed"] is not None:
            merged["seed"] = list(merged["seed"])
        return cls(**merged)

    @property
    def mutation_probability(self) -> float:
        return 1.0 / self.mutation_weight

    def validate(self) -> None:
        for name in ("generations", "candidates_size", "tournament_size", "mutation_weight"):
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")
        if not isinstance(self.elite_number, int) or self.elite_number < 0:
            raise ValueError(f"elite_number must be a non-negative integer, got {self.elite_number!r}")
        if self.tournament_size > self.candidates_size:
            raise ValueError(
                f"tournament_size ({self.tournament_size}) cannot exceed candidates_size ({self.candidates_size})"
            )
        if self.elite_number >= self.candidates_size:
            raise ValueError(
                f"elite_number ({self.elite_number}) must be smaller than candidates_size ({self.candidates_size})"
            )
        if self.seed is not None:
            if len(self.seed) != SEED_WORDS or not all(isinstance(w, int) and w >= 0 for w in self.seed):
                raise ValueError(f"seed must be {SEED_WORDS} non-negative integers, got {self.seed!r}")

    def resolve_seed(self) -> List[int]:
        """Devuelve la semilla; si no hay, sortea una y la imprime para poder repetir la corrida."""
        if self.seed is None:
            words = np.random.default_rng().integers(0, 2**32, size=SEED_WORDS)
            self.seed = [int(w) for w in words]
            print(f"seed: {self.seed}")
        return list(self.seed)


def _load_yaml(path: Path) -> Any:
    if not path.exists():
        return {}
    return yaml.safe_load(path.read_text(encoding="utf-8")) or {}


def load_config(path: str = "config.yaml") -> GAConfig:
    data = _load_yaml(Path(path))
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping")
    cfg = GAConfig.from_dict(data)
    cfg.validate()
    return cfg
