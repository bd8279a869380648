import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Optional, Union


# ------------------------
# Evaluation components
# ------------------------
class EvaluationComponent(str, Enum):
    TD = "TD"
    TP = "TP"
    EXAM = "Exam"

    @property
    def field_name(self) -> str:
        """Attribute of RawGradeEntry holding this component's grade."""
        return _FIELD_NAMES[self]

    @classmethod
    def parse(cls, label: str) -> "EvaluationComponent":
        key = str(label).strip().lower()
        try:
            return _LABELS[key]
        except KeyError as exc:
            raise ValueError(f"Unknown evaluation component: {label!r}") from exc


_FIELD_NAMES = {
    EvaluationComponent.TD: "td",
    EvaluationComponent.TP: "tp",
    EvaluationComponent.EXAM: "exam",
}

# catalogs written in French use "Examen"
_LABELS = {
    "td": EvaluationComponent.TD,
    "tp": EvaluationComponent.TP,
    "exam": EvaluationComponent.EXAM,
    "examen": EvaluationComponent.EXAM,
}


def component_set(labels: Iterable[Union[str, EvaluationComponent]]) -> FrozenSet[EvaluationComponent]:
    return frozenset(
        c if isinstance(c, EvaluationComponent) else EvaluationComponent.parse(c)
        for c in labels
    )


# ------------------------
# Inputs
# ------------------------
@dataclass(frozen=True)
class ModuleDefinition:
    name: str
    coefficient: float
    credits: float
    evaluation_components: FrozenSet[EvaluationComponent]
    elimination_threshold: Optional[float] = None
    semester: str = ""
    unit: str = ""

    def __post_init__(self):
        components = component_set(self.evaluation_components)
        if not components:
            raise ValueError(f"Module {self.name!r} has no evaluation components.")
        for attr in ("coefficient", "credits", "elimination_threshold"):
            value = getattr(self, attr)
            if value is not None and not math.isfinite(value):
                raise ValueError(f"Module {self.name!r} has a non-finite {attr.replace('_', ' ')} ({value}).")
        if self.coefficient < 0:
            raise ValueError(f"Module {self.name!r} has a negative coefficient ({self.coefficient}).")
        if self.credits < 0:
            raise ValueError(f"Module {self.name!r} has negative credits ({self.credits}).")
        # frozen dataclass: bypass __setattr__ to store the normalised set
        object.__setattr__(self, "evaluation_components", components)

    def has(self, component: EvaluationComponent) -> bool:
        return component in self.evaluation_components


RawGrade = Union[str, float, int, None]


@dataclass
class RawGradeEntry:
    """User-typed grades for one module. Values are kept as entered."""

    td: RawGrade = None
    tp: RawGrade = None
    exam: RawGrade = None

    def get(self, component: EvaluationComponent) -> RawGrade:
        return getattr(self, component.field_name)

    @classmethod
    def from_mapping(cls, data: Optional[Dict[str, RawGrade]]) -> "RawGradeEntry":
        if data is None:
            return cls()
        data = {str(k).strip().lower(): v for k, v in data.items()}
        return cls(
            td=data.get("td"),
            tp=data.get("tp"),
            exam=data.get("exam") if data.get("exam") is not None else data.get("examen"),
        )


# ------------------------
# Results
# ------------------------
@dataclass(frozen=True)
class ComputedModuleResult:
    average: Optional[float]
    is_eliminated: bool = False

    @property
    def is_complete(self) -> bool:
        return self.average is not None


@dataclass(frozen=True)
class OverallResult:
    weighted_average: Optional[float]
    any_eliminated: bool
    passed: bool
    module_results: Dict[str, ComputedModuleResult] = field(default_factory=dict)
    credits_attempted: float = 0.0
    credits_validated: float = 0.0

    @property
    def is_complete(self) -> bool:
        return self.weighted_average is not None


@dataclass(frozen=True)
class ExamRequirement:
    """
    Exam grade needed to reach a target.
    status: "already_met" (required <= 0), "impossible" (required > 20)
    or "reachable".
    """

    required: float
    target: float
    status: str
