import logging
import math
import numbers
import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .models import (
    ComputedModuleResult,
    EvaluationComponent,
    ExamRequirement,
    ModuleDefinition,
    OverallResult,
    RawGrade,
    RawGradeEntry,
)

logger = logging.getLogger(__name__)

GRADE_MIN = 0.0
GRADE_MAX = 20.0
PASS_MARK = 10.0

TD = EvaluationComponent.TD
TP = EvaluationComponent.TP
EXAM = EvaluationComponent.EXAM

# Weights are chosen by the exact component set. Sets missing from this table
# (TD + TP without an exam) cannot be averaged.
COMPONENT_WEIGHTS: Dict[FrozenSet[EvaluationComponent], Dict[EvaluationComponent, float]] = {
    frozenset({TD, TP, EXAM}): {TD: 0.2, TP: 0.2, EXAM: 0.6},
    frozenset({TP, EXAM}): {TP: 0.4, EXAM: 0.6},
    frozenset({TD, EXAM}): {TD: 0.4, EXAM: 0.6},
    frozenset({EXAM}): {EXAM: 1.0},
    frozenset({TP}): {TP: 1.0},
    frozenset({TD}): {TD: 1.0},
}

GradesInput = Union[RawGradeEntry, Mapping[str, RawGrade], None]


class GradeEngineError(Exception):
    """Raised for structurally invalid calls to the grade engine."""


class NoModulesError(GradeEngineError):
    """No modules to average, or their coefficients sum to zero."""


# ------------------------
# Input sanitization
# ------------------------
_NOT_GRADE_CHARS = re.compile(r"[^0-9.]")


def sanitize_grade(raw: RawGrade) -> Optional[float]:
    """
    Turn a typed grade into a number on the 0-20 scale.

    Returns None when the value is missing or unreadable. Out of range values
    are clamped, so "25" gives 20.0 and "-5" gives 0.0.
    """
    if raw is None or isinstance(raw, bool):
        return None

    if isinstance(raw, numbers.Real):
        value = float(raw)
        if math.isnan(value):
            return None
    else:
        text = str(raw).strip().replace(",", ".")
        if not text:
            return None
        negative = text.startswith("-")
        cleaned = _NOT_GRADE_CHARS.sub("", text)
        if cleaned.count(".") > 1:
            return None
        try:
            value = float(cleaned)
        except ValueError:
            return None
        if negative:
            value = -value

    return max(GRADE_MIN, min(value, GRADE_MAX))


def _as_entry(grades: GradesInput) -> RawGradeEntry:
    if isinstance(grades, RawGradeEntry):
        return grades
    return RawGradeEntry.from_mapping(grades)


def weights_for(components: FrozenSet[EvaluationComponent]) -> Optional[Dict[EvaluationComponent, float]]:
    return COMPONENT_WEIGHTS.get(frozenset(components))


# ------------------------
# Core logic
# ------------------------
def compute_module_average(module: ModuleDefinition, grades: GradesInput) -> ComputedModuleResult:
    entry = _as_entry(grades)
    weights = weights_for(module.evaluation_components)
    if weights is None:
        logger.debug("No weighting for %s components %s", module.name, sorted(c.value for c in module.evaluation_components))
        return ComputedModuleResult(average=None, is_eliminated=False)

    average = 0.0
    for component, weight in weights.items():
        value = sanitize_grade(entry.get(component))
        if value is None:
            return ComputedModuleResult(average=None, is_eliminated=False)
        average += value * weight

    threshold = module.elimination_threshold
    is_eliminated = threshold is not None and average < threshold
    return ComputedModuleResult(average=average, is_eliminated=is_eliminated)


def weighted_mean(ac: np.ndarray) -> Tuple[Optional[float], float]:
    """
    ac: Nx2 numpy array -> [average, coefficient]
    returns: (coefficient-weighted mean, total coefficient)
    """
    if ac.size == 0:
        return None, 0.0

    averages = ac[:, 0].astype(float)
    coefficients = ac[:, 1].astype(float)
    total = float(coefficients.sum())
    if total == 0:
        return None, 0.0

    return float(np.dot(averages, coefficients) / total), total


def compute_overall_average(
    modules: Sequence[ModuleDefinition],
    grades_by_module: Mapping[str, GradesInput],
    pass_mark: float = PASS_MARK,
) -> OverallResult:
    if not modules:
        raise NoModulesError("No modules to average.")

    names = [m.name for m in modules]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ValueError(f"Duplicate module names: {duplicates}")

    if sum(m.coefficient for m in modules) == 0:
        raise NoModulesError("Module coefficients sum to zero.")

    grades_by_module = grades_by_module or {}
    results: Dict[str, ComputedModuleResult] = {}
    credits_attempted = 0.0
    credits_validated = 0.0
    for module in modules:
        result = compute_module_average(module, grades_by_module.get(module.name))
        results[module.name] = result
        if result.average is not None:
            credits_attempted += module.credits
            if result.average >= pass_mark and not result.is_eliminated:
                credits_validated += module.credits

    any_eliminated = any(r.is_eliminated for r in results.values())

    if all(r.average is not None for r in results.values()):
        ac = np.array([[results[m.name].average, m.coefficient] for m in modules], dtype=float)
        weighted_average, _ = weighted_mean(ac)
    else:
        weighted_average = None

    # eliminations are reported but do not turn a passing average into a fail
    passed = weighted_average is not None and weighted_average >= pass_mark

    logger.debug(
        "Overall average over %d modules: %s (eliminations=%s)",
        len(modules), weighted_average, any_eliminated,
    )
    return OverallResult(
        weighted_average=weighted_average,
        any_eliminated=any_eliminated,
        passed=passed,
        module_results=results,
        credits_attempted=credits_attempted,
        credits_validated=credits_validated,
    )


# ------------------------
# Exam planning
# ------------------------
def _classify_requirement(required: float, target: float) -> ExamRequirement:
    if required <= 0:
        status = "already_met"
    elif required > GRADE_MAX:
        status = "impossible"
    else:
        status = "reachable"
    return ExamRequirement(required=required, target=target, status=status)


def _non_exam_contribution(module: ModuleDefinition, entry: RawGradeEntry) -> Tuple[float, float, List[str]]:
    """Returns (weighted sum of TD/TP grades, exam weight, missing component labels)."""
    weights = weights_for(module.evaluation_components)
    if weights is None:
        raise GradeEngineError(f"Module {module.name!r} has no weighting for its components.")

    current = 0.0
    missing = []
    for component, weight in weights.items():
        if component is EXAM:
            continue
        value = sanitize_grade(entry.get(component))
        if value is None:
            missing.append(component.value)
        else:
            current += value * weight
    return current, weights.get(EXAM, 0.0), missing


def required_exam_grade(
    module: ModuleDefinition,
    grades: GradesInput,
    pass_mark: float = PASS_MARK,
) -> ExamRequirement:
    """
    Minimum exam grade to pass a single module.

    The target is the pass mark, or the elimination threshold when higher.
    """
    if not module.has(EXAM):
        raise GradeEngineError(f"Module {module.name!r} has no exam.")

    current, exam_weight, missing = _non_exam_contribution(module, _as_entry(grades))
    if missing:
        raise GradeEngineError(f"Enter the {', '.join(missing)} grade(s) for {module.name!r} first.")

    target = max(pass_mark, module.elimination_threshold or 0.0)
    required = (target - current) / exam_weight
    return _classify_requirement(required, target)


def required_exam_average(
    modules: Sequence[ModuleDefinition],
    grades_by_module: Mapping[str, GradesInput],
    target: float,
) -> ExamRequirement:
    """
    Uniform exam average needed in every remaining exam to reach `target`
    as the overall average, given the TD/TP grades already entered.
    """
    if not GRADE_MIN <= target <= GRADE_MAX:
        raise ValueError(f"Target average must be between {GRADE_MIN:g} and {GRADE_MAX:g} (got {target}).")
    if not modules:
        raise NoModulesError("No modules to plan for.")

    grades_by_module = grades_by_module or {}
    current_weighted_sum = 0.0
    coefficient_sum = 0.0
    exam_weight_sum = 0.0
    missing = []

    for module in modules:
        if module.coefficient <= 0:
            continue
        current, exam_weight, module_missing = _non_exam_contribution(
            module, _as_entry(grades_by_module.get(module.name))
        )
        if module_missing:
            missing.append(module.name)
            continue
        current_weighted_sum += current * module.coefficient
        coefficient_sum += module.coefficient
        exam_weight_sum += exam_weight * module.coefficient

    if missing:
        raise GradeEngineError(f"Missing TD/TP grades for: {', '.join(missing)}")
    if exam_weight_sum <= 0:
        raise GradeEngineError("No modules with a weighted exam.")

    required = (target * coefficient_sum - current_weighted_sum) / exam_weight_sum
    logger.debug("Exam average needed for target %.2f: %.4f", target, required)
    return _classify_requirement(required, target)


# ------------------------
# Display helpers
# ------------------------
def round_2dp_half_up(x: float) -> float:
    return float(Decimal(str(x)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def format_grade(x: Optional[float]) -> str:
    if x is None:
        return "--.--"
    return f"{round_2dp_half_up(x):.2f}"


def semester_status(result: OverallResult) -> str:
    if result.weighted_average is None:
        return "Incomplete"
    if result.passed:
        return "Validated (with eliminations)" if result.any_eliminated else "Validated"
    return "Not Validated"
