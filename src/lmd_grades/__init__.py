from .backend_logic import (
    GradeEngineError,
    NoModulesError,
    compute_module_average,
    compute_overall_average,
    format_grade,
    required_exam_average,
    required_exam_grade,
    sanitize_grade,
    semester_status,
)
from .models import (
    ComputedModuleResult,
    EvaluationComponent,
    ExamRequirement,
    ModuleDefinition,
    OverallResult,
    RawGradeEntry,
)

__version__ = "0.1.0"
