import io
import logging
import re
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

import pandas as pd

from .models import EvaluationComponent, ModuleDefinition, RawGradeEntry, component_set

logger = logging.getLogger(__name__)

# ------------------------
# CSV helpers
# ------------------------

COLUMN_ALIASES = {
    "module": "name",
    "matiere": "name",
    "matière": "name",
    "coef": "coefficient",
    "credit": "credits",
    "evaluations": "components",
    "note_eliminatoire": "elimination_threshold",
    "noteeliminatoire": "elimination_threshold",
    "threshold": "elimination_threshold",
    "semestre": "semester",
    "examen": "exam",
}

CATALOG_COLUMNS = ["name", "coefficient", "credits", "components", "elimination_threshold", "semester", "unit"]
GRADE_COLUMNS = ["name", "td", "tp", "exam"]

_COMPONENT_SEPARATORS = re.compile(r"[;,|+\s]+")


def _normalise_cols(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    df.columns = [str(c).strip().lower() for c in df.columns]
    renames = {c: COLUMN_ALIASES[c] for c in df.columns if c in COLUMN_ALIASES and COLUMN_ALIASES[c] not in df.columns}
    return df.rename(columns=renames)


def read_csv_upload(uploaded_file) -> pd.DataFrame:
    df = pd.read_csv(uploaded_file, dtype=str, keep_default_na=False, na_values=[""])
    return _normalise_cols(df)


def _require(df: pd.DataFrame, required: Sequence[str], expected: str) -> None:
    missing = set(required) - set(df.columns)
    if missing:
        raise ValueError(f"Missing columns: {sorted(missing)}. Expected: {expected}.")


def _number(value, default: Optional[float]) -> Optional[float]:
    if value is None or pd.isna(value) or str(value).strip() == "":
        return default
    return float(str(value).strip().replace(",", "."))


def _text(value) -> str:
    if value is None or pd.isna(value):
        return ""
    return str(value).strip()


# ------------------------
# Module catalog
# ------------------------

def validate_catalog_csv(df: pd.DataFrame) -> pd.DataFrame:
    _require(df, ["name", "components"], "Name, Components (Coefficient, Credits, Elimination_Threshold, Semester, Unit optional)")
    out = df.copy()
    for col in CATALOG_COLUMNS:
        if col not in out.columns:
            out[col] = None
    return out[CATALOG_COLUMNS]


def parse_components(value) -> List[EvaluationComponent]:
    labels = [part for part in _COMPONENT_SEPARATORS.split(_text(value)) if part]
    components = []
    for label in labels:
        try:
            components.append(EvaluationComponent.parse(label))
        except ValueError:
            logger.warning("Ignoring unknown evaluation component %r", label)
    return components


def parse_catalog(df: pd.DataFrame) -> List[ModuleDefinition]:
    modules = []
    for idx, row in df.iterrows():
        name = _text(row.get("name"))
        components = parse_components(row.get("components"))
        if not name or not components:
            logger.warning("Skipping catalog row %s: missing name or evaluation components", idx)
            continue
        try:
            module = ModuleDefinition(
                name=name,
                coefficient=_number(row.get("coefficient"), 1.0),
                credits=_number(row.get("credits"), 0.0),
                evaluation_components=component_set(components),
                elimination_threshold=_number(row.get("elimination_threshold"), None),
                semester=_text(row.get("semester")),
                unit=_text(row.get("unit")),
            )
        except ValueError as e:
            raise ValueError(f"Row {idx} ({name}): {e}") from e
        modules.append(module)
    return modules


def load_catalog(path) -> List[ModuleDefinition]:
    with open(Path(path), encoding="utf-8") as f:
        return parse_catalog(validate_catalog_csv(read_csv_upload(f)))


def semesters(modules: Sequence[ModuleDefinition]) -> List[str]:
    seen: Dict[str, None] = {}
    for m in modules:
        seen.setdefault(m.semester, None)
    return list(seen)


def modules_for_semester(modules: Sequence[ModuleDefinition], semester: str) -> List[ModuleDefinition]:
    return [m for m in modules if m.semester == semester]


# ------------------------
# Grade sheets
# ------------------------

def validate_grades_csv(df: pd.DataFrame) -> pd.DataFrame:
    _require(df, ["name"], "Name (TD, TP, Exam optional)")
    out = df.copy()
    for col in GRADE_COLUMNS:
        if col not in out.columns:
            out[col] = None
    return out[GRADE_COLUMNS]


def parse_grades(df: pd.DataFrame) -> Dict[str, RawGradeEntry]:
    """
    Raw values are kept as typed (strings); sanitization happens when
    averages are computed.
    """
    grades = {}
    for _, row in df.iterrows():
        name = _text(row.get("name"))
        if not name:
            continue
        grades[name] = RawGradeEntry(
            td=_text(row.get("td")) or None,
            tp=_text(row.get("tp")) or None,
            exam=_text(row.get("exam")) or None,
        )
    return grades


def frame_to_grades(df: pd.DataFrame) -> Dict[str, RawGradeEntry]:
    """Grade sheet as edited in the UI (Name, TD, TP, Exam columns)."""
    return parse_grades(validate_grades_csv(_normalise_cols(df)))


def grades_to_frame(modules: Sequence[ModuleDefinition], grades: Mapping[str, RawGradeEntry]) -> pd.DataFrame:
    rows = []
    for m in modules:
        entry = grades.get(m.name) or RawGradeEntry()
        rows.append({
            "Name": m.name,
            "TD": _text(entry.td) if m.has(EvaluationComponent.TD) else "",
            "TP": _text(entry.tp) if m.has(EvaluationComponent.TP) else "",
            "Exam": _text(entry.exam) if m.has(EvaluationComponent.EXAM) else "",
        })
    return pd.DataFrame(rows, columns=["Name", "TD", "TP", "Exam"])


def grades_to_csv(modules: Sequence[ModuleDefinition], grades: Mapping[str, RawGradeEntry]) -> str:
    buf = io.StringIO()
    grades_to_frame(modules, grades).to_csv(buf, index=False)
    return buf.getvalue()
