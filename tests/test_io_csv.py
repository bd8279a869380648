import io

import pandas as pd
import pytest

from lmd_grades.backend_logic import compute_overall_average
from lmd_grades.config import get_settings
from lmd_grades.io_csv import (
    frame_to_grades,
    grades_to_csv,
    grades_to_frame,
    load_catalog,
    modules_for_semester,
    parse_catalog,
    parse_components,
    parse_grades,
    read_csv_upload,
    semesters,
    validate_catalog_csv,
    validate_grades_csv,
)
from lmd_grades.models import EvaluationComponent, RawGradeEntry


def _csv(text: str) -> pd.DataFrame:
    return read_csv_upload(io.StringIO(text))


class TestCatalog:
    def test_parse_with_aliases(self):
        df = _csv(
            "Matiere,Coef,Credit,Evaluations,Note_Eliminatoire,Semestre\n"
            "Analyse 1,4,6,TD;Examen,,S1\n"
            "ASD 1,4,6,TD+TP+Examen,7,S1\n"
        )
        modules = parse_catalog(validate_catalog_csv(df))
        assert [m.name for m in modules] == ["Analyse 1", "ASD 1"]
        assert modules[0].coefficient == 4
        assert modules[0].credits == 6
        assert modules[0].elimination_threshold is None
        assert modules[1].elimination_threshold == 7
        assert modules[1].evaluation_components == frozenset(EvaluationComponent)
        assert modules[0].semester == "S1"

    def test_defaults_for_optional_columns(self):
        modules = parse_catalog(validate_catalog_csv(_csv("Name,Components\nMST,Examen\n")))
        assert modules[0].coefficient == 1.0
        assert modules[0].credits == 0.0
        assert modules[0].semester == ""

    def test_decimal_comma(self):
        modules = parse_catalog(validate_catalog_csv(_csv('Name,Components,Coefficient\nMST,Exam,"1,5"\n')))
        assert modules[0].coefficient == 1.5

    def test_missing_columns(self):
        with pytest.raises(ValueError, match="components"):
            validate_catalog_csv(_csv("Name,Coefficient\nMST,1\n"))

    def test_rows_without_components_are_skipped(self):
        df = _csv("Name,Components\nMST,\nPhysique,Cours\nChimie,TD;Exam\n")
        modules = parse_catalog(validate_catalog_csv(df))
        assert [m.name for m in modules] == ["Chimie"]

    def test_negative_coefficient_reported_with_row(self):
        with pytest.raises(ValueError, match="MST"):
            parse_catalog(validate_catalog_csv(_csv("Name,Components,Coefficient\nMST,Exam,-1\n")))

    @pytest.mark.parametrize(
        "header, value",
        [("Coefficient", "nan"), ("Coefficient", "inf"), ("Credits", "nan"), ("Elimination_Threshold", "nan")],
    )
    def test_non_finite_numbers_rejected(self, header, value):
        df = _csv(f"Name,Components,{header}\nA,Exam,{value}\nB,Exam,1\n")
        with pytest.raises(ValueError, match="non-finite"):
            parse_catalog(validate_catalog_csv(df))

    def test_parse_components(self):
        assert parse_components("TD, TP | examen") == [
            EvaluationComponent.TD,
            EvaluationComponent.TP,
            EvaluationComponent.EXAM,
        ]
        assert parse_components(None) == []

    def test_sample_catalog(self):
        modules = load_catalog(get_settings().sample_catalog)
        labels = semesters(modules)
        assert len(labels) == 2
        first = modules_for_semester(modules, labels[0])
        assert len(first) == 6
        asd = next(m for m in first if m.name.startswith("Algorithmes"))
        assert asd.elimination_threshold == 7
        assert asd.has(EvaluationComponent.TP)


class TestGradeSheets:
    def test_parse_grades(self):
        df = _csv("Name,TD,TP,Examen\nAnalyse 1,12,,9.5\nMST,,,\n")
        grades = parse_grades(validate_grades_csv(df))
        assert grades["Analyse 1"] == RawGradeEntry(td="12", tp=None, exam="9.5")
        assert grades["MST"] == RawGradeEntry()

    def test_grades_missing_name_column(self):
        with pytest.raises(ValueError):
            validate_grades_csv(_csv("TD,TP\n1,2\n"))

    def test_round_trip(self, make_module):
        modules = [make_module("A", ("TD", "Exam")), make_module("B", ("TP",))]
        grades = {"A": RawGradeEntry(td="12.5", exam="14"), "B": RawGradeEntry(tp="16")}
        text = grades_to_csv(modules, grades)
        loaded = parse_grades(validate_grades_csv(_csv(text)))
        assert loaded == grades

    def test_export_blanks_unused_components(self, make_module):
        df = grades_to_frame([make_module("A", ("Exam",))], {"A": RawGradeEntry(td="3", exam="11")})
        assert df.loc[0, "TD"] == ""
        assert df.loc[0, "Exam"] == "11"

    def test_edited_frame_feeds_engine(self, make_module):
        modules = [make_module("A", ("Exam",), coefficient=3), make_module("B", ("Exam",), coefficient=1)]
        edited = pd.DataFrame({"Name": ["A", "B"], "TD": ["", ""], "TP": ["", ""], "Exam": ["12", "8"]})
        result = compute_overall_average(modules, frame_to_grades(edited))
        assert result.weighted_average == 11.0
