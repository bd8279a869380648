import pandas as pd
import streamlit as st

from lmd_grades.backend_logic import *
from lmd_grades.config import configure_logging, get_settings
from lmd_grades.io_csv import *

configure_logging()
settings = get_settings()

# ------------------------
# Streamlit UI
# ------------------------

st.set_page_config(
    page_title="LMD Grade Calculator | Module & Semester Averages",
    page_icon="🎓",
    layout="wide",
)

st.title("🎓 LMD Grade Calculator")
st.write(
    "Compute module averages from TD, TP and exam grades, then the coefficient-weighted "
    "semester average on the 20-point scale. Elimination thresholds are checked per module."
)

REQUIREMENT_MESSAGES = {
    "already_met": "You already reach the target without the exam.",
    "impossible": "The target cannot be reached with the current grades.",
}

# ------------------------
# Catalog
# ------------------------

st.subheader("1. Choose your program")

catalog_csv = st.file_uploader(
    "Optionally upload a module catalog CSV (Name, Components, Coefficient, Credits, Elimination_Threshold, Semester)",
    type=["csv"],
    key="catalog_csv",
)

catalog = None
if catalog_csv is not None:
    try:
        catalog = parse_catalog(validate_catalog_csv(read_csv_upload(catalog_csv)))
    except ValueError as e:
        st.error(f"Catalog CSV error: {e}")
if not catalog:
    catalog = load_catalog(settings.sample_catalog)

semester_options = semesters(catalog)
semester = st.selectbox("Program / semester", semester_options, index=0)
modules = modules_for_semester(catalog, semester)

if not modules:
    st.warning("No modules found for this selection.")
    st.stop()

# ------------------------
# Grade input form
# ------------------------

st.subheader("2. Enter your grades")

grades_csv = st.file_uploader(
    "Optionally load a saved grade sheet CSV (Name, TD, TP, Exam)",
    type=["csv"],
    key="grades_csv",
)

seed_grades = {}
if grades_csv is not None:
    try:
        seed_grades = parse_grades(validate_grades_csv(read_csv_upload(grades_csv)))
    except ValueError as e:
        st.error(f"Grade sheet error: {e}")

with st.form("grades_form"):
    st.dataframe(
        pd.DataFrame(
            [
                {
                    "Module": m.name,
                    "Unit": m.unit,
                    "Coef": m.coefficient,
                    "Credits": m.credits,
                    "Evaluations": " + ".join(c.value for c in EvaluationComponent if m.has(c)),
                    "Elim": m.elimination_threshold,
                }
                for m in modules
            ]
        ),
        use_container_width=True,
        hide_index=True,
    )

    st.markdown("Grades are out of 20. Leave a cell empty if the grade is not known yet; cells for evaluations a module does not have are ignored.")

    edited_df = st.data_editor(
        grades_to_frame(modules, seed_grades),
        key=f"grades_df_{semester}",
        num_rows="fixed",
        use_container_width=True,
        disabled=["Name"],
        column_config={
            "TD": st.column_config.TextColumn("TD"),
            "TP": st.column_config.TextColumn("TP"),
            "Exam": st.column_config.TextColumn("Exam"),
        },
    )

    submitted = st.form_submit_button("Calculate", type="primary")

if submitted:
    grades = frame_to_grades(edited_df)
    try:
        result = compute_overall_average(modules, grades, pass_mark=settings.pass_mark)
    except NoModulesError as e:
        st.error(str(e))
    else:
        st.session_state["semester"] = semester
        st.session_state["grades"] = grades
        st.session_state["result"] = result

# ------------------------
# Results
# ------------------------

if st.session_state.get("semester") == semester and "result" in st.session_state:
    result = st.session_state["result"]
    grades = st.session_state["grades"]

    st.markdown("---")
    st.subheader("Semester result")

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("General average", format_grade(result.weighted_average))
    with col2:
        st.metric("Status", semester_status(result))
    with col3:
        st.metric("Credits attempted", f"{result.credits_attempted:g}")
    with col4:
        st.metric("Credits validated", f"{result.credits_validated:g}")

    if not result.is_complete:
        st.warning("Enter all required grades for every module to get the general average.")
    elif result.passed and result.any_eliminated:
        st.warning("The average passes, but at least one module is below its elimination threshold.")
    elif result.passed:
        st.success("✅ Semester validated.")
    else:
        st.error("❌ Semester not validated.")

    st.dataframe(
        pd.DataFrame(
            [
                {
                    "Module": m.name,
                    "Average": format_grade(result.module_results[m.name].average),
                    "Eliminated": "Yes" if result.module_results[m.name].is_eliminated else "",
                }
                for m in modules
            ]
        ),
        use_container_width=True,
        hide_index=True,
    )

    st.download_button(
        "Download grade sheet (CSV)",
        data=grades_to_csv(modules, grades),
        file_name=f"grades_{semester}.csv".replace(" ", "_"),
        mime="text/csv",
    )

    # ------------------------------
    # Exam planner
    # ------------------------------
    st.markdown("---")
    st.subheader("Exam planner")

    exam_modules = [m for m in modules if m.has(EvaluationComponent.EXAM)]
    plan_col1, plan_col2 = st.columns(2)

    with plan_col1:
        st.markdown("**Minimum exam grade for one module**")
        if exam_modules:
            module_name = st.selectbox("Module", [m.name for m in exam_modules], key="planner_module")
            module = next(m for m in exam_modules if m.name == module_name)
            try:
                req = required_exam_grade(module, grades.get(module.name), pass_mark=settings.pass_mark)
            except GradeEngineError as e:
                st.info(str(e))
            else:
                if req.status == "reachable":
                    st.metric(f"Exam grade needed for {req.target:g}", format_grade(req.required))
                else:
                    st.info(REQUIREMENT_MESSAGES[req.status])
        else:
            st.info("No module in this semester has an exam.")

    with plan_col2:
        st.markdown("**What if: target semester average**")
        target = st.slider(
            "Target average",
            min_value=0.0,
            max_value=20.0,
            step=0.25,
            value=float(settings.default_target),
            key="planner_target",
        )
        try:
            req = required_exam_average(modules, grades, target)
        except GradeEngineError as e:
            st.info(str(e))
        else:
            if req.status == "reachable":
                st.metric("Average needed in the remaining exams", format_grade(req.required))
            else:
                st.info(REQUIREMENT_MESSAGES[req.status])
else:
    st.info("Fill in your grades and click **Calculate** to get started.")


st.header("FAQ")

st.subheader("How is a module average calculated?")
st.write(
    "Each module is graded by a combination of TD, TP and a final exam. With all three, "
    "TD and TP count for 20% each and the exam for 60%. With TD or TP plus an exam, the "
    "continuous assessment counts for 40% and the exam for 60%. A single evaluation counts for 100%."
)

st.subheader("How is the semester average calculated?")
st.write(
    "The semester average is the mean of the module averages weighted by their coefficients. "
    "It is only shown once every module has all its grades."
)

st.subheader("What is an elimination threshold?")
st.write(
    "Some modules set a minimum average (note éliminatoire). A module below it is flagged as "
    "eliminated and its credits are not validated, even when the semester average is 10 or more."
)

st.subheader("What data do you collect or store?")
st.write(
    "Nothing is stored. Grades stay in your browser session; use the download button to keep a copy "
    "and load it again later."
)
