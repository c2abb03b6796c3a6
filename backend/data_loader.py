import os
import sys

import pandas as pd

from normalizer import normalize_course
from validators import InvalidInputError

COURSES_FILE = "courses.csv"

# Columns the catalog export may omit; filled so every row normalizes the same way.
_OPTIONAL_COLUMNS = [
    "description",
    "instructor_name",
    "category",
    "difficulty",
    "mode",
    "price",
    "duration",
    "average_rating",
    "enrollment_count",
    "created_at",
    "enrollment_deadline",
    "start_date",
    "end_date",
    "installment_enabled",
    "installment_upfront",
    "application_fee",
]

_BOOL_TRUTHY = {"true", "1", "yes", "y"}


def _safe_bool_col(df: pd.DataFrame, col: str) -> pd.DataFrame:
    """Normalize a boolean column to Python bool regardless of export format.

    Handles: Python bool, int/float (1/0), and string variants
    (TRUE/FALSE, true/false, 1/0, yes/no, y/n). NaN → False.
    """
    def _coerce(x):
        if pd.isna(x):
            return False
        if isinstance(x, bool):
            return x
        if isinstance(x, (int, float)):
            return bool(x)
        return str(x).strip().lower() in _BOOL_TRUTHY

    if col in df.columns:
        df[col] = df[col].apply(_coerce)
    return df


def resolve_courses_path(data_path: str) -> str:
    """DATA_PATH may point at the data directory or straight at the CSV."""
    if os.path.isdir(data_path):
        return os.path.join(data_path, COURSES_FILE)
    return data_path


def _row_to_course(row: dict) -> dict:
    record = {k: v for k, v in row.items() if k != "installment_upfront"}
    upfront = row.get("installment_upfront")
    record["installment_plan"] = None if pd.isna(upfront) else {"upfront": upfront}
    return normalize_course(record)


def load_data(data_path: str) -> dict:
    """Load and normalize the course catalog CSV. Raises on file/schema errors."""
    csv_path = resolve_courses_path(data_path)
    if not os.path.exists(csv_path):
        raise FileNotFoundError(csv_path)

    courses_df = pd.read_csv(csv_path, dtype={"id": str})
    if "id" not in courses_df.columns:
        raise InvalidInputError(f"{csv_path} has no 'id' column.")
    for col in _OPTIONAL_COLUMNS:
        if col not in courses_df.columns:
            courses_df[col] = None
    if "title" not in courses_df.columns:
        courses_df["title"] = ""

    courses_df["id"] = courses_df["id"].fillna("").astype(str).str.strip()
    courses_df["title"] = courses_df["title"].fillna("").astype(str).str.strip()
    courses_df = _safe_bool_col(courses_df, "installment_enabled")

    # ── Startup data integrity checks ──────────────────────────────────────
    missing_id = courses_df["id"] == ""
    if missing_id.any():
        print(f"[WARN] Dropping {int(missing_id.sum())} course row(s) with no id in {csv_path}", file=sys.stderr)
        courses_df = courses_df[~missing_id]

    duplicated = courses_df["id"].duplicated(keep="first")
    if duplicated.any():
        dupes = sorted(set(courses_df.loc[duplicated, "id"]))
        print(f"[WARN] {len(dupes)} duplicate course id(s), keeping first occurrence: {dupes}", file=sys.stderr)
        courses_df = courses_df[~duplicated]

    untitled = courses_df.loc[courses_df["title"] == "", "id"].tolist()
    if untitled:
        print(f"[WARN] {len(untitled)} course(s) have no title: {sorted(untitled)}")

    courses_df = courses_df.reset_index(drop=True)
    # object dtype so missing cells come through as None instead of NaN
    records = courses_df.astype(object).where(pd.notna(courses_df), None).to_dict(orient="records")
    courses = [_row_to_course(row) for row in records]

    return {
        "courses_df": courses_df,
        "courses": courses,
        "course_index": {c["id"]: c for c in courses},
        "catalog_ids": set(c["id"] for c in courses),
    }
