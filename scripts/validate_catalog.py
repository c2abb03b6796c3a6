"""
Publish gate validator for the course catalog CSV.

Checks data-quality rules that must pass before a catalog export is dropped
into DATA_PATH. Designed to be importable for tests and runnable as a
standalone CLI.

Usage:
    python scripts/validate_catalog.py
    python scripts/validate_catalog.py --path path/to/courses.csv
"""

import argparse
import os
import sys

try:
    import pandas as pd
except ImportError as e:
    sys.exit(f"Missing dependency: {e}. Run: pip install pandas")


REQUIRED_COLUMNS = ("id", "title", "category", "difficulty", "mode", "price", "duration")
KNOWN_DIFFICULTIES = {"Beginner", "Intermediate", "Advanced"}
KNOWN_MODES = {"Online", "Offline", "Hybrid"}


# ── Validation result ─────────────────────────────────────────────────────────

class ValidationResult:
    """Collects errors and warnings for a single catalog validation run."""

    def __init__(self, source: str):
        self.source = source
        self.errors: list[str] = []
        self.warnings: list[str] = []

    def error(self, msg: str) -> None:
        self.errors.append(msg)

    def warn(self, msg: str) -> None:
        self.warnings.append(msg)

    @property
    def passed(self) -> bool:
        return len(self.errors) == 0

    def summary(self) -> str:
        status = "PASS" if self.passed else "FAIL"
        lines = [f"[{status}] Catalog '{self.source}'"]
        for e in self.errors:
            lines.append(f"  [ERROR] {e}")
        for w in self.warnings:
            lines.append(f"  [WARN]  {w}")
        if self.passed and not self.warnings:
            lines.append("  All checks passed.")
        return "\n".join(lines)


# ── Individual checks ─────────────────────────────────────────────────────────

def check_required_columns(df: pd.DataFrame, result: ValidationResult) -> bool:
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        result.error(f"Missing required column(s): {missing}")
        return False
    return True


def check_ids(df: pd.DataFrame, result: ValidationResult) -> None:
    """Every row needs an id, and ids must be unique."""
    ids = df["id"].fillna("").astype(str).str.strip()
    blank = int((ids == "").sum())
    if blank:
        result.error(f"{blank} row(s) have no id.")
    dupes = sorted(set(ids[ids.duplicated(keep=False) & (ids != "")]))
    if dupes:
        result.error(f"Duplicate course id(s): {dupes}")


def check_enums(df: pd.DataFrame, result: ValidationResult) -> None:
    for _, row in df.iterrows():
        cid = str(row.get("id", "") or "").strip()
        difficulty = str(row.get("difficulty", "") or "").strip()
        if difficulty and difficulty not in KNOWN_DIFFICULTIES:
            result.error(f"{cid}: unknown difficulty {difficulty!r}.")
        raw_mode = row.get("mode")
        modes = [] if pd.isna(raw_mode) else [m.strip() for m in str(raw_mode).split("|") if m.strip()]
        if not modes:
            result.warn(f"{cid}: no delivery mode; course will never match a mode filter.")
        for mode in modes:
            if mode not in KNOWN_MODES:
                result.error(f"{cid}: unknown mode {mode!r}.")


def check_numbers(df: pd.DataFrame, result: ValidationResult) -> None:
    """price >= 0, duration a positive integer, average_rating within 0..5."""
    price = pd.to_numeric(df["price"], errors="coerce")
    duration = pd.to_numeric(df["duration"], errors="coerce")
    for cid in df.loc[price.isna() | (price < 0), "id"]:
        result.error(f"{cid}: price must be a non-negative number.")
    bad_duration = duration.isna() | (duration < 1) | (duration % 1 != 0)
    for cid in df.loc[bad_duration, "id"]:
        result.error(f"{cid}: duration must be a positive whole number of weeks.")
    if "average_rating" in df.columns:
        rating = pd.to_numeric(df["average_rating"], errors="coerce")
        for cid in df.loc[rating.notna() & ((rating < 0) | (rating > 5)), "id"]:
            result.error(f"{cid}: average_rating must be between 0 and 5.")


def check_dates(df: pd.DataFrame, result: ValidationResult) -> None:
    """Cohort end must not precede start; a deadline after the start is suspicious."""
    def _col(name):
        if name not in df.columns:
            return pd.Series([pd.NaT] * len(df), index=df.index)
        return pd.to_datetime(df[name], errors="coerce", utc=True)

    start = _col("start_date")
    end = _col("end_date")
    deadline = _col("enrollment_deadline")
    for cid in df.loc[start.notna() & end.notna() & (end < start), "id"]:
        result.error(f"{cid}: end_date is before start_date.")
    for cid in df.loc[end.notna() & start.isna(), "id"]:
        result.warn(f"{cid}: end_date without start_date is ignored by cohort checks.")
    for cid in df.loc[deadline.notna() & start.notna() & (deadline > start), "id"]:
        result.warn(f"{cid}: enrollment_deadline falls after start_date.")


def check_installments(df: pd.DataFrame, result: ValidationResult) -> None:
    if "installment_enabled" not in df.columns:
        return
    enabled = df["installment_enabled"].astype(str).str.strip().str.lower().isin({"true", "1", "yes", "y"})
    upfront = (
        pd.to_numeric(df["installment_upfront"], errors="coerce")
        if "installment_upfront" in df.columns
        else pd.Series([float("nan")] * len(df), index=df.index)
    )
    for cid in df.loc[enabled & upfront.isna(), "id"]:
        result.warn(f"{cid}: installments enabled but no installment_upfront; only full payment will be offered.")
    for cid in df.loc[upfront.notna() & ((upfront <= 0) | (upfront > 100)), "id"]:
        result.error(f"{cid}: installment_upfront must be within (0, 100].")


def validate_catalog(df: pd.DataFrame, source: str = "courses.csv") -> ValidationResult:
    result = ValidationResult(source)
    if not check_required_columns(df, result):
        return result
    check_ids(df, result)
    check_enums(df, result)
    check_numbers(df, result)
    check_dates(df, result)
    check_installments(df, result)
    return result


def main(argv=None) -> int:
    default_path = os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "data", "courses.csv")
    parser = argparse.ArgumentParser(description="Validate the course catalog CSV before publishing.")
    parser.add_argument("--path", default=default_path, help="Path to courses.csv")
    args = parser.parse_args(argv)

    if not os.path.exists(args.path):
        print(f"[FATAL] Catalog not found: {args.path}", file=sys.stderr)
        return 1
    df = pd.read_csv(args.path, dtype={"id": str})
    result = validate_catalog(df, source=os.path.basename(args.path))
    print(result.summary())
    return 0 if result.passed else 1


if __name__ == "__main__":
    raise SystemExit(main())
