import sys
import os

import pytest

# Add backend/ to path so tests can import backend modules directly
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

# Add scripts/ to path so tests can import script modules directly
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "scripts"))

CATALOG_HEADER = (
    "id,title,description,instructor_name,category,difficulty,mode,price,duration,"
    "average_rating,enrollment_count,created_at,enrollment_deadline,start_date,end_date,"
    "installment_enabled,installment_upfront,application_fee"
)


@pytest.fixture
def write_catalog(tmp_path):
    """Write CSV rows (strings, header implied) to tmp_path/courses.csv and return the directory."""
    def _write(*rows, header=CATALOG_HEADER):
        path = tmp_path / "courses.csv"
        path.write_text("\n".join((header,) + rows) + "\n", encoding="utf-8")
        return str(tmp_path)
    return _write
