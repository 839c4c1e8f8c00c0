import pandas as pd
import pytest
from stairval.notepad import create_notepad

from instarcalc.reference import RICHARDI_2013, ReferenceTable


@pytest.fixture(scope="session")
def richardi() -> ReferenceTable:
    """
    The published Richardi et al. (2013) ranges.
    """
    return RICHARDI_2013


@pytest.fixture
def notepad():
    return create_notepad("instars")


@pytest.fixture
def specimens() -> pd.DataFrame:
    """
    Three larvae: one squarely in instar I, one in the gaps between II and III,
    and one with no usable measurements at all.
    """
    return pd.DataFrame(
        {
            "ID": ["L1", "L2", "L3"],
            "VL": [63.0, 130.0, None],
            "LA": [40.0, 80.0, None],
            "LM": [47.0, 100.0, None],
            "LMe": [37.0, 70.0, None],
            "LVP": [30.0, 80.0, None],
            "Site": ["A", "B", "C"],
        }
    )


@pytest.fixture
def specimen_workbook(tmp_path, specimens) -> str:
    path = tmp_path / "larvae.xlsx"
    with pd.ExcelWriter(path, engine="openpyxl") as w:
        specimens.to_excel(w, sheet_name="larvae", index=False)
    return str(path)
