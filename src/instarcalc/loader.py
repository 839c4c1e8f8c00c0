import logging
import pathlib
import typing

import pandas as pd
from stairval.notepad import Notepad

LOGGER = logging.getLogger(__name__)

DEFAULT_OUTPUT_SUFFIX = "_with_instars.xlsx"
OUTPUT_SHEET_NAME = "instars"


def load_specimen_table(
    path: typing.Union[str, pathlib.Path], sheet_name: typing.Optional[str] = None
) -> pd.DataFrame:
    """
    Read specimen measurements into a DataFrame:
      - .csv files via pandas.read_csv, anything else as an Excel workbook
      - first row = header, first worksheet unless ``sheet_name`` is given
      - header cells are stripped of surrounding whitespace; case is kept
        because measurement codes such as 'LMe' are case-sensitive
    """
    path = pathlib.Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Input table not found: {path}")

    if path.suffix.lower() == ".csv":
        df = pd.read_csv(path)
    else:
        df = pd.read_excel(path, sheet_name=sheet_name or 0, header=0, engine="openpyxl")

    df.columns = [str(column).strip() for column in df.columns]
    LOGGER.debug(f"Loaded {len(df)} rows with columns {list(df.columns)} from {path}")
    return df


def default_output_path(input_path: typing.Union[str, pathlib.Path]) -> pathlib.Path:
    # data.xlsx -> data_with_instars.xlsx, next to the input
    input_path = pathlib.Path(input_path)
    return input_path.with_name(input_path.stem + DEFAULT_OUTPUT_SUFFIX)


def write_enriched_table(
    df: pd.DataFrame,
    path: typing.Union[str, pathlib.Path],
    notepad: typing.Optional[Notepad] = None,
) -> bool:
    """
    Write ``df`` to a single-sheet Excel workbook without the index column.

    Export failures are logged and recorded on ``notepad`` as warnings rather
    than raised, since the in-memory result is still usable. Returns True if
    the file was written.
    """
    path = pathlib.Path(path)
    try:
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name=OUTPUT_SHEET_NAME, index=False)
    except Exception as e:
        message = f"Error during export to {path}: {e}"
        LOGGER.warning(message)
        if notepad is not None:
            notepad.add_warning(message)
        return False
    LOGGER.info(f"File successfully exported: {path}")
    return True
