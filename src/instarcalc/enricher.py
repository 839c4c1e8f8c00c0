import logging
import typing

import pandas as pd
from stairval.notepad import Notepad, create_notepad

from .classifier import classify
from .reference import MEASUREMENT_CODES, ReferenceTable
from .scoring import AggregateBanding, to_label, to_score

LOGGER = logging.getLogger(__name__)

INSTAR_COLUMN_SUFFIX = "_Instar"
MEAN_SCORE_COLUMN = "Mean_Instar_Numeric"
MEAN_LABEL_COLUMN = "Mean_Instar_Roman"


def instar_column(code: str) -> str:
    return f"{code}{INSTAR_COLUMN_SUFFIX}"


class InstarEnricher:
    """
    Adds instar classifications to a table of specimen measurements.

    Two passes, each usable on its own:
      1) classify_measurements: one `<code>_Instar` column per configured code
      2) aggregate: the per-specimen mean score and its rendered label
    """

    def __init__(
        self,
        table: ReferenceTable,
        codes: typing.Sequence[str] = MEASUREMENT_CODES,
        banding: typing.Optional[AggregateBanding] = None,
    ):
        codes = tuple(codes)
        if not codes:
            raise ValueError("At least one measurement code is required")
        unknown = [code for code in codes if code not in table]
        if unknown:
            raise KeyError(f"No reference ranges for measurement codes: {unknown}")
        self._table = table
        self._codes = codes
        # bands follow the number of instars in the table unless given
        self._banding = banding if banding is not None else AggregateBanding.for_ranks(len(table.ranks))

    @property
    def codes(self) -> tuple[str, ...]:
        return self._codes

    def classify_measurements(self, df: pd.DataFrame, notepad: Notepad) -> pd.DataFrame:
        """
        Return a copy of ``df`` with one instar label column per configured code.

        Non-numeric cells are treated as missing. A code without a column in
        ``df`` gets a single warning and an all-missing label column.
        """
        working = df.copy()
        for code in self._codes:
            column = instar_column(code)
            if code not in working.columns:
                message = f"Measurement column {code!r} not found in data; {column!r} left empty"
                notepad.add_warning(message)
                LOGGER.warning(message)
                working[column] = pd.Series([None] * len(working), index=working.index, dtype=object)
                continue

            values = pd.to_numeric(working[code], errors="coerce")
            working[column] = pd.Series(
                [classify(value, code, self._table) for value in values],
                index=working.index,
                dtype=object,
            )
            LOGGER.info(f"Column {column} successfully created.")
        return working

    def aggregate(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Return a copy of ``df`` with the mean instar score and label per row.
        Expects the label columns written by classify_measurements.
        """
        working = df.copy()
        label_columns = [instar_column(code) for code in self._codes]
        missing = [column for column in label_columns if column not in working.columns]
        if missing:
            raise KeyError(f"Instar label columns missing, run classify_measurements first: {missing}")

        means: list[typing.Optional[float]] = []
        for labels in working[label_columns].itertuples(index=False, name=None):
            scores = [score for score in map(to_score, labels) if score is not None]
            means.append(sum(scores) / len(scores) if scores else None)

        working[MEAN_SCORE_COLUMN] = pd.Series(means, index=working.index, dtype=float)
        working[MEAN_LABEL_COLUMN] = pd.Series(
            [to_label(mean, self._banding) for mean in means],
            index=working.index,
            dtype=object,
        )
        return working

    def enrich(self, df: pd.DataFrame, notepad: typing.Optional[Notepad] = None) -> pd.DataFrame:
        if notepad is None:
            notepad = create_notepad("instars")
        enriched = self.aggregate(self.classify_measurements(df, notepad))
        LOGGER.info("Mean instar calculation completed.")
        return enriched


def enrich(
    rows: pd.DataFrame,
    codes: typing.Sequence[str],
    table: ReferenceTable,
    notepad: typing.Optional[Notepad] = None,
    banding: typing.Optional[AggregateBanding] = None,
) -> pd.DataFrame:
    """Classify every configured measurement of every row and add the per-row mean instar."""
    return InstarEnricher(table, codes, banding).enrich(rows, notepad)
