"""
Reference size ranges.

Defines the ReferenceInterval dataclass, the validated ReferenceTable that the
classifier reads from, the canonical Richardi et al. (2013) ranges for
Chironomidae larvae, and loading of reference tables from CSV or Excel files.

Measurement codes:
  VL  : ventral length of the head capsule
  LA  : length of the antennae
  LM  : length of the mandibles
  LMe : length of the mentum
  LVP : length of the ventromental plates
"""

import logging
import math
import pathlib
import typing

from dataclasses import dataclass

import pandas as pd

from .scoring import ROMAN_NUMERALS, rank_of

LOGGER = logging.getLogger(__name__)

MEASUREMENT_CODES: tuple[str, ...] = ("VL", "LA", "LM", "LMe", "LVP")

# Columns of a reference table file (header matching ignores case and spaces)
REFERENCE_COLUMNS = ("Code", "Instar", "Min", "Max")


@dataclass(frozen=True)
class ReferenceInterval:
    """
    Published size range of one measurement for one instar.

    Attributes:
        code: Measurement code (e.g. 'VL').
        instar: Roman numeral instar label ('I'..'X').
        minimum: Smallest value observed for the instar (inclusive).
        maximum: Largest value observed for the instar (inclusive).
    """

    code: str
    instar: str
    minimum: float
    maximum: float

    def __post_init__(self):
        if not isinstance(self.code, str) or not self.code.strip():
            raise ValueError(f"Invalid measurement code: {self.code!r}")
        if self.instar not in ROMAN_NUMERALS:
            raise ValueError(f"Invalid instar numeral {self.instar!r} for {self.code}, expected one of {ROMAN_NUMERALS}")
        for bound in (self.minimum, self.maximum):
            if isinstance(bound, bool) or not isinstance(bound, (int, float)) or not math.isfinite(bound):
                raise ValueError(f"Invalid bound {bound!r} for {self.code}/{self.instar}")
        if self.minimum > self.maximum:
            raise ValueError(
                f"Range for {self.code}/{self.instar} has min {self.minimum!r} above max {self.maximum!r}"
            )

    @property
    def rank(self) -> int:
        return rank_of(self.instar)

    def contains(self, value: float) -> bool:
        return self.minimum <= value <= self.maximum


class ReferenceTable:
    """
    Immutable set of reference intervals, grouped per measurement code and
    sorted by instar rank.

    Validation happens on construction: per code the instars must run I, II, ...
    without duplicates or holes, and the ranges, in rank order, must not overlap or run backwards.
    Neighbouring ranges may touch (max of one == min of the next).
    """

    def __init__(self, intervals: typing.Iterable[ReferenceInterval]):
        grouped: dict[str, list[ReferenceInterval]] = {}
        for interval in intervals:
            grouped.setdefault(interval.code, []).append(interval)
        if not grouped:
            raise ValueError("Reference table has no intervals")

        self._by_code: dict[str, tuple[ReferenceInterval, ...]] = {}
        for code, rows in grouped.items():
            rows.sort(key=lambda interval: interval.rank)
            ranks = [row.rank for row in rows]
            if len(set(ranks)) != len(ranks):
                raise ValueError(f"Code {code!r} lists the same instar more than once")
            if ranks != list(range(1, len(ranks) + 1)):
                raise ValueError(f"Code {code!r} must list consecutive instars starting at I, got {ranks}")
            for current, following in zip(rows, rows[1:]):
                if current.maximum > following.minimum:
                    raise ValueError(
                        f"Code {code!r}: instar {current.instar} ({current.minimum}-{current.maximum}) "
                        f"overlaps or follows instar {following.instar} ({following.minimum}-{following.maximum})"
                    )
            self._by_code[code] = tuple(rows)

    @classmethod
    def from_records(
        cls, records: typing.Iterable[tuple[str, str, float, float]]
    ) -> "ReferenceTable":
        return cls(ReferenceInterval(code, instar, minimum, maximum) for code, instar, minimum, maximum in records)

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "ReferenceTable":
        """
        Build a table from a DataFrame with Code/Instar/Min/Max columns.
        Header matching is case-insensitive and ignores surrounding whitespace.
        """
        lookup = {str(column).strip().lower(): column for column in df.columns}
        missing = [name for name in REFERENCE_COLUMNS if name.lower() not in lookup]
        if missing:
            raise ValueError(f"Reference table missing required columns: {missing}")
        code_col, instar_col, min_col, max_col = (lookup[name.lower()] for name in REFERENCE_COLUMNS)

        intervals: list[ReferenceInterval] = []
        for index, row in df.iterrows():
            try:
                intervals.append(
                    ReferenceInterval(
                        code=str(row[code_col]).strip(),
                        instar=str(row[instar_col]).strip().upper(),
                        minimum=float(row[min_col]),
                        maximum=float(row[max_col]),
                    )
                )
            except (TypeError, ValueError) as e:
                raise ValueError(f"Reference table row {index}: {e}") from e
        return cls(intervals)

    @property
    def codes(self) -> tuple[str, ...]:
        return tuple(self._by_code)

    @property
    def ranks(self) -> tuple[str, ...]:
        """Every instar label used by any code, in rank order."""
        used = {row.rank for rows in self._by_code.values() for row in rows}
        return tuple(ROMAN_NUMERALS[rank - 1] for rank in sorted(used))

    def intervals_for(self, code: str) -> tuple[ReferenceInterval, ...]:
        try:
            return self._by_code[code]
        except KeyError:
            raise KeyError(f"No reference ranges for measurement code {code!r}") from None

    def __contains__(self, code: object) -> bool:
        return code in self._by_code

    def __iter__(self) -> typing.Iterator[ReferenceInterval]:
        for rows in self._by_code.values():
            yield from rows

    def __len__(self) -> int:
        return sum(len(rows) for rows in self._by_code.values())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ReferenceTable):
            return NotImplemented
        return self._by_code == other._by_code

    def __hash__(self) -> int:
        return hash(tuple(self))

    def __repr__(self) -> str:
        return f"ReferenceTable(codes={list(self.codes)!r}, intervals={len(self)})"

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [(row.code, row.instar, row.minimum, row.maximum) for row in self],
            columns=list(REFERENCE_COLUMNS),
        )


# Richardi et al. (2013), head capsule and mouthpart ranges per instar
RICHARDI_2013 = ReferenceTable.from_records(
    [
        ("VL", "I", 61, 66),
        ("VL", "II", 90, 112),
        ("VL", "III", 159, 192),
        ("VL", "IV", 260, 340),
        ("LA", "I", 37, 44),
        ("LA", "II", 55, 65),
        ("LA", "III", 92, 112),
        ("LA", "IV", 135, 220),
        ("LM", "I", 44, 51),
        ("LM", "II", 75, 85),
        ("LM", "III", 119, 145),
        ("LM", "IV", 190, 265),
        ("LMe", "I", 35, 40),
        ("LMe", "II", 50, 60),
        ("LMe", "III", 92, 112),
        ("LMe", "IV", 167, 220),
        ("LVP", "I", 28, 33),
        ("LVP", "II", 51, 58),
        ("LVP", "III", 92, 124),
        ("LVP", "IV", 167, 235),
    ]
)


def load_reference_table(path: typing.Union[str, pathlib.Path]) -> ReferenceTable:
    """
    Read a reference table from a .csv file or an Excel workbook (first sheet).

    Raises FileNotFoundError if the file does not exist and ValueError if the
    table is malformed.
    """
    path = pathlib.Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Reference table not found: {path}")
    if path.suffix.lower() == ".csv":
        df = pd.read_csv(path)
    else:
        df = pd.read_excel(path, sheet_name=0, engine="openpyxl")
    table = ReferenceTable.from_frame(df)
    LOGGER.info(f"Loaded {len(table)} reference ranges for {len(table.codes)} codes from {path}")
    return table
