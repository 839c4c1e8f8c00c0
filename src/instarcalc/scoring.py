"""
Instar label <-> score conversion.

Per-measurement labels are averaged on a numeric scale: a single instar maps
to its rank and an intermediate label ("II-III") maps to the midpoint of its
two ranks. The per-specimen mean is rendered back as a label with a separate
banding function that allows a tolerance around each integer rank.
"""

import math
import typing

from dataclasses import dataclass

import pandas as pd

ROMAN_NUMERALS: tuple[str, ...] = ("I", "II", "III", "IV", "V", "VI", "VII", "VIII", "IX", "X")

# separator used by intermediate labels, e.g. "I-II"
RANGE_SEPARATOR = "-"


def rank_of(numeral: str) -> int:
    """Return the 1-based rank of a roman numeral instar ("III" -> 3)."""
    key = str(numeral).strip().upper()
    try:
        return ROMAN_NUMERALS.index(key) + 1
    except ValueError:
        raise ValueError(f"Unknown instar numeral: {numeral!r}")


def numeral_of(rank: int) -> str:
    if not 1 <= rank <= len(ROMAN_NUMERALS):
        raise ValueError(f"Instar rank out of range: {rank!r}")
    return ROMAN_NUMERALS[rank - 1]


def range_label(lower: str, upper: str) -> str:
    return f"{lower}{RANGE_SEPARATOR}{upper}"


def is_missing(value: typing.Any) -> bool:
    # None, NaN, pd.NA and NaT all count as missing
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def to_score(label: typing.Optional[str]) -> typing.Optional[float]:
    """
    Convert an instar label to a numeric score.

    "II" -> 2.0, "II-III" -> 2.5, missing -> None.
    Adjacency of the two ranks in a range label is not re-checked.
    """
    if is_missing(label):
        return None
    parts = str(label).split(RANGE_SEPARATOR)
    ranks = [rank_of(part) for part in parts]
    return sum(ranks) / len(ranks)


@dataclass(frozen=True)
class AggregateBanding:
    """
    Bands used to turn a mean instar score back into a label.

    Attributes:
        edges: Strictly increasing upper band edges (inclusive).
        labels: One label per band, ``len(edges) + 1`` of them; the last band is open-ended.
        floor: Lowest admissible score. Scores below it are rejected.
    """

    edges: tuple[float, ...]
    labels: tuple[str, ...]
    floor: float = 1.0

    def __post_init__(self):
        if len(self.labels) != len(self.edges) + 1:
            raise ValueError(
                f"Banding needs {len(self.edges) + 1} labels for {len(self.edges)} edges, got {len(self.labels)}"
            )
        if any(b <= a for a, b in zip(self.edges, self.edges[1:])):
            raise ValueError(f"Band edges must be strictly increasing: {self.edges!r}")
        if self.edges and self.floor > self.edges[0]:
            raise ValueError(f"Band floor {self.floor!r} lies above the first edge {self.edges[0]!r}")

    @classmethod
    def for_ranks(cls, count: int, tolerance: float = 0.3) -> "AggregateBanding":
        """
        Build a banding for ``count`` instars: each pure instar keeps ``tolerance``
        above its rank, the intermediate label takes the next ``tolerance`` and
        the remainder up to the next rank minus ``tolerance`` goes to the next instar.
        """
        if count < 1:
            raise ValueError(f"Need at least one instar, got {count!r}")
        if not 0 < tolerance < 0.5:
            raise ValueError(f"Tolerance must lie in (0, 0.5), got {tolerance!r}")
        edges: list[float] = []
        labels: list[str] = [numeral_of(1)]
        for rank in range(1, count):
            edges.append(round(rank + tolerance, 10))
            edges.append(round(rank + 2 * tolerance, 10))
            labels.append(range_label(numeral_of(rank), numeral_of(rank + 1)))
            labels.append(numeral_of(rank + 1))
        return cls(edges=tuple(edges), labels=tuple(labels))


DEFAULT_BANDING = AggregateBanding(
    edges=(1.3, 1.6, 2.3, 2.6, 3.3, 3.6),
    labels=("I", "I-II", "II", "II-III", "III", "III-IV", "IV"),
)


def to_label(
    score: typing.Optional[float], banding: AggregateBanding = DEFAULT_BANDING
) -> typing.Optional[str]:
    """
    Render a mean instar score as a label using ``banding``.

    Upper band edges are inclusive: with the default bands 1.3 -> "I",
    1.31 -> "I-II" and anything above 3.6 -> "IV". Missing -> None.
    Scores below ``banding.floor`` cannot come from averaging ranks and raise ValueError.
    """
    if is_missing(score):
        return None
    score = float(score)
    if math.isinf(score) or score < banding.floor:
        raise ValueError(f"Mean instar score {score!r} is outside the banding range")
    for edge, label in zip(banding.edges, banding.labels):
        if score <= edge:
            return label
    return banding.labels[-1]
