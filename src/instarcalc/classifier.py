"""
Range classifier: assign one measurement to an instar using reference ranges.
"""

import typing

from .reference import ReferenceTable
from .scoring import is_missing, range_label


def classify(value: typing.Any, code: str, table: ReferenceTable) -> typing.Optional[str]:
    """
    Return the instar label for ``value`` measured as ``code``.

    In priority order:
      - missing or non-numeric value -> None (no lookup)
      - inside exactly one [min, max] range -> that instar (bounds inclusive)
      - below the first range -> lowest instar
      - above the last range -> highest instar
      - in the gap between two neighbouring ranges -> "I-II" style label
      - anything else (a value sitting on the shared edge of touching ranges) -> None

    Raises KeyError if ``table`` has no ranges for ``code``.
    """
    if is_missing(value) or isinstance(value, bool):
        return None
    try:
        value = float(value)
    except (TypeError, ValueError):
        # non-numeric cells count as missing
        return None
    rows = table.intervals_for(code)

    matches = [row for row in rows if row.contains(value)]
    if len(matches) == 1:
        return matches[0].instar
    if value < rows[0].minimum:
        return rows[0].instar
    if value > rows[-1].maximum:
        return rows[-1].instar

    for current, following in zip(rows, rows[1:]):
        if current.maximum < value < following.minimum:
            return range_label(current.instar, following.instar)
    return None
