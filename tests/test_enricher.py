"""
Dataset enrichment: per-measurement instar columns, per-specimen mean score and label.
"""

import pandas as pd
import pytest

from instarcalc.enricher import (
    MEAN_LABEL_COLUMN,
    MEAN_SCORE_COLUMN,
    InstarEnricher,
    enrich,
    instar_column,
)
from instarcalc.reference import MEASUREMENT_CODES, ReferenceTable
from instarcalc.scoring import AggregateBanding

LABEL_COLUMNS = [instar_column(code) for code in MEASUREMENT_CODES]


def test_specimen_squarely_in_first_instar(richardi, specimens):
    enriched = enrich(specimens, MEASUREMENT_CODES, richardi)
    first = enriched.iloc[0]
    assert [first[column] for column in LABEL_COLUMNS] == ["I"] * 5
    assert first[MEAN_SCORE_COLUMN] == 1.0
    assert first[MEAN_LABEL_COLUMN] == "I"


def test_specimen_in_gaps_gets_intermediate_mean(richardi, specimens):
    enriched = enrich(specimens, MEASUREMENT_CODES, richardi)
    second = enriched.iloc[1]
    assert [second[column] for column in LABEL_COLUMNS] == ["II-III"] * 5
    assert second[MEAN_SCORE_COLUMN] == 2.5
    assert second[MEAN_LABEL_COLUMN] == "II-III"


def test_all_missing_measurements_give_missing_mean(richardi, specimens):
    enriched = enrich(specimens, MEASUREMENT_CODES, richardi)
    third = enriched.iloc[2]
    assert all(third[column] is None for column in LABEL_COLUMNS)
    assert pd.isna(third[MEAN_SCORE_COLUMN])
    assert third[MEAN_LABEL_COLUMN] is None


def test_original_columns_and_order_are_preserved(richardi, specimens):
    enriched = enrich(specimens, MEASUREMENT_CODES, richardi)
    assert list(enriched.columns) == list(specimens.columns) + LABEL_COLUMNS + [
        MEAN_SCORE_COLUMN,
        MEAN_LABEL_COLUMN,
    ]
    assert list(enriched["ID"]) == ["L1", "L2", "L3"]
    pd.testing.assert_frame_equal(enriched[specimens.columns], specimens)


def test_input_frame_is_not_modified(richardi, specimens):
    before = specimens.copy()
    enrich(specimens, MEASUREMENT_CODES, richardi)
    pd.testing.assert_frame_equal(specimens, before)


def test_missing_column_warns_once_and_aggregates_the_rest(richardi, specimens, notepad):
    without_lvp = specimens.drop(columns=["LVP"])
    enriched = enrich(without_lvp, MEASUREMENT_CODES, richardi, notepad)

    warnings = [w.message for w in notepad.warnings()]
    assert len(warnings) == 1
    assert "LVP" in warnings[0]
    assert not notepad.has_errors(include_subsections=True)

    assert instar_column("LVP") in enriched.columns
    assert enriched[instar_column("LVP")].isna().all()
    first = enriched.iloc[0]
    assert [first[instar_column(code)] for code in ("VL", "LA", "LM", "LMe")] == ["I"] * 4
    assert first[MEAN_SCORE_COLUMN] == 1.0


def test_mean_ignores_missing_cells(richardi):
    df = pd.DataFrame({"VL": [63.0], "LA": [None], "LM": [300.0], "LMe": [None], "LVP": [None]})
    enriched = enrich(df, MEASUREMENT_CODES, richardi)
    # I (1) and IV (4)
    assert enriched.loc[0, MEAN_SCORE_COLUMN] == 2.5
    assert enriched.loc[0, MEAN_LABEL_COLUMN] == "II-III"


def test_mixed_labels_are_banded(richardi):
    # I, I, I, I, II -> mean 1.2 -> I ; II, II, III, III, III -> mean 2.6 -> II-III
    df = pd.DataFrame(
        {
            "VL": [63.0, 100.0],
            "LA": [40.0, 60.0],
            "LM": [47.0, 130.0],
            "LMe": [37.0, 100.0],
            "LVP": [55.0, 100.0],
        }
    )
    enriched = enrich(df, MEASUREMENT_CODES, richardi)
    assert enriched.loc[0, MEAN_SCORE_COLUMN] == pytest.approx(1.2)
    assert enriched.loc[0, MEAN_LABEL_COLUMN] == "I"
    assert enriched.loc[1, MEAN_SCORE_COLUMN] == pytest.approx(2.6)
    assert enriched.loc[1, MEAN_LABEL_COLUMN] == "II-III"


def test_non_numeric_values_are_treated_as_missing(richardi, notepad):
    df = pd.DataFrame({"VL": ["63", "n/a", "broken"], "LA": [40, None, "x"]})
    enriched = enrich(df, ["VL", "LA"], richardi, notepad)
    assert list(enriched[instar_column("VL")]) == ["I", None, None]
    assert list(enriched[instar_column("LA")]) == ["I", None, None]
    assert enriched.loc[0, MEAN_LABEL_COLUMN] == "I"
    assert pd.isna(enriched.loc[2, MEAN_SCORE_COLUMN])
    # bad cells are silent
    assert not notepad.has_warnings(include_subsections=True)


def test_enrich_is_idempotent(richardi, specimens):
    first = enrich(specimens, MEASUREMENT_CODES, richardi)
    second = enrich(specimens, MEASUREMENT_CODES, richardi)
    pd.testing.assert_frame_equal(first, second)


def test_row_index_is_kept(richardi):
    df = pd.DataFrame({"VL": [63.0, 300.0]}, index=["L7", "L9"])
    enriched = enrich(df, ["VL"], richardi)
    assert list(enriched.index) == ["L7", "L9"]
    assert enriched.loc["L9", MEAN_LABEL_COLUMN] == "IV"


def test_passes_can_run_separately(richardi, specimens, notepad):
    enricher = InstarEnricher(richardi)
    labelled = enricher.classify_measurements(specimens, notepad)
    assert MEAN_SCORE_COLUMN not in labelled.columns
    aggregated = enricher.aggregate(labelled)
    assert list(aggregated[MEAN_LABEL_COLUMN][:2]) == ["I", "II-III"]


def test_aggregate_requires_label_columns(richardi, specimens):
    with pytest.raises(KeyError):
        InstarEnricher(richardi).aggregate(specimens)


def test_codes_without_reference_ranges_fail_fast(richardi):
    with pytest.raises(KeyError):
        InstarEnricher(richardi, ["VL", "HC"])
    with pytest.raises(ValueError):
        InstarEnricher(richardi, [])


def test_custom_reference_table(specimens):
    table = ReferenceTable.from_records([("VL", "I", 10, 70), ("VL", "II", 100, 200)])
    enriched = enrich(specimens, ["VL"], table)
    assert list(enriched[instar_column("VL")][:2]) == ["I", "II"]


def test_mean_label_covers_every_instar_of_the_table():
    table = ReferenceTable.from_records(
        [
            ("VL", "I", 10, 15),
            ("VL", "II", 20, 25),
            ("VL", "III", 30, 35),
            ("VL", "IV", 40, 45),
            ("VL", "V", 50, 55),
        ]
    )
    df = pd.DataFrame({"VL": [51.0, 47.0, 12.0]})
    enriched = enrich(df, ["VL"], table)
    assert list(enriched[instar_column("VL")]) == ["V", "IV-V", "I"]
    assert list(enriched[MEAN_LABEL_COLUMN]) == ["V", "IV-V", "I"]


def test_default_banding_for_four_instar_table(richardi):
    df = pd.DataFrame({"VL": [300.0]})
    enriched = enrich(df, ["VL"], richardi)
    assert enriched.loc[0, MEAN_LABEL_COLUMN] == "IV"


def test_explicit_banding_is_used(richardi):
    banding = AggregateBanding(edges=(3.0,), labels=("young", "old"))
    df = pd.DataFrame({"VL": [63.0, 300.0]})
    enriched = enrich(df, ["VL"], richardi, banding=banding)
    assert list(enriched[MEAN_LABEL_COLUMN]) == ["young", "old"]
