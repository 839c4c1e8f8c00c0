"""
Command-line interface for instarcalc.
Classifies every measurement of every specimen in a table into an instar,
averages per specimen, and writes the enriched table to an Excel workbook.
"""

import json
import logging
import pathlib
import sys
import typing
import zipfile

import click
from openpyxl.utils.exceptions import InvalidFileException
from stairval.notepad import Notepad, create_notepad

from .enricher import MEAN_LABEL_COLUMN, InstarEnricher
from .loader import default_output_path, load_specimen_table, write_enriched_table
from .reference import MEASUREMENT_CODES, RICHARDI_2013, ReferenceTable, load_reference_table


@click.group()
def main():
    """instarcalc: instar classification of larval specimens from morphological measurements."""
    pass


@main.command(name="enrich")
@click.option(
    "-i",
    "--input-path",
    "input_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="path to the specimen table (.xlsx or .csv)",
)
@click.option(
    "-o",
    "--output-path",
    "output_path",
    default=None,
    type=click.Path(dir_okay=False),
    help="Excel file to write (default: <input>_with_instars.xlsx)",
)
@click.option("--sheet", "sheet_name", default=None, help="worksheet to read (default: first sheet)")
@click.option(
    "--reference",
    "reference_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="reference ranges file with Code/Instar/Min/Max columns (default: Richardi et al. 2013)",
)
@click.option(
    "--codes",
    default=",".join(MEASUREMENT_CODES),
    show_default=True,
    help="comma-separated measurement codes to classify",
)
@click.option("--verbose-logging", is_flag=True, help="Also emit debug logs to stderr")
@click.option(
    "--log-file-path",
    type=click.Path(dir_okay=False, writable=True),
    help="Append timestamped logs to this file",
)
def enrich(
    input_path: str,
    output_path: typing.Optional[str],
    sheet_name: typing.Optional[str],
    reference_path: typing.Optional[str],
    codes: str,
    verbose_logging: bool,
    log_file_path: typing.Optional[str],
):
    """
    Read the specimen table, add one <code>_Instar column per measurement code,
    the mean instar score and its label, then export to Excel.
    """
    _configure_logging(verbose_logging, log_file_path)

    measurement_codes = [code.strip() for code in codes.split(",") if code.strip()]
    try:
        table = _load_reference(reference_path)
        enricher = InstarEnricher(table, measurement_codes)
    except (FileNotFoundError, KeyError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    try:
        specimens = load_specimen_table(input_path, sheet_name)
    except (FileNotFoundError, ValueError, zipfile.BadZipFile, InvalidFileException) as e:
        click.echo(f"Error: cannot read {input_path}: {e}", err=True)
        sys.exit(1)

    notepad = create_notepad("instars")
    enriched = enricher.enrich(specimens, notepad)

    target = pathlib.Path(output_path) if output_path else default_output_path(input_path)
    written = write_enriched_table(enriched, target, notepad)

    _report_issues(notepad)

    classified = int(enriched[MEAN_LABEL_COLUMN].notna().sum())
    click.echo(f"Classified {classified} of {len(enriched)} specimens")
    if written:
        click.echo(f"Wrote {target}")


@main.command(name="show-reference")
@click.option(
    "--reference",
    "reference_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="reference ranges file (default: Richardi et al. 2013)",
)
@click.option("-r", "--raw", is_flag=True, help="print JSON records instead of a table")
def show_reference(reference_path: typing.Optional[str], raw: bool):
    """Print the reference size ranges used for classification."""
    try:
        table = _load_reference(reference_path)
    except (FileNotFoundError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if raw:
        click.echo(json.dumps(table.to_frame().to_dict(orient="records"), indent=2))
        return

    click.echo(f"{'CODE':8}  {'INSTAR':6}  {'MIN':>8}  {'MAX':>8}")
    for interval in table:
        click.echo(f"{interval.code:8}  {interval.instar:6}  {interval.minimum:>8g}  {interval.maximum:>8g}")


def _configure_logging(verbose_logging: bool, log_file_path: typing.Optional[str]) -> None:
    handlers: list[logging.Handler] = []
    if log_file_path:
        handlers.append(logging.FileHandler(log_file_path, mode="a", encoding="utf-8"))
    if verbose_logging:
        handlers.append(logging.StreamHandler(sys.stderr))
    if handlers:
        logging.basicConfig(
            level=logging.DEBUG if verbose_logging else logging.INFO,
            format="%(asctime)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            handlers=handlers,
            force=True,
        )


def _load_reference(reference_path: typing.Optional[str]) -> ReferenceTable:
    # the published ranges unless a custom table is given
    if reference_path:
        return load_reference_table(reference_path)
    return RICHARDI_2013


def _report_issues(notepad: Notepad):
    if notepad.has_errors(include_subsections=True):
        click.echo(click.style("Errors found while classifying:", fg="red"))
        for err in notepad.errors():
            click.echo(f"- {err.message}")
    if notepad.has_warnings(include_subsections=True):
        click.echo(click.style("Warnings found while classifying:", fg="yellow"))
        for w in notepad.warnings():
            click.echo(f"- {w.message}")


if __name__ == "__main__":
    main()
