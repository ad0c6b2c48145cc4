"""Output writers for the record (CSV) and interchange (OFX) formats."""

import xml.etree.ElementTree as ET
from collections.abc import Iterable
from pathlib import Path

from .errors import MergeConflictError
from .logging_setup import get_logger
from .models import RECORD_HEADER, Statement
from .normalize import to_interchange_datetime
from .rules import RuleEngine

logger = get_logger("fin_ledger.outputs")

INTERCHANGE_PREAMBLE = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    '<?OFX OFXHEADER="200" SECURITY="NONE" OLDFILEUID="NONE" '
    'NEWFILEUID="NONE" VERSION="200"?>\n'
)


def write_interchange_doc(statements: Iterable[Statement]) -> str:
    """Build an OFX 2 document holding one statement response per statement."""
    root = ET.Element("OFX")
    message_set = ET.SubElement(root, "BANKMSGSRSV1")
    for statement in statements:
        response = ET.SubElement(message_set, "STMTTRNRS")
        response.append(statement.to_interchange_element())

    ET.indent(root, space="  ")
    return INTERCHANGE_PREAMBLE + ET.tostring(root, encoding="unicode") + "\n"


def write_record_doc(statements: Iterable[Statement], header: bool = False) -> str:
    """Build CSV text for the transactions of every statement."""
    parts = []
    if header:
        parts.append(",".join(RECORD_HEADER) + "\n")
    parts.extend(statement.to_records() for statement in statements)
    return "".join(parts)


def date_range_label(statement: Statement) -> str:
    """A "YYYYMMDD-YYYYMMDD" label for the statement's period."""
    start = to_interchange_datetime(statement.from_date)[:8]
    end = to_interchange_datetime(statement.to_date)[:8]
    return f"{start}-{end}"


def output_path_for(target: Path, statement: Statement, extension: str) -> Path:
    """Resolve where to write a statement.

    A directory target gets a file named after the statement's date range,
    e.g. ``20080730-20080807.csv``. Any other target is used as-is.
    """
    target = Path(target)
    if target.is_dir():
        return target / f"{date_range_label(statement)}.{extension}"
    return target


def _merge_with_existing(existing: Statement, statement: Statement) -> Statement:
    # Newest-first statements grow at the front, so the new scrape leads
    if statement.newest_first or existing.newest_first:
        return statement.merge(existing)
    return existing.merge(statement)


def write_records_file(
    statement: Statement,
    output_path: Path,
    rule_engine: RuleEngine | None = None,
) -> Path:
    """Write a statement to a CSV file, merging with what is already there.

    A new file gets a header row. If the file exists its transactions are
    read back and merged with ``statement`` so that overlapping scrapes do
    not duplicate rows. When the merge fails the existing file is left
    alone and the statement goes to a sibling ``*_merge_failed`` file.

    Args:
        statement: The Statement to write
        output_path: Path for the CSV file
        rule_engine: The rules ``statement`` was processed with. They are
            re-run over the rows read back from the file, which store no
            transaction type; without them a typed statement never matches
            its own earlier rows.

    Returns:
        The path actually written
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    if output_path.is_file():
        existing = statement.empty_copy().read_records(output_path, rule_engine)
        try:
            statement = _merge_with_existing(existing, statement)
        except MergeConflictError as e:
            failed_path = output_path.with_name(
                f"{output_path.stem}_{date_range_label(statement)}_merge_failed{output_path.suffix}"
            )
            logger.warning(
                "Merge failed, storing new data in %s instead of merging it into %s",
                failed_path,
                output_path,
            )
            logger.debug("Merge failed due to: %s", e)
            failed_path.write_text(write_record_doc([statement], header=True), encoding="utf-8")
            return failed_path
        logger.info("Statement is being merged into records at %s", output_path)
    else:
        logger.info("Statement is being written as records to %s", output_path)

    output_path.write_text(write_record_doc([statement], header=True), encoding="utf-8")
    return output_path


def write_interchange_file(statements: Iterable[Statement], output_path: Path) -> Path:
    """Write statements to an OFX file, replacing any existing file."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(write_interchange_doc(statements), encoding="utf-8")
    logger.info("Statement is being written as OFX to %s", output_path)
    return output_path
