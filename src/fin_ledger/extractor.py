"""Main extraction orchestrator."""

from pathlib import Path

from .config import SourceConfig
from .logging_setup import get_logger
from .models import Statement
from .sources import SOURCES, StatementSource, detect_source, get_source

logger = get_logger("fin_ledger.extractor")


def resolve_source(
    input_path: Path,
    source_name: str | None = None,
    config: SourceConfig | None = None,
    **config_overrides,
) -> StatementSource:
    """Construct the source that will read a statement document.

    Args:
        input_path: Path to the statement document
        source_name: Registered source to use; detected from content if None
        config: Full source configuration, overriding the source defaults
        **config_overrides: Individual settings layered over the source
            defaults when ``config`` is not given (e.g. ``account_number``)

    Returns:
        An unopened StatementSource; use it as a context manager

    Raises:
        FileNotFoundError: If the document does not exist
        ValueError: If the source cannot be detected or is unknown
    """
    input_path = Path(input_path)

    if not input_path.exists():
        raise FileNotFoundError(f"Statement file not found: {input_path}")

    if source_name is None:
        source_class = detect_source(input_path)
        if source_class is None:
            raise ValueError(
                f"Could not detect bank from statement: {input_path}. "
                "The bank may not be supported yet."
            )
        source_name = source_class.name
        logger.info("Detected %s statement in %s", source_class.bank_name, input_path)
    elif source_name not in SOURCES:
        raise ValueError(f"Unknown statement source: {source_name}")

    if config is None:
        config = SOURCES[source_name].make_config(**config_overrides)

    return get_source(source_name, config, input_path=input_path)


def scrape_source(source: StatementSource) -> Statement:
    """Open ``source``'s document and return its rule-processed Statement."""
    with source:
        statement = source.scrape_statement()

    logger.info("Statement summary: %s", statement.summary())
    return statement


def extract_statement(
    input_path: Path,
    source_name: str | None = None,
    config: SourceConfig | None = None,
    **config_overrides,
) -> Statement:
    """Extract a rule-processed Statement from a statement document.

    Takes the same arguments as ``resolve_source``.

    Returns:
        Statement with all extracted transactions

    Raises:
        FileNotFoundError: If the document does not exist
        ValueError: If the source cannot be detected or is unknown
    """
    source = resolve_source(input_path, source_name, config, **config_overrides)
    return scrape_source(source)
