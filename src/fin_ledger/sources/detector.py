"""Registry of statement sources and auto-detection from document content."""

from pathlib import Path
from typing import Type

import pdfplumber

from ..config import SourceConfig
from .base import PageFetcher, StatementSource
from .bpi import BpiSource


# Registry of available statement sources, by name
SOURCES: dict[str, Type[StatementSource]] = {
    BpiSource.name: BpiSource,
}


def register_source(source_class: Type[StatementSource]) -> Type[StatementSource]:
    """Add a source class to the registry under its ``name``.

    Raises:
        ValueError: If another class is already registered under that name
    """
    existing = SOURCES.get(source_class.name)
    if existing is not None and existing is not source_class:
        raise ValueError(f"A source named {source_class.name!r} is already registered")
    SOURCES[source_class.name] = source_class
    return source_class


def get_source(
    name: str,
    config: SourceConfig | None = None,
    input_path: Path | None = None,
    fetcher: PageFetcher | None = None,
) -> StatementSource:
    """Construct the registered source called ``name``.

    Args:
        name: Registry name of the source, e.g. "bpi"
        config: Source configuration; the source's defaults when omitted
        input_path: Local statement document to read instead of fetching
        fetcher: Downloads the statement document when no input is given

    Raises:
        ValueError: If no source is registered under ``name``
    """
    try:
        source_class = SOURCES[name]
    except KeyError:
        known = ", ".join(sorted(SOURCES)) or "none"
        raise ValueError(f"Unknown statement source {name!r} (known: {known})") from None

    return source_class(
        config or source_class.make_config(),
        input_path=input_path,
        fetcher=fetcher,
    )


def detect_source(pdf_path: Path) -> Type[StatementSource] | None:
    """Detect which source can read a statement document.

    Args:
        pdf_path: Path to the statement document

    Returns:
        The matching StatementSource class, or None if no match found
    """
    with pdfplumber.open(pdf_path) as pdf:
        for source_class in SOURCES.values():
            if source_class.can_parse(pdf):
                return source_class

    return None
