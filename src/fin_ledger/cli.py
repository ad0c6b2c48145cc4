"""Command-line interface for fin-ledger."""

from pathlib import Path

import typer

from .errors import LedgerError, MergeConflictError
from .extractor import resolve_source, scrape_source
from .logging_setup import configure_logging
from .models import Statement
from .outputs import (
    output_path_for,
    write_interchange_doc,
    write_interchange_file,
    write_record_doc,
    write_records_file,
)
from .sources import get_source

app = typer.Typer(
    name="fin-ledger",
    help="Turn bank statements into a deduplicated OFX or CSV ledger.",
)


@app.command()
def extract(
    input_path: Path = typer.Argument(
        ...,
        help="Path to the statement document",
        exists=True,
        readable=True,
    ),
    source: str | None = typer.Option(
        None,
        "--source",
        "-s",
        help="Statement source to use (detected from the document if omitted)",
    ),
    account: str | None = typer.Option(None, "--account", "-a", help="Account number"),
    decimal: str | None = typer.Option(None, "--decimal", help='Decimal separator, "." or ","'),
    currency: str | None = typer.Option(None, "--currency", help="3-letter currency code"),
    ofx_out: Path | None = typer.Option(
        None,
        "--ofx",
        help="Write an OFX document to this file, or to a dated file in this directory",
    ),
    csv_out: Path | None = typer.Option(
        None,
        "--csv",
        help="Write or merge CSV records into this file, or a dated file in this directory",
    ),
    log_level: str | None = typer.Option(None, "--log-level", "-l", help="e.g. DEBUG, INFO"),
) -> None:
    """Extract a statement and write it as OFX and/or CSV.

    With neither --ofx nor --csv the OFX document is printed.
    """
    configure_logging(log_level)

    try:
        statement_source = resolve_source(
            input_path,
            source_name=source,
            account_number=account,
            decimal=decimal,
            currency=currency,
        )
        statement = scrape_source(statement_source)

        if csv_out is not None:
            written = write_records_file(
                statement,
                output_path_for(csv_out, statement, "csv"),
                rule_engine=statement_source.rule_engine,
            )
            typer.echo(f"CSV records: {written}")

        if ofx_out is not None:
            written = write_interchange_file(
                [statement], output_path_for(ofx_out, statement, "ofx")
            )
            typer.echo(f"OFX document: {written}")

        if csv_out is None and ofx_out is None:
            typer.echo(write_interchange_doc([statement]), nl=False)

    except FileNotFoundError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    except (ValueError, LedgerError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def merge(
    base_path: Path = typer.Argument(..., help="CSV records to merge into", exists=True),
    other_path: Path = typer.Argument(..., help="CSV records to merge in", exists=True),
    account: str = typer.Option("unknown", "--account", "-a", help="Account number"),
    decimal: str = typer.Option(".", "--decimal", help='Decimal separator, "." or ","'),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Write the merged records here instead of printing"
    ),
    source: str | None = typer.Option(
        None,
        "--source",
        "-s",
        help="Re-run this source's rules over the records to restore transaction types",
    ),
    ofx: bool = typer.Option(False, "--ofx", help="Emit OFX instead of CSV"),
    log_level: str | None = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Merge two CSV record files into one ledger."""
    configure_logging(log_level)

    try:
        rule_engine = get_source(source).rule_engine if source else None
        base = Statement(account_number=account, decimal=decimal).read_records(
            base_path, rule_engine
        )
        other = Statement(account_number=account, decimal=decimal).read_records(
            other_path, rule_engine
        )
        merged = base.merge(other)
    except MergeConflictError as e:
        typer.echo(f"Merge conflict: {e}", err=True)
        raise typer.Exit(1)
    except (ValueError, LedgerError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    document = write_interchange_doc([merged]) if ofx else write_record_doc([merged], header=True)
    if output is None:
        typer.echo(document, nl=False)
    else:
        output.write_text(document, encoding="utf-8")
        typer.echo(f"Merged {len(merged.transactions)} transactions into {output}")


@app.command()
def info(
    input_path: Path = typer.Argument(
        ...,
        help="Path to the statement document",
        exists=True,
        readable=True,
    ),
) -> None:
    """Show which source would read a statement document."""
    from .sources import detect_source

    typer.echo(f"File: {input_path}")

    source_class = detect_source(input_path)
    if source_class:
        typer.echo(f"Detected bank: {source_class.bank_name} (source: {source_class.name})")
    else:
        typer.echo("Could not detect bank - may not be supported")


if __name__ == "__main__":
    app()
