import pytest
from typer.testing import CliRunner

from fin_ledger.cli import app
from fin_ledger.outputs import INTERCHANGE_PREAMBLE
from fin_ledger.sources import base, detector

from test_bpi_source import STATEMENT_PAGE, FakePdf

runner = CliRunner()


def _write(path, statement):
    path.write_text(statement.to_records(header=True), encoding="utf-8")
    return path


def test_merge_prints_merged_records(make_statement, tmp_path):
    base_file = _write(tmp_path / "base.csv", make_statement(1, 2, 3))
    other = _write(tmp_path / "other.csv", make_statement(2, 3, 4, 5))

    result = runner.invoke(app, ["merge", str(base_file), str(other), "--decimal", ","])

    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert lines[0].startswith("Date,")
    assert len(lines) == 6


def test_merge_writes_output_file(make_statement, tmp_path):
    base_file = _write(tmp_path / "base.csv", make_statement(1, 2))
    other = _write(tmp_path / "other.csv", make_statement(3))
    output = tmp_path / "merged.ofx"

    result = runner.invoke(
        app,
        ["merge", str(base_file), str(other), "--decimal", ",", "--ofx", "-o", str(output)],
    )

    assert result.exit_code == 0
    assert "Merged 3 transactions" in result.output
    assert output.read_text(encoding="utf-8").startswith(INTERCHANGE_PREAMBLE)


def test_merge_conflict_exits_with_error(make_statement, tmp_path):
    base_file = _write(tmp_path / "base.csv", make_statement(1, 2, 3))
    other = _write(tmp_path / "other.csv", make_statement(2, 5))

    result = runner.invoke(app, ["merge", str(base_file), str(other), "--decimal", ","])

    assert result.exit_code == 1
    assert "Merge conflict" in result.output




def test_info_names_detected_bank(tmp_path, monkeypatch):
    from fin_ledger import sources
    from fin_ledger.sources.bpi import BpiSource

    document = tmp_path / "statement.pdf"
    document.write_bytes(b"%PDF-1.4")
    monkeypatch.setattr(sources, "detect_source", lambda path: BpiSource)

    result = runner.invoke(app, ["info", str(document)])

    assert result.exit_code == 0
    assert "Detected bank: BPI (source: bpi)" in result.output


@pytest.fixture
def document(tmp_path, monkeypatch):
    path = tmp_path / "statement.pdf"
    path.write_bytes(b"%PDF-1.4")
    monkeypatch.setattr(base.pdfplumber, "open", lambda target: FakePdf(STATEMENT_PAGE))
    monkeypatch.setattr(detector.pdfplumber, "open", lambda target: FakePdf(STATEMENT_PAGE))
    return path


def test_extract_prints_interchange_doc(document):
    result = runner.invoke(app, ["extract", str(document), "-s", "bpi", "-a", "42"])

    assert result.exit_code == 0
    assert result.output.startswith("<?xml")
    assert "<ACCTID>42</ACCTID>" in result.output
    assert "<TRNTYPE>ATM</TRNTYPE>" in result.output


def test_extract_writes_records(document, tmp_path):
    out_dir = tmp_path / "ledger"
    out_dir.mkdir()

    result = runner.invoke(app, ["extract", str(document), "--csv", str(out_dir)])

    assert result.exit_code == 0
    assert "CSV records:" in result.output
    records = (out_dir / "20080727-20080730.csv").read_text(encoding="utf-8")
    assert len(records.splitlines()) == 5


def test_extract_same_document_twice_leaves_records_unchanged(document, tmp_path):
    records = tmp_path / "records.csv"

    first = runner.invoke(app, ["extract", str(document), "--csv", str(records)])
    content = records.read_text(encoding="utf-8")
    second = runner.invoke(app, ["extract", str(document), "--csv", str(records)])

    assert first.exit_code == 0
    assert second.exit_code == 0
    assert records.read_text(encoding="utf-8") == content
    assert not list(tmp_path.glob("*merge_failed*"))


def test_extract_reports_unknown_bank(document, monkeypatch):
    monkeypatch.setattr(detector.pdfplumber, "open", lambda target: FakePdf("Another bank"))

    result = runner.invoke(app, ["extract", str(document)])

    assert result.exit_code == 1
    assert "Could not detect bank" in result.output


def test_merge_restores_types_with_source_rules(document, tmp_path):
    records = tmp_path / "records.csv"
    runner.invoke(app, ["extract", str(document), "--csv", str(records)])

    result = runner.invoke(
        app,
        ["merge", str(records), str(records), "--decimal", ",", "-s", "bpi", "--ofx"],
    )

    assert result.exit_code == 0
    assert "<TRNTYPE>CHECK</TRNTYPE>" in result.output
    assert result.output.count("<STMTTRN>") == 4
