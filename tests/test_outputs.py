import xml.etree.ElementTree as ET

import pytest

from fin_ledger import Statement, UploadError
from fin_ledger.outputs import (
    INTERCHANGE_PREAMBLE,
    date_range_label,
    output_path_for,
    write_interchange_doc,
    write_interchange_file,
    write_record_doc,
    write_records_file,
)
from fin_ledger.upload import upload_document


def _read(path) -> Statement:
    return Statement(account_number="1234567", decimal=",").read_records(path)


def test_interchange_doc_has_one_root_for_all_statements(make_statement):
    s123, s45 = make_statement(1, 2, 3), make_statement(4, 5)

    document = write_interchange_doc([s123, s45])

    assert document.startswith(INTERCHANGE_PREAMBLE)
    assert document.endswith("\n")
    root = ET.fromstring(document[len(INTERCHANGE_PREAMBLE):])
    assert root.tag == "OFX"
    responses = root.findall("BANKMSGSRSV1/STMTTRNRS")
    assert len(responses) == 2
    assert [tx.findtext("FITID") for tx in responses[0].iter("STMTTRN")] == [
        tx.id for tx in s123.transactions
    ]
    assert responses[1].findtext("STMTRS/BANKTRANLIST/DTSTART") == "20080726000000"


def test_record_doc_concatenates_statements(make_statement):
    document = write_record_doc([make_statement(1, 2), make_statement(3)], header=True)
    lines = document.splitlines()

    assert lines[0].startswith("Date,Value-Date,Description")
    assert len(lines) == 4
    assert write_record_doc([make_statement(1)]).count("\n") == 1


def test_date_range_label(make_statement):
    assert date_range_label(make_statement(1, 2, 3)) == "20080728-20080730"


def test_output_path_for(make_statement, tmp_path):
    statement = make_statement(1, 2, 3)

    assert output_path_for(tmp_path, statement, "csv") == tmp_path / "20080728-20080730.csv"
    assert output_path_for(tmp_path / "ledger.csv", statement, "csv") == tmp_path / "ledger.csv"


def test_write_records_file_creates_file_with_header(make_statement, tmp_path):
    path = tmp_path / "out" / "records.csv"

    written = write_records_file(make_statement(1, 2, 3), path)

    assert written == path
    assert path.read_text(encoding="utf-8").startswith("Date,")
    assert _read(path) == make_statement(1, 2, 3)


def test_write_records_file_merges_newest_first(make_statement, tmp_path):
    path = tmp_path / "records.csv"
    write_records_file(make_statement(3, 4, 5), path)

    written = write_records_file(make_statement(1, 2, 3), path)

    assert written == path
    assert _read(path) == make_statement(1, 2, 3, 4, 5)


def test_write_records_file_merges_oldest_first(make_statement, tmp_path):
    path = tmp_path / "records.csv"
    write_records_file(make_statement(5, 4, 3), path)

    write_records_file(make_statement(3, 2, 1), path)

    assert _read(path) == make_statement(5, 4, 3, 2, 1)


def test_write_records_file_is_idempotent(make_statement, tmp_path):
    path = tmp_path / "records.csv"
    write_records_file(make_statement(1, 2, 3), path)
    first = path.read_text(encoding="utf-8")

    write_records_file(make_statement(1, 2, 3), path)

    assert path.read_text(encoding="utf-8") == first


def test_write_records_file_conflict_goes_to_side_file(make_statement, tmp_path):
    path = tmp_path / "records.csv"
    write_records_file(make_statement(1, 2, 3), path)
    before = path.read_text(encoding="utf-8")

    written = write_records_file(make_statement(2, 5), path)

    assert written == tmp_path / "records_20080726-20080729_merge_failed.csv"
    assert path.read_text(encoding="utf-8") == before
    assert _read(written) == make_statement(2, 5)


def test_write_interchange_file_replaces_existing(make_statement, tmp_path):
    path = tmp_path / "statement.ofx"
    path.write_text("old", encoding="utf-8")

    write_interchange_file([make_statement(1, 2)], path)

    assert path.read_text(encoding="utf-8").startswith("<?xml")


class RecordingSink:
    def __init__(self):
        self.documents = []

    def upload(self, document):
        self.documents.append(document)
        return "OK: 2 transactions"


class BrokenSink:
    def upload(self, document):
        raise ConnectionError("service unavailable")


def test_upload_document_returns_sink_status(make_statement):
    sink = RecordingSink()
    document = write_interchange_doc([make_statement(1, 2)])

    assert upload_document(sink, document) == "OK: 2 transactions"
    assert sink.documents == [document]


def test_upload_document_wraps_sink_failures():
    with pytest.raises(UploadError) as excinfo:
        upload_document(BrokenSink(), "<OFX/>")

    assert isinstance(excinfo.value.__cause__, ConnectionError)
    assert "service unavailable" in str(excinfo.value)


def _data_rows(path) -> list[str]:
    return path.read_text(encoding="utf-8").splitlines()[1:]


def test_typed_statement_written_twice_is_unchanged(
    make_typed_statement, typing_rules, tmp_path
):
    path = tmp_path / "records.csv"
    write_records_file(make_typed_statement(1, 2, 3), path, rule_engine=typing_rules)
    first = path.read_text(encoding="utf-8")

    write_records_file(make_typed_statement(1, 2, 3), path, rule_engine=typing_rules)

    assert path.read_text(encoding="utf-8") == first
    assert len(_data_rows(path)) == 3


def test_typed_statement_merges_newest_first(
    make_typed_statement, typing_rules, tmp_path
):
    path = tmp_path / "records.csv"
    write_records_file(make_typed_statement(3, 4, 5), path, rule_engine=typing_rules)

    written = write_records_file(make_typed_statement(1, 2, 3), path, rule_engine=typing_rules)

    assert written == path
    assert len(_data_rows(path)) == 5
    restored = Statement(account_number="1234567", decimal=",").read_records(path, typing_rules)
    assert restored == make_typed_statement(1, 2, 3, 4, 5)


def test_typed_statement_conflict_goes_to_side_file(
    make_typed_statement, typing_rules, tmp_path
):
    path = tmp_path / "records.csv"
    write_records_file(make_typed_statement(1, 2, 3), path, rule_engine=typing_rules)
    before = path.read_text(encoding="utf-8")

    written = write_records_file(make_typed_statement(2, 5), path, rule_engine=typing_rules)

    assert written.name == "records_20080726-20080729_merge_failed.csv"
    assert path.read_text(encoding="utf-8") == before
