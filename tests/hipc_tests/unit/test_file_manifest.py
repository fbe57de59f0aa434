"""
Bulk-upload manifest parsing tests.
"""

import pytest

from hipc.core.exceptions import ValidationError
from hipc.core.file_manifest import parse_upload_csv
from hipc.core.models import FileInput


@pytest.fixture
def write_csv(tmp_path):
    def _write(text, name="files.csv"):
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path
    return _write


def test_rows_in_file_order(write_csv):
    path = write_csv("cid,name\nQmA,a.txt\nQmB,b.txt\n")
    assert parse_upload_csv(path) == [FileInput("QmA", "a.txt"), FileInput("QmB", "b.txt")]


def test_header_only_is_empty(write_csv):
    assert parse_upload_csv(write_csv("cid,name\n")) == []


def test_blank_file_is_empty(write_csv):
    assert parse_upload_csv(write_csv("")) == []


def test_cells_are_stripped(write_csv):
    path = write_csv("cid,name\n QmA , a.txt \n")
    assert parse_upload_csv(path) == [FileInput("QmA", "a.txt")]


def test_quoted_names_keep_commas(write_csv):
    path = write_csv('cid,name\nQmA,"report, final.pdf"\n')
    assert parse_upload_csv(path)[0].file_name == "report, final.pdf"


@pytest.mark.parametrize("row", ["QmA", "QmA,a.txt,extra"])
def test_wrong_column_count(write_csv, row):
    path = write_csv(f"cid,name\nQmOk,ok.txt\n{row}\n")
    with pytest.raises(ValidationError):
        parse_upload_csv(path)


def test_blank_lines_are_skipped(write_csv):
    path = write_csv("cid,name\nQmA,a.txt\n\nQmB,b.txt\n\n")
    assert parse_upload_csv(path) == [FileInput("QmA", "a.txt"), FileInput("QmB", "b.txt")]


@pytest.mark.parametrize("row", [",a.txt", "QmA,", " , "])
def test_empty_cells_rejected(write_csv, row):
    with pytest.raises(ValidationError):
        parse_upload_csv(write_csv(f"cid,name\n{row}\n"))


def test_missing_file(tmp_path):
    with pytest.raises(ValidationError, match="not found"):
        parse_upload_csv(tmp_path / "nope.csv")


def test_undecodable_file(tmp_path):
    path = tmp_path / "binary.csv"
    path.write_bytes(b"cid,name\n\xff\xfe,\x80\n")
    with pytest.raises(ValidationError):
        parse_upload_csv(path)
