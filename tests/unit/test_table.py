"""
Unit tests for raw table reading (metric_ingest.table).

Files are written to pytest's tmp_path; nothing outside it is touched.
"""

from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from metric_ingest.config import UploadLimits
from metric_ingest.exceptions import (
    EmptyTableError,
    FileTooLargeError,
    TableParseError,
    TooManyRowsError,
    UnsupportedFileError,
)
from metric_ingest.table import RawTable, read_raw_table


def _write(tmp_path: Path, name: str, text: str) -> Path:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


class TestReadRawTable:
    """Tests for read_raw_table()."""

    def test_reads_csv_as_strings(self, tmp_path):
        path = _write(tmp_path, "upload.csv", "Metric,Period,Value\nTotal Calls,2025-01,0012\n")
        table = read_raw_table(path)
        assert table.headers == ("Metric", "Period", "Value")
        assert table.rows == (("Total Calls", "2025-01", "0012"),)
        assert table.source == "upload.csv"

    def test_na_like_text_is_kept(self, tmp_path):
        path = _write(tmp_path, "upload.csv", "Metric,Value\nTotal Calls,N/A\nX,\n")
        table = read_raw_table(path)
        assert table.rows[0][1] == "N/A"
        assert table.rows[1][1] == ""

    def test_tsv_extension_uses_tab(self, tmp_path):
        path = _write(tmp_path, "upload.tsv", "Metric\tValue\n$1,250 calls\t1,250\n")
        table = read_raw_table(path)
        assert table.rows == (("$1,250 calls", "1,250"),)

    def test_tab_delimited_txt_is_sniffed(self, tmp_path):
        path = _write(tmp_path, "upload.txt", "Metric\tPeriod\tValue\nTotal Calls\t2025-01\t1,523\n")
        table = read_raw_table(path)
        assert table.headers == ("Metric", "Period", "Value")
        assert table.rows[0][2] == "1,523"

    def test_quoted_commas(self, tmp_path):
        path = _write(tmp_path, "upload.csv", 'Metric,Value\nTotal Calls,"1,523"\n')
        assert read_raw_table(path).rows[0] == ("Total Calls", "1,523")

    def test_bom_and_header_whitespace_removed(self, tmp_path):
        path = tmp_path / "upload.csv"
        path.write_text(" Metric , Value\nTotal Calls,1\n", encoding="utf-8-sig")
        assert read_raw_table(path).headers == ("Metric", "Value")

    def test_blank_lines_ignored(self, tmp_path):
        path = _write(tmp_path, "upload.csv", "Metric,Value\n\nA,1\n,\nB,2\n\n")
        table = read_raw_table(path)
        assert [r[0] for r in table.rows] == ["A", "B"]

    def test_short_rows_padded(self, tmp_path):
        path = _write(tmp_path, "upload.csv", "Metric,Period,Value\nA,2025-01\n")
        assert read_raw_table(path).rows[0] == ("A", "2025-01", "")

    # -----------------------------------------------------------------
    # Preconditions
    # -----------------------------------------------------------------

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_raw_table(tmp_path / "nope.csv")

    def test_unsupported_extension(self, tmp_path):
        path = _write(tmp_path, "upload.xlsx", "Metric,Value\nA,1\n")
        with pytest.raises(UnsupportedFileError, match="xlsx"):
            read_raw_table(path)

    def test_file_too_large(self, tmp_path):
        path = _write(tmp_path, "upload.csv", "Metric,Value\n" + "A,1\n" * 50)
        with pytest.raises(FileTooLargeError):
            read_raw_table(path, UploadLimits(max_bytes=100))

    def test_too_many_rows(self, tmp_path):
        path = _write(tmp_path, "upload.csv", "Metric,Value\n" + "A,1\n" * 4)
        with pytest.raises(TooManyRowsError):
            read_raw_table(path, UploadLimits(max_rows=3))

    def test_row_limit_is_inclusive(self, tmp_path):
        path = _write(tmp_path, "upload.csv", "Metric,Value\n" + "A,1\n" * 3)
        assert len(read_raw_table(path, UploadLimits(max_rows=3))) == 3

    def test_header_only(self, tmp_path):
        path = _write(tmp_path, "upload.csv", "Metric,Period,Value\n")
        with pytest.raises(EmptyTableError):
            read_raw_table(path)

    def test_row_wider_than_header(self, tmp_path):
        path = _write(tmp_path, "upload.csv", "Metric,Value\nA,1,extra\n")
        with pytest.raises(TableParseError):
            read_raw_table(path)

    def test_non_utf8_file(self, tmp_path):
        """A Latin-1 export is a file-level parse error, not a crash."""
        path = tmp_path / "upload.csv"
        path.write_bytes("Metric,Notes\nTotal Calls,caf\xe9\n".encode("latin-1"))
        with pytest.raises(TableParseError, match="UTF-8"):
            read_raw_table(path)

    def test_empty_file(self, tmp_path):
        path = _write(tmp_path, "upload.csv", "")
        with pytest.raises(EmptyTableError):
            read_raw_table(path)


class TestRawTable:
    """Tests for RawTable helpers."""

    def test_column_index(self):
        table = RawTable.from_rows(["Metric", "Value"], [])
        assert table.column_index("Value") == 1
        assert table.column_index("Period") == -1
        assert table.column_index("") == -1

    def test_cell(self):
        row = (" a ", "b")
        assert RawTable.cell(row, 0) == "a"
        assert RawTable.cell(row, 5) == ""
        assert RawTable.cell(row, -1) == ""

    def test_from_frame(self):
        df = pd.DataFrame({"Metric": ["A", None], "Value": ["1", "2"]})
        table = RawTable.from_frame(df, source="frame")
        assert table.headers == ("Metric", "Value")
        assert table.rows == (("A", "1"), ("", "2"))
        assert len(table) == 2
