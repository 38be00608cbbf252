from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from app.services.csv_stream import (
    EXTRA_VALUES_KEY,
    MalformedRowError,
    build_record_payload,
    coerce_scalar,
    count_rows,
    iter_rows,
    raw_record_payload,
)
from app.services.errors import SourceFileError
from app.services.fingerprint import fingerprint_file


class TestCSVStream(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _write(self, name: str, content: bytes) -> str:
        path = self.root / name
        path.write_bytes(content)
        return str(path)

    def test_count_rows_excludes_header(self) -> None:
        path = self._write("rows.csv", b"name,age\nann,31\nbob,42\ncid,27\n")
        self.assertEqual(count_rows(path), 3)

    def test_header_only_file_has_zero_rows(self) -> None:
        path = self._write("empty.csv", b"name,age\n")
        self.assertEqual(count_rows(path), 0)
        self.assertEqual(list(iter_rows(path)), [])

    def test_utf8_bom_is_stripped_from_first_column(self) -> None:
        path = self._write("bom.csv", "\ufeffname,age\nann,31\n".encode("utf-8"))
        rows = list(iter_rows(path))
        self.assertEqual(rows, [{"name": "ann", "age": "31"}])

    def test_quoted_values_keep_commas_and_newlines(self) -> None:
        path = self._write("quoted.csv", b'name,note\nann,"a, b"\nbob,"line1\nline2"\n')
        rows = list(iter_rows(path))
        self.assertEqual(count_rows(path), 2)
        self.assertEqual(rows[0]["note"], "a, b")
        self.assertEqual(rows[1]["note"], "line1\nline2")

    def test_missing_file_raises_source_file_error(self) -> None:
        with self.assertRaises(SourceFileError):
            count_rows(self.root / "absent.csv")

    def test_non_utf8_bytes_raise_source_file_error(self) -> None:
        path = self._write("latin.csv", b"name,city\nann,\xe9vora\n")
        with self.assertRaises(SourceFileError) as ctx:
            list(iter_rows(path))
        self.assertEqual(ctx.exception.user_message, "Error reading file")

    def test_surplus_values_make_row_malformed(self) -> None:
        path = self._write("wide.csv", b"a,b\n1,2,3\n")
        row = next(iter_rows(path))
        with self.assertRaises(MalformedRowError):
            build_record_payload(row)
        self.assertEqual(raw_record_payload(row), {"a": "1", "b": "2", EXTRA_VALUES_KEY: ["3"]})

    def test_missing_trailing_values_are_null(self) -> None:
        path = self._write("short.csv", b"a,b,c\n1\n")
        row = next(iter_rows(path))
        self.assertEqual(build_record_payload(row), {"a": "1", "b": None, "c": None})

    def test_values_stay_strings_without_inference(self) -> None:
        row = {"id": "42", "price": "9.50", "name": "ann"}
        self.assertEqual(build_record_payload(row), {"id": "42", "price": "9.50", "name": "ann"})

    def test_number_inference(self) -> None:
        self.assertEqual(coerce_scalar("42", infer_numbers=True), 42)
        self.assertEqual(coerce_scalar("-3.5", infer_numbers=True), -3.5)
        self.assertEqual(coerce_scalar("007", infer_numbers=True), "007")
        self.assertEqual(coerce_scalar("1e3", infer_numbers=True), "1e3")
        self.assertEqual(coerce_scalar("", infer_numbers=True), "")
        self.assertIsNone(coerce_scalar(None, infer_numbers=True))


class TestFingerprint(unittest.TestCase):
    def test_identical_bytes_share_fingerprint(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            first = Path(tmp) / "a.csv"
            second = Path(tmp) / "b.csv"
            third = Path(tmp) / "c.csv"
            first.write_bytes(b"a,b\n1,2\n")
            second.write_bytes(b"a,b\n1,2\n")
            third.write_bytes(b"a,b\n1,3\n")

            self.assertEqual(fingerprint_file(first), fingerprint_file(second))
            self.assertNotEqual(fingerprint_file(first), fingerprint_file(third))
            self.assertEqual(len(fingerprint_file(first)), 64)

    def test_empty_file_digest(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "empty.csv"
            path.write_bytes(b"")
            self.assertEqual(
                fingerprint_file(path),
                "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855",
            )


if __name__ == "__main__":
    unittest.main()
