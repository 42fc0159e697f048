#!/usr/bin/env python3
"""
Tests for extracting catalog entries from a rescued image.
"""

import unittest
import tempfile
import sys
from pathlib import Path
from io import BytesIO, StringIO
from unittest.mock import patch

# Add parent directory to path to import the module
sys.path.insert(0, str(Path(__file__).parent.parent))

from ddrescue_cmp import RescueMap, CatalogEntry, extract_files


class TestExtractFiles(unittest.TestCase):
    """Tests for extract_files()."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.TemporaryDirectory()
        self.output_dir = Path(self.temp_dir.name) / "extracted"
        self.data = bytes((i * 7) % 256 for i in range(8192))
        self.image = BytesIO(self.data)
        self.output = StringIO()

        self.rescue_map = RescueMap()
        self.rescue_map.insert(0, 2048)
        self.rescue_map.insert(4096, 4096)

    def tearDown(self):
        """Clean up test fixtures."""
        self.temp_dir.cleanup()

    def extract(self, entries, **kwargs):
        catalog = {entry.name: entry for entry in entries}
        return extract_files(catalog, self.rescue_map, self.image, self.output_dir, self.output, **kwargs)

    def test_entry_equal_to_rescued_range(self):
        """An entry covering exactly one rescued range is copied byte-for-byte."""
        extracted = self.extract([CatalogEntry("A.BIN", 0, 2048)])

        self.assertEqual(extracted, ["A.BIN"])
        self.assertEqual((self.output_dir / "A.BIN").read_bytes(), self.data[0:2048])
        self.assertEqual(self.output.getvalue(), "Extracted file A.BIN\n")

    def test_entry_inside_rescued_range(self):
        self.extract([CatalogEntry("B.BIN", 5000, 1234)], buffer_size=100)

        self.assertEqual((self.output_dir / "B.BIN").read_bytes(), self.data[5000:6234])

    def test_entry_straddling_gap(self):
        """An entry spanning unrescued data is reported and not written."""
        extracted = self.extract([CatalogEntry("GAP.BIN", 1024, 4096)])

        self.assertEqual(extracted, [])
        self.assertEqual(self.output.getvalue(), "Missing data for GAP.BIN can't extract.\n")
        self.assertFalse((self.output_dir / "GAP.BIN").exists())

    def test_output_dir_not_created_without_extractable_entries(self):
        self.extract([CatalogEntry("GAP.BIN", 3000, 10)])

        self.assertFalse(self.output_dir.exists())

    def test_entry_before_all_ranges(self):
        self.rescue_map = RescueMap()
        self.rescue_map.insert(4096, 100)

        extracted = self.extract([CatalogEntry("EARLY.BIN", 0, 10)])

        self.assertEqual(extracted, [])
        self.assertIn("Missing data for EARLY.BIN", self.output.getvalue())

    def test_mixed_entries_processed_in_name_order(self):
        extracted = self.extract([
            CatalogEntry("Z.BIN", 4096, 10),
            CatalogEntry("M.BIN", 2048, 10),
            CatalogEntry("A.BIN", 0, 10),
        ])

        self.assertEqual(extracted, ["A.BIN", "Z.BIN"])
        self.assertEqual(self.output.getvalue(),
                         "Extracted file A.BIN\n"
                         "Missing data for M.BIN can't extract.\n"
                         "Extracted file Z.BIN\n")

    def test_existing_output_dir_reused(self):
        self.output_dir.mkdir()

        self.extract([CatalogEntry("A.BIN", 0, 10)])

        self.assertTrue((self.output_dir / "A.BIN").exists())

    def test_short_read_raises_ioerror(self):
        """A range the log claims was rescued but the image lacks is fatal."""
        self.rescue_map = RescueMap()
        self.rescue_map.insert(8000, 1000)

        with self.assertRaises(IOError):
            self.extract([CatalogEntry("TRUNC.BIN", 8000, 1000)])

    def test_short_read_removes_partial_file(self):
        self.rescue_map = RescueMap()
        self.rescue_map.insert(8000, 1000)

        with self.assertRaises(IOError):
            self.extract([CatalogEntry("TRUNC.BIN", 8000, 1000)], buffer_size=100)

        self.assertTrue(self.output_dir.exists())
        self.assertFalse((self.output_dir / "TRUNC.BIN").exists())
        self.assertEqual(self.output.getvalue(), "")

    def test_name_escaping_output_dir_raises(self):
        with self.assertRaises(ValueError):
            self.extract([CatalogEntry("..", 0, 10)])

    def test_empty_catalog(self):
        self.assertEqual(self.extract([]), [])
        self.assertFalse(self.output_dir.exists())

    def test_verbose_log_receives_fingerprint(self):
        messages = []

        self.extract([CatalogEntry("A.BIN", 0, 16)], log=messages.append)

        self.assertEqual(len(messages), 1)
        self.assertTrue(messages[0].startswith("A.BIN: 16 bytes at 0x0 (mmh3 "))

    def test_no_fingerprint_without_log(self):
        with patch('ddrescue_cmp.mmh3.mmh3_x64_128') as hasher:
            extracted = self.extract([CatalogEntry("A.BIN", 0, 16)])

        self.assertEqual(extracted, ["A.BIN"])
        self.assertEqual((self.output_dir / "A.BIN").read_bytes(), self.data[0:16])
        hasher.assert_not_called()


if __name__ == '__main__':
    unittest.main()
