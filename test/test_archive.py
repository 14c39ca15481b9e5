import io
import unittest
import zipfile

from emotepack.archive import ArchiveAssembler
from emotepack.errors import ArchiveFinalizeFailed, ArchiveWriteFailed, PathCollision


def build(entries):
    assembler = ArchiveAssembler()
    for path, data in entries:
        assembler.add(path, data)
    return assembler.finalize()


class TestArchiveAssembler(unittest.TestCase):
    def test_entries_round_trip(self):
        data = build([("Pack/core.lua", b"lua"), ("Pack/42/pog.tga", b"\x00\x01")])

        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            self.assertEqual(zf.namelist(), ["Pack/core.lua", "Pack/42/pog.tga"])
            self.assertEqual(zf.read("Pack/42/pog.tga"), b"\x00\x01")
            self.assertEqual(zf.getinfo("Pack/core.lua").compress_type, zipfile.ZIP_DEFLATED)
            self.assertIsNone(zf.testzip())

    def test_identical_inputs_give_identical_bytes(self):
        entries = [("Pack/a.txt", b"a" * 100), ("Pack/b/c.txt", b"c")]
        self.assertEqual(build(entries), build(entries))

    def test_duplicate_path_is_a_collision(self):
        assembler = ArchiveAssembler()
        assembler.add("Pack/a.txt", b"1")
        with self.assertRaises(PathCollision):
            assembler.add("Pack/a.txt", b"2")

    def test_no_writes_after_finalize(self):
        assembler = ArchiveAssembler()
        assembler.add("Pack/a.txt", b"1")
        assembler.finalize()
        self.assertTrue(assembler.closed)
        with self.assertRaises(ArchiveWriteFailed):
            assembler.add("Pack/b.txt", b"2")

    def test_second_finalize_is_rejected(self):
        assembler = ArchiveAssembler()
        assembler.finalize()
        with self.assertRaises(ArchiveFinalizeFailed):
            assembler.finalize()

    def test_invalid_paths_are_refused(self):
        assembler = ArchiveAssembler()
        for path in ("", "/abs.txt", "Pack/../x", "Pack//x", "Pack\\x", "./x"):
            with self.subTest(path=path):
                with self.assertRaises(ArchiveWriteFailed):
                    assembler.add(path, b"")

    def test_empty_archive_is_valid(self):
        with zipfile.ZipFile(io.BytesIO(build([]))) as zf:
            self.assertEqual(zf.namelist(), [])

    def test_discard_closes_without_output(self):
        assembler = ArchiveAssembler()
        assembler.add("Pack/a.txt", b"1")
        assembler.discard()
        self.assertTrue(assembler.closed)
        with self.assertRaises(ArchiveFinalizeFailed):
            assembler.finalize()


if __name__ == "__main__":
    unittest.main()
