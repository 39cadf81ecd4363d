from __future__ import annotations

import contextlib
import io
import os
import tempfile
import unittest
from pathlib import Path

from carpack.cli import cmd_pack, main
from carpack.constants import CHUNK_SIZE
from carpack.reader import CarReader


def _run(argv):
    out, err = io.StringIO(), io.StringIO()
    code = 0
    with contextlib.redirect_stdout(out), contextlib.redirect_stderr(err):
        try:
            main(argv)
        except SystemExit as e:
            code = e.code if isinstance(e.code, int) else 1
    return code, out.getvalue(), err.getvalue()


class CliWorkflowTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.payload = os.urandom(2 * CHUNK_SIZE + 123)
        self.src = self.tmp / "input.bin"
        self.src.write_bytes(self.payload)

    def tearDown(self):
        self._tmp.cleanup()

    def test_pack_verify_unpack(self):
        car = self.tmp / "out.car"
        code, out, _ = _run(["pack", str(self.src), str(car)])
        self.assertEqual(code, 0)
        root = CarReader.open(car).root
        self.assertIn(f"Root CID: {root}", out)

        code, out, _ = _run(["verify", str(car)])
        self.assertEqual(code, 0)
        self.assertIn("OK:", out)
        self.assertIn(f"root {root}", out)

        restored = self.tmp / "restored.bin"
        code, _, _ = _run(["unpack", str(car), str(restored)])
        self.assertEqual(code, 0)
        self.assertEqual(restored.read_bytes(), self.payload)

    def test_pack_quiet_prints_root_only(self):
        car = self.tmp / "q.car"
        with contextlib.redirect_stdout(io.StringIO()) as buf:
            root = cmd_pack(str(self.src), str(car), quiet=True)
        self.assertEqual(buf.getvalue().strip(), root)

    def test_pack_v1_and_info(self):
        car = self.tmp / "v1.car"
        code, _, _ = _run(["pack", "--v1", str(self.src), str(car)])
        self.assertEqual(code, 0)
        code, out, _ = _run(["info", str(car)])
        self.assertEqual(code, 0)
        self.assertIn("Version: 1", out)
        self.assertIn("Blocks: 4", out)

    def test_info_v2(self):
        car = self.tmp / "v2.car"
        with contextlib.redirect_stdout(io.StringIO()):
            root = cmd_pack(str(self.src), str(car), quiet=True)
        self.assertTrue(root.startswith("bafybei"))
        code, out, _ = _run(["info", str(car)])
        self.assertEqual(code, 0)
        self.assertIn(f"Root: {root}", out)
        self.assertIn("Version: 2", out)
        self.assertIn("Data offset: 51", out)
        self.assertIn("Index entries: 4", out)

    def test_verify_detects_corruption(self):
        car = self.tmp / "bad.car"
        _run(["pack", str(self.src), str(car)])
        raw = bytearray(car.read_bytes())
        raw[400] ^= 0x01
        car.write_bytes(bytes(raw))
        code, _, err = _run(["verify", str(car)])
        self.assertEqual(code, 1)
        self.assertIn("FAILED", err)

    def test_missing_input(self):
        code, _, err = _run(["pack", str(self.tmp / "nope"), str(self.tmp / "x.car")])
        self.assertEqual(code, 2)
        self.assertIn("Error:", err)

    def test_not_a_car(self):
        junk = self.tmp / "junk.car"
        junk.write_bytes(b"\x05hello world")
        code, _, err = _run(["info", str(junk)])
        self.assertEqual(code, 2)
        self.assertIn("Error:", err)


if __name__ == "__main__":
    unittest.main()
