from __future__ import annotations

import unittest

import dag_cbor
from multiformats import CID, varint

from carpack.carv1 import CarV1Writer, encode_carv1, iter_carv1, read_header
from carpack.chunker import chunk_bytes
from carpack.dagpb import decode_cid
from carpack.errors import CarFormatError, StructuralError
from carpack.tree import build_tree


def _tree(n: int = 20):
    data = b"".join(i.to_bytes(2, "big") for i in range(n))
    return build_tree(chunk_bytes(data, chunk_size=2), max_links=4)


class CarV1EncodeTests(unittest.TestCase):
    def test_header(self):
        tree = _tree()
        payload = encode_carv1(tree.nodes, tree.root)
        length, nread, rest = varint.decode_raw(payload.data)
        header = dag_cbor.decode(bytes(rest[:length]))
        self.assertEqual(header["version"], 1)
        self.assertEqual([bytes(r) for r in header["roots"]], [bytes(tree.root)])
        decoded, first = read_header(payload.data)
        self.assertEqual(first, nread + length)
        self.assertEqual(str(decoded["roots"][0]), str(tree.root))

    def test_offsets_point_at_records(self):
        tree = _tree()
        payload = encode_carv1(tree.nodes, tree.root)
        self.assertEqual(set(payload.offsets), set(tree.nodes))
        for cid_str, off in payload.offsets.items():
            cid_bytes = bytes(CID.decode(cid_str))
            block = tree.nodes[cid_str]
            length, nread, _ = varint.decode_raw(payload.data[off:])
            self.assertEqual(length, len(cid_bytes) + len(block))
            start = off + nread
            self.assertEqual(payload.data[start : start + len(cid_bytes)], cid_bytes)
            self.assertEqual(payload.data[start + len(cid_bytes) : start + length], block)

    def test_write_order_is_node_order(self):
        tree = _tree()
        payload = encode_carv1(tree.nodes, tree.root)
        records = list(iter_carv1(payload.data))
        self.assertEqual([str(r.cid) for r in records], list(tree.nodes))
        self.assertEqual([r.offset for r in records], sorted(payload.offsets.values()))
        self.assertEqual({str(r.cid): r.offset for r in records}, payload.offsets)

    def test_reproducible(self):
        a = encode_carv1(_tree().nodes, _tree().root)
        b = encode_carv1(_tree().nodes, _tree().root)
        self.assertEqual(a.data, b.data)

    def test_empty_node_set(self):
        root = chunk_bytes(b"x")[0].cid
        with self.assertRaises(StructuralError):
            encode_carv1({}, root)

    def test_root_missing(self):
        tree = _tree()
        stray = chunk_bytes(b"not in the tree")[0].cid
        with self.assertRaises(StructuralError):
            encode_carv1(tree.nodes, stray)

    def test_writer_skips_duplicate_cid(self):
        chunk = chunk_bytes(b"dup")[0]
        w = CarV1Writer([chunk.cid])
        first = w.put(chunk.cid, chunk.data)
        again = w.put(chunk.cid, chunk.data)
        data = w.close()
        self.assertEqual(first, again)
        self.assertEqual(len(list(iter_carv1(data))), 1)
        with self.assertRaises(ValueError):
            w.put(chunk.cid, chunk.data)


class CarV1ScanTests(unittest.TestCase):
    def test_truncated_record(self):
        tree = _tree()
        data = encode_carv1(tree.nodes, tree.root).data
        with self.assertRaises(CarFormatError):
            list(iter_carv1(data[:-1]))

    def test_garbage_header(self):
        with self.assertRaises(CarFormatError):
            read_header(b"\x05hello")

    def test_empty_block_record(self):
        chunk = chunk_bytes(b"")[0]
        data = encode_carv1({str(chunk.cid): b""}, chunk.cid).data
        (rec,) = list(iter_carv1(data))
        self.assertEqual(rec.block, b"")
        self.assertEqual(str(rec.cid), str(chunk.cid))

    def test_decoded_cid_uses_encoder_base(self):
        tree = _tree()
        self.assertEqual(str(decode_cid(bytes(tree.root))), str(tree.root))
        with self.assertRaises(CarFormatError):
            decode_cid(b"\x01\x70")


if __name__ == "__main__":
    unittest.main()
