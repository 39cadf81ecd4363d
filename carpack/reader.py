from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Union

from multiformats import CID, multihash

from .carv1 import CarV1Record, iter_carv1, read_header
from .carv2 import CarV2Header, read_carv2_header
from .constants import (
    CARV2_DATA_OFFSET,
    CARV2_PRAGMA,
    CODEC_DAG_PB,
    CODEC_RAW,
    PRAGMA_SIZE,
)
from .dagpb import decode_node, decode_unixfs_file
from .errors import CarFormatError, IntegrityError
from .index import IndexEntry, iter_index_entries


class CarReader:
    """Read-only view over a CAR buffer produced by carpack.

    Accepts CARv2 (pragma, header, CARv1 payload, multihash-sorted index) or
    a bare CARv1 payload. Everything is parsed eagerly on construction.
    """

    def __init__(self, data: bytes):
        self.data = bytes(data)
        self.header: Optional[CarV2Header] = None
        self.index: List[IndexEntry] = []
        if self.data[:PRAGMA_SIZE] == CARV2_PRAGMA:
            self.version = 2
            self.header = read_carv2_header(self.data)
            self._check_header(self.header)
            h = self.header
            self.payload = self.data[h.data_offset : h.data_offset + h.data_size]
            if h.index_offset < len(self.data):
                self.index = list(iter_index_entries(self.data[h.index_offset :]))
        else:
            self.version = 1
            self.payload = self.data
        car_header, _ = read_header(self.payload)
        self.roots: List[CID] = list(car_header["roots"])
        self.records: List[CarV1Record] = list(iter_carv1(self.payload))
        self._blocks: Dict[bytes, CarV1Record] = {}
        for rec in self.records:
            self._blocks.setdefault(bytes(rec.cid), rec)

    @classmethod
    def open(cls, path: Union[str, Path]) -> "CarReader":
        return cls(Path(path).read_bytes())

    def _check_header(self, h: CarV2Header) -> None:
        if h.data_offset != CARV2_DATA_OFFSET:
            raise CarFormatError(f"unexpected data offset {h.data_offset}")
        if h.data_offset + h.data_size > len(self.data):
            raise CarFormatError("CARv1 payload extends past end of archive")
        if h.index_offset != 0 and h.index_offset != h.data_offset + h.data_size:
            raise CarFormatError("index offset does not follow the CARv1 payload")

    @property
    def root(self) -> CID:
        return self.roots[0]

    def get(self, cid: Union[CID, str]) -> bytes:
        key = bytes(CID.decode(cid) if isinstance(cid, str) else cid)
        rec = self._blocks.get(key)
        if rec is None:
            raise IntegrityError(f"block {cid} is missing from the archive")
        return rec.block

    def verify(self) -> None:
        """Check block digests, the root, and every index entry.

        Raises IntegrityError on the first inconsistency.
        """
        for rec in self.records:
            expected = multihash.digest(rec.block, rec.cid.hashfun.name)
            if expected != rec.cid.digest:
                raise IntegrityError(f"digest mismatch for block {rec.cid} at offset {rec.offset}")
        for root in self.roots:
            self.get(root)
        if self.version == 2:
            self._verify_index()

    def _verify_index(self) -> None:
        if not self.index:
            raise IntegrityError("archive has no index")
        by_offset = {rec.offset: rec for rec in self.records}
        prev = b""
        for entry in self.index:
            if entry.digest < prev:
                raise IntegrityError("index entries are not sorted by digest")
            prev = entry.digest
            rec = by_offset.get(entry.offset)
            if rec is None:
                raise IntegrityError(f"index offset {entry.offset} does not start a record")
            if rec.cid.raw_digest != entry.digest:
                raise IntegrityError(f"index entry at offset {entry.offset} names the wrong block")
        if len(self.index) != len(self.records):
            raise IntegrityError(
                f"index has {len(self.index)} entries for {len(self.records)} blocks"
            )

    def extract(self) -> bytes:
        """Reassemble file content by walking the DAG from the root."""
        out = bytearray()
        stack = [self.root]
        while stack:
            cid = stack.pop()
            block = self.get(cid)
            codec = cid.codec.name
            if codec == CODEC_RAW:
                out += block
            elif codec == CODEC_DAG_PB:
                node = decode_node(block)
                if node.data is not None:
                    leaf = decode_unixfs_file(node.data)
                    if leaf.data:
                        out += leaf.data
                stack.extend(link.cid for link in reversed(node.links))
            else:
                raise CarFormatError(f"unsupported codec {codec} for block {cid}")
        return bytes(out)
