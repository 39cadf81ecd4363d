from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Tuple

import dag_cbor
from multiformats import CID, varint

from .constants import CARV1_VERSION, CID_BASE
from .dagpb import decode_cid, read_varint
from .errors import CarFormatError, StructuralError


logger = logging.getLogger(__name__)


def encode_header(roots: List[CID]) -> bytes:
    header = dag_cbor.encode({"version": CARV1_VERSION, "roots": list(roots)})
    return varint.encode(len(header)) + header


class CarV1Writer:
    """Accumulates a CARv1 payload in memory.

    Offsets are recorded as each record is written: ``offsets[cid]`` is the
    position of the record's length prefix relative to the start of the
    payload (the header included).
    """

    def __init__(self, roots: List[CID]):
        if not roots:
            raise StructuralError("CARv1 requires at least one root")
        self.roots = list(roots)
        self._buf = bytearray(encode_header(self.roots))
        self.offsets: Dict[str, int] = {}
        self._closed = False

    def put(self, cid: CID, block: bytes) -> int:
        if self._closed:
            raise ValueError("writer is closed")
        key = str(cid)
        if key in self.offsets:
            return self.offsets[key]
        cid_bytes = bytes(cid)
        off = len(self._buf)
        self._buf += varint.encode(len(cid_bytes) + len(block))
        self._buf += cid_bytes
        self._buf += block
        self.offsets[key] = off
        return off

    def close(self) -> bytes:
        self._closed = True
        return bytes(self._buf)


@dataclass
class CarV1Payload:
    data: bytes
    # CID string -> offset of the record's length prefix within ``data``
    offsets: Dict[str, int] = field(default_factory=dict)


def encode_carv1(nodes: Mapping[str, bytes], root: CID) -> CarV1Payload:
    """Write every node, in mapping order, after a header naming ``root``."""
    if not nodes:
        raise StructuralError("cannot encode an empty node set")
    if str(root) not in nodes:
        raise StructuralError(f"root {root} is not in the node set")
    writer = CarV1Writer([root])
    for cid_str, block in nodes.items():
        writer.put(CID.decode(cid_str), block)
    data = writer.close()
    logger.debug("CARv1 written: %d blocks, %d bytes", len(writer.offsets), len(data))
    return CarV1Payload(data=data, offsets=writer.offsets)


# -------- Scanning --------

@dataclass
class CarV1Record:
    offset: int  # start of the length prefix
    cid: CID
    block_offset: int
    block: bytes

    @property
    def length(self) -> int:
        return self.block_offset + len(self.block) - self.offset


def _cid_length(view: memoryview, pos: int) -> int:
    start = pos
    if len(view) - pos >= 2 and view[pos] == 0x12 and view[pos + 1] == 0x20:
        return 34  # CIDv0: bare sha2-256 multihash
    _version, pos = read_varint(view, pos)
    _codec, pos = read_varint(view, pos)
    _hash_code, pos = read_varint(view, pos)
    digest_len, pos = read_varint(view, pos)
    return pos + digest_len - start


def read_header(data: bytes) -> Tuple[dict, int]:
    """Decode the CARv1 header; returns (header, offset of the first record)."""
    view = memoryview(data)
    length, pos = read_varint(view, 0)
    if length == 0 or pos + length > len(view):
        raise CarFormatError("CARv1 header is truncated")
    try:
        header = dag_cbor.decode(bytes(view[pos : pos + length]))
    except Exception as exc:
        raise CarFormatError(f"CARv1 header is not valid dag-cbor: {exc}") from exc
    if not isinstance(header, dict) or header.get("version") != CARV1_VERSION:
        raise CarFormatError(f"unsupported CARv1 header: {header!r}")
    roots = header.get("roots")
    if not isinstance(roots, list) or not roots:
        raise CarFormatError("CARv1 header has no roots")
    if not all(isinstance(root, CID) for root in roots):
        raise CarFormatError("CARv1 header roots must be CIDs")
    header["roots"] = [root if root.version == 0 else root.set(base=CID_BASE) for root in roots]
    return header, pos + length


def iter_carv1(data: bytes) -> Iterator[CarV1Record]:
    """Forward scan over the records of a CARv1 payload, header skipped."""
    view = memoryview(data)
    _header, pos = read_header(data)
    while pos < len(view):
        start = pos
        length, pos = read_varint(view, pos)
        end = pos + length
        if length == 0 or end > len(view):
            raise CarFormatError(f"truncated record at offset {start}")
        cid_len = _cid_length(view, pos)
        if cid_len > length:
            raise CarFormatError(f"record at offset {start} is shorter than its CID")
        cid = decode_cid(bytes(view[pos : pos + cid_len]))
        yield CarV1Record(
            offset=start,
            cid=cid,
            block_offset=pos + cid_len,
            block=bytes(view[pos + cid_len : end]),
        )
        pos = end
