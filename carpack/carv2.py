from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from typing import Optional

from multiformats import CID

from .carv1 import encode_carv1
from .chunker import chunk_bytes
from .constants import CARV2_DATA_OFFSET, CARV2_PRAGMA, PRAGMA_SIZE
from .errors import CarFormatError
from .index import build_multihash_index_sorted, entries_from_offsets
from .tree import build_tree


logger = logging.getLogger(__name__)


# characteristics (2 x u64), data_offset, data_size, index_offset
_CARV2_HEADER_STRUCT = struct.Struct("<QQQQQ")


@dataclass
class CarV2Header:
    data_offset: int
    data_size: int
    index_offset: int
    characteristics: tuple = (0, 0)

    def pack(self) -> bytes:
        lo, hi = self.characteristics
        return _CARV2_HEADER_STRUCT.pack(lo, hi, self.data_offset, self.data_size, self.index_offset)

    @classmethod
    def for_payload(cls, data_size: int) -> "CarV2Header":
        return cls(
            data_offset=CARV2_DATA_OFFSET,
            data_size=data_size,
            index_offset=CARV2_DATA_OFFSET + data_size,
        )


def read_carv2_header(data: bytes) -> CarV2Header:
    if len(data) < CARV2_DATA_OFFSET:
        raise CarFormatError("CARv2 archive too short")
    if bytes(data[:PRAGMA_SIZE]) != CARV2_PRAGMA:
        raise CarFormatError("Bad CARv2 pragma")
    lo, hi, data_offset, data_size, index_offset = _CARV2_HEADER_STRUCT.unpack_from(data, PRAGMA_SIZE)
    return CarV2Header(
        data_offset=data_offset,
        data_size=data_size,
        index_offset=index_offset,
        characteristics=(lo, hi),
    )


@dataclass
class CarArchive:
    data: bytes
    root: CID
    carv1_size: int
    index_size: int
    block_count: int
    chunk_count: int

    @property
    def root_cid(self) -> str:
        return str(self.root)


def pack(data: bytes, *, workers: Optional[int] = None) -> CarArchive:
    """Encode ``data`` as a CARv2 archive with a multihash-sorted index.

    Pipeline: chunk, build the DAG, write CARv1 (recording offsets), build
    the index, then frame ``pragma || header || carv1 || index``.
    """
    chunks = chunk_bytes(data, workers=workers)
    tree = build_tree(chunks)
    carv1 = encode_carv1(tree.nodes, tree.root)
    index = build_multihash_index_sorted(
        entries_from_offsets((CID.decode(k), off) for k, off in carv1.offsets.items())
    )
    header = CarV2Header.for_payload(len(carv1.data))
    out = b"".join((CARV2_PRAGMA, header.pack(), carv1.data, index))

    logger.debug(
        "CARv2 built with %d chunks and %d total nodes (depth %d)",
        len(chunks),
        len(tree.nodes),
        tree.depth,
    )
    logger.debug("Root CID: %s; CARv1 %d bytes; index %d bytes", tree.root, len(carv1.data), len(index))

    return CarArchive(
        data=out,
        root=tree.root,
        carv1_size=len(carv1.data),
        index_size=len(index),
        block_count=len(tree.nodes),
        chunk_count=len(chunks),
    )


def encode(data: bytes) -> bytes:
    return pack(data).data


def pack_v1(data: bytes, *, workers: Optional[int] = None) -> CarArchive:
    """Plain CARv1 archive (no pragma, header or index)."""
    chunks = chunk_bytes(data, workers=workers)
    tree = build_tree(chunks)
    carv1 = encode_carv1(tree.nodes, tree.root)
    logger.debug("CARv1 built with %d chunks and %d total nodes", len(chunks), len(tree.nodes))
    logger.debug("Root CID: %s", tree.root)
    return CarArchive(
        data=carv1.data,
        root=tree.root,
        carv1_size=len(carv1.data),
        index_size=0,
        block_count=len(tree.nodes),
        chunk_count=len(chunks),
    )


def encode_v1(data: bytes) -> bytes:
    return pack_v1(data).data
