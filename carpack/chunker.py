from __future__ import annotations

import concurrent.futures as _fut
from dataclasses import dataclass
from typing import List, Optional

from multiformats import CID, multihash

from .constants import CHUNK_SIZE, CID_BASE, CODEC_RAW, HASH_FN


@dataclass(frozen=True)
class Chunk:
    cid: CID
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def raw_cid(data: bytes) -> CID:
    """CIDv1 for a raw leaf block (sha2-256 over the bytes as-is)."""
    return CID(CID_BASE, 1, CODEC_RAW, multihash.digest(data, HASH_FN))


def split_bytes(data: bytes, chunk_size: int = CHUNK_SIZE) -> List[bytes]:
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if not data:
        return [b""]
    view = memoryview(data)
    return [bytes(view[i : i + chunk_size]) for i in range(0, len(data), chunk_size)]


def chunk_bytes(
    data: bytes,
    chunk_size: int = CHUNK_SIZE,
    *,
    workers: Optional[int] = None,
) -> List[Chunk]:
    """Split ``data`` into raw leaf chunks and address each one.

    Empty input yields a single empty chunk, never zero chunks. Identical
    slices produce identical CIDs but are still returned as separate chunks.

    Args:
        data: Input buffer.
        chunk_size: Maximum chunk length in bytes.
        workers: When greater than 1, hash chunks on a thread pool. Output
            order is always the input order.
    """
    pieces = split_bytes(data, chunk_size)
    if workers and workers > 1 and len(pieces) > 1:
        with _fut.ThreadPoolExecutor(max_workers=workers) as ex:
            cids = list(ex.map(raw_cid, pieces))
    else:
        cids = [raw_cid(p) for p in pieces]
    return [Chunk(cid=c, data=p) for c, p in zip(cids, pieces)]
