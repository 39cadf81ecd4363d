"""
carpack: deterministic content-addressable archives (CAR) from byte buffers.

Features:

- Fixed 256 KiB raw-leaf chunking with sha2-256 CIDv1 addressing.
- Balanced UnixFS/dag-pb file DAG, at most 174 links per stem.
- CARv1 payload with inline record offsets.
- CARv2 framing with a "multihash index sorted" index for random access.
- Reader/verifier and CLI helpers for carpack-produced archives.

The public contract is full buffer in, full buffer out:

    >>> from carpack import pack
    >>> archive = pack(b"hello")
    >>> archive.root_cid.startswith("bafkrei")
    True
"""

from .carv2 import CarArchive, encode, encode_v1, pack, pack_v1
from .errors import CarError

__version__ = "0.1"

__all__ = [
    "CarArchive",
    "CarError",
    "encode",
    "encode_v1",
    "pack",
    "pack_v1",
    "constants",
    "chunker",
    "tree",
    "carv1",
    "index",
    "carv2",
    "reader",
]
