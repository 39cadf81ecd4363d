from __future__ import annotations


# Chunking and DAG shape
CHUNK_SIZE = 262_144  # 256 KiB
MAX_LINKS = 174  # matches go-car / ipfs-unixfs-importer default fan-out

# Codecs and hash functions
CODEC_RAW = "raw"
CODEC_DAG_PB = "dag-pb"
HASH_FN = "sha2-256"
CID_BASE = "base32"

SHA2_256_CODE = 0x12
SHA2_256_DIGEST_SIZE = 32

# CARv1
CARV1_VERSION = 1

# CARv2 pragma: dag-cbor {"version": 2} prefixed with its length (0x0a)
CARV2_PRAGMA = bytes(
    [0x0A, 0xA1, 0x67, 0x76, 0x65, 0x72, 0x73, 0x69, 0x6F, 0x6E, 0x02]
)
PRAGMA_SIZE = 11
CARV2_HEADER_SIZE = 40
CARV2_DATA_OFFSET = PRAGMA_SIZE + CARV2_HEADER_SIZE

# Multihash index sorted
MULTIHASH_INDEX_SORTED_CODE = 0x0401
INDEX_BUCKET_COUNT = 1  # one multihash code (sha2-256)
INDEX_WIDTH_COUNT = 1  # one digest length within that code
INDEX_ENTRY_SIZE = SHA2_256_DIGEST_SIZE + 8  # digest || u64 offset

# UnixFS Data.DataType
UNIXFS_TYPE_FILE = 2
