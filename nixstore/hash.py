"""Hash helpers shared by store path computation and cache indexing.

See: nix/src/libutil/hash.cc: compressHash()
"""

import hashlib
from pathlib import Path

CHUNK_SIZE = 1 << 16


def compress_hash(digest: bytes, size: int) -> bytes:
    """XOR-fold a digest down to ``size`` bytes.

    Byte i of the digest lands on position i % size, so a 32-byte sha256
    folds its last 12 bytes back onto the first 12 of a 20-byte result.
    """
    folded = bytearray(size)
    for i, b in enumerate(digest):
        folded[i % size] ^= b
    return bytes(folded)


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def sha512_file_hex(path: str | Path) -> str:
    """Hex sha512 of a file's bytes, read in chunks.

    This is the checksum Yarn stores for cache archives (after the
    ``<cacheKey>/`` prefix) and the hash Nix checks for a flat
    ``outputHashAlgo = "sha512"`` fixed-output derivation.
    """
    h = hashlib.sha512()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            h.update(chunk)
    return h.hexdigest()
