"""Nix store path computation for fixed-output content.

A store path is: <store_dir>/<hash>-<name>

The <hash> is 32 characters of Nix base32 over 160 bits, computed by:
  1. Building a fingerprint: "<type>:sha256:<hex(inner_hash)>:<store_dir>:<name>"
  2. SHA-256 hashing the fingerprint
  3. XOR-folding the 32-byte digest down to 20 bytes
  4. Nix-base32 encoding the result

Cache archives are preloaded as flat fixed-output paths, which is the same
path a ``fetchurl``-style derivation with ``outputHashMode = "flat"`` and
``outputHashAlgo = "sha512"`` produces. Getting it right means the build
finds the archive already in the store and never runs the fetcher.

See: nix/src/libstore/store-api.cc: makeStorePath(), makeFixedOutputPath()
"""

import re

from nixstore.base32 import encode as b32encode
from nixstore.hash import compress_hash, sha256

STORE_DIR = "/nix/store"
HASH_BYTES = 20

# lib.strings.sanitizeDerivationName keeps at most 207 characters so that
# "<name>.drv" stays within Nix's 211 character limit.
MAX_NAME_LENGTH = 207

_VALID_NAME = re.compile(r"[A-Za-z0-9+_?=-][A-Za-z0-9+._?=-]*")
_INVALID_RUN = re.compile(r"[^A-Za-z0-9+._?=-]+")


def make_store_path(type_prefix: str, inner_hash: bytes, name: str,
                    store_dir: str = STORE_DIR) -> str:
    fingerprint = f"{type_prefix}:sha256:{inner_hash.hex()}:{store_dir}:{name}"
    compressed = compress_hash(sha256(fingerprint.encode()), HASH_BYTES)
    return f"{store_dir}/{b32encode(compressed)}-{name}"


def make_fixed_output_path(
    name: str,
    hash_algo: str,
    content_hash: bytes,
    recursive: bool = False,
    store_dir: str = STORE_DIR,
) -> str:
    """Store path of a fixed-output derivation result.

    Recursive sha256 is the one case Nix stores as a plain "source" path;
    everything else goes through the "fixed:out:" descriptor.
    """
    if recursive and hash_algo == "sha256":
        return make_store_path("source", content_hash, name, store_dir)
    method = "r:" if recursive else ""
    descriptor = f"fixed:out:{method}{hash_algo}:{content_hash.hex()}:"
    return make_store_path("output:out", sha256(descriptor.encode()), name, store_dir)


def sanitize_derivation_name(name: str) -> str:
    """Python port of nixpkgs ``lib.strings.sanitizeDerivationName``.

    The generated expression names every fetch derivation with the Nix
    version of this function, so the two must agree for preloaded paths
    to match.
    """
    if len(name) <= MAX_NAME_LENGTH and _VALID_NAME.fullmatch(name):
        return name
    cleaned = _INVALID_RUN.sub("-", name.lstrip("."))
    cleaned = cleaned[-MAX_NAME_LENGTH:]
    return cleaned or "unknown"
