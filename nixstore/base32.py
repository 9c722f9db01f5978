"""Nix base32 encoding.

Nix prints store path hashes with its own base32 flavour:

1. Alphabet: "0123456789abcdfghijklmnpqrsvwxyz" (no e, o, t, u).
2. Digit order: the input is read as one little-endian integer and the
   5-bit digits are printed most significant first. RFC 4648 instead walks
   the bytes from the front, so the two encodings share nothing but length.

   See: nix/src/libutil/hash.cc: printHash32()

Output length is ceil(n*8/5): a 20-byte store path hash gives 32 characters.
"""

CHARS = "0123456789abcdfghijklmnpqrsvwxyz"


def encoded_length(n: int) -> int:
    return (n * 8 + 4) // 5


def encode(data: bytes) -> str:
    """Encode bytes to Nix base32."""
    value = int.from_bytes(data, "little")
    digits = [
        CHARS[(value >> (i * 5)) & 0x1F]
        for i in reversed(range(encoded_length(len(data))))
    ]
    return "".join(digits)
