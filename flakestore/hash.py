"""Content hashes as they appear in lock files and store paths.

Lock files pin every input by the SHA-256 of its NAR serialization. Three
spellings of the same digest show up in the wild:

    sha256-CkMIecJm+LV/QJKg+TXPP6zUi7zN5XYNR0jKQFFx6Wk=     SRI (flake.lock)
    sha256:0a430879c266f8b57f4092a0f935cf3facd48bbccde5760d4748ca405171e969
    sha256:<52 nix32 characters>

``ContentHash.parse`` accepts all three and normalises to raw bytes, so two
locks that spell the same hash differently still compare equal.

Store path hashes use a different trick: SHA-256 is XOR-folded down to
160 bits and printed in Nix's own base32 alphabet (see ``compress_hash``
and ``nix32_encode``).
"""

import base64
import binascii
import hashlib
from dataclasses import dataclass

# Nix base32 drops e, o, t and u.
NIX32_CHARS = "0123456789abcdfghijklmnpqrsvwxyz"
_NIX32_INDEX = {c: i for i, c in enumerate(NIX32_CHARS)}

DIGEST_SIZES = {"sha1": 20, "sha256": 32, "sha512": 64}


class HashFormatError(ValueError):
    pass


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def compress_hash(digest: bytes, size: int) -> bytes:
    """XOR-fold ``digest`` into ``size`` bytes.

    Byte ``i`` of the input lands on ``i % size``, so every input byte
    contributes (unlike truncation).
    """
    folded = bytearray(size)
    for i, b in enumerate(digest):
        folded[i % size] ^= b
    return bytes(folded)


def nix32_encode(data: bytes) -> str:
    """Encode bytes in Nix base32.

    Digits are taken from the least significant 5-bit group of the whole
    little-endian number upwards and then printed most significant first,
    which is why the output looks reversed next to RFC 4648.
    """
    value = int.from_bytes(data, "little")
    length = (len(data) * 8 + 4) // 5
    digits = []
    for _ in range(length):
        digits.append(NIX32_CHARS[value & 0x1F])
        value >>= 5
    return "".join(reversed(digits))


def nix32_decode(text: str) -> bytes:
    size = len(text) * 5 // 8
    value = 0
    for ch in text:
        try:
            value = (value << 5) | _NIX32_INDEX[ch]
        except KeyError:
            raise HashFormatError(f"invalid nix32 character: {ch!r}") from None
    if value >> (size * 8):
        raise HashFormatError(f"nix32 string {text!r} overflows {size} bytes")
    return value.to_bytes(size, "little")


@dataclass(frozen=True)
class ContentHash:
    """A digest together with the algorithm that produced it."""

    algo: str
    digest: bytes

    def __post_init__(self):
        expected = DIGEST_SIZES.get(self.algo)
        if expected is None:
            raise HashFormatError(f"unsupported hash algorithm: {self.algo!r}")
        if len(self.digest) != expected:
            raise HashFormatError(
                f"{self.algo} digest must be {expected} bytes, got {len(self.digest)}"
            )

    @classmethod
    def parse(cls, text: str) -> "ContentHash":
        """Parse an SRI, ``algo:hex`` or ``algo:nix32`` hash string."""
        if ":" in text:
            algo, _, body = text.partition(":")
            size = DIGEST_SIZES.get(algo)
            if size is None:
                raise HashFormatError(f"unsupported hash algorithm in {text!r}")
            if len(body) == size * 2:
                try:
                    return cls(algo, bytes.fromhex(body))
                except ValueError:
                    raise HashFormatError(f"invalid hex digest in {text!r}") from None
            return cls(algo, nix32_decode(body))
        algo, sep, body = text.partition("-")
        if not sep:
            raise HashFormatError(f"not a hash: {text!r}")
        try:
            digest = base64.b64decode(body, validate=True)
        except binascii.Error:
            raise HashFormatError(f"invalid base64 digest in {text!r}") from None
        return cls(algo, digest)

    @classmethod
    def of(cls, data: bytes, algo: str = "sha256") -> "ContentHash":
        return cls(algo, hashlib.new(algo, data).digest())

    @property
    def sri(self) -> str:
        return f"{self.algo}-{base64.b64encode(self.digest).decode()}"

    @property
    def hex(self) -> str:
        return self.digest.hex()

    @property
    def nix32(self) -> str:
        return nix32_encode(self.digest)

    def matches(self, data: bytes) -> bool:
        return hashlib.new(self.algo, data).digest() == self.digest

    def __str__(self) -> str:
        return self.sri
