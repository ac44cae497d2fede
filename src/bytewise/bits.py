"""Fixed-width bit vector helpers.

Bit vectors are tuples of booleans ordered most-significant bit first. Bytes
use width 8 and Unix permission triples use width 9 (owner, group, others).
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TypeVar

from .models import RGB

BitVector = tuple[bool, ...]

BYTE_WIDTH = 8
PERMISSION_WIDTH = 9
OPERATIONS = ("AND", "OR", "XOR", "NOT", "SHIFT")
UNARY_OPERATIONS = frozenset({"NOT", "SHIFT"})
PERMISSION_CLASSES = ("owner", "group", "others")
PERMISSION_NAMES = ("read", "write", "execute")
# Common permission sets, by name, as octal triplets.
PERMISSION_PRESETS = {
    "read-only": "444",
    "read-write": "664",
    "executable": "755",
    "full-access": "777",
    "restricted": "700",
}
_SYMBOLS = "rwx"
_HEX_DIGITS = frozenset("0123456789ABCDEF")

_T = TypeVar("_T")


class BitWidthError(ValueError):
    """Raised when a value does not fit the requested bit width."""


def empty(length: int = BYTE_WIDTH) -> BitVector:
    """Return an all-clear vector."""
    return (False,) * length


def to_integer(bits: Sequence[bool]) -> int:
    """Return the unsigned value of an MSB-first bit sequence."""
    value = 0
    for bit in bits:
        value = (value << 1) | int(bool(bit))
    return value


def from_integer(value: int, length: int = BYTE_WIDTH) -> BitVector:
    """Return the MSB-first vector for `value`; mask before calling for wider results."""
    if value < 0 or value >= 1 << length:
        raise BitWidthError(f"Value {value} does not fit in {length} bits.")
    return tuple(bool(value & (1 << (length - 1 - index))) for index in range(length))


def to_binary_string(bits: Sequence[bool]) -> str:
    return "".join("1" if bit else "0" for bit in bits)


def to_hex(bits: Sequence[bool]) -> str:
    """Format as upper-case hex, two digits per byte."""
    digits = max(1, (len(bits) + 3) // 4)
    return f"{to_integer(bits):0{digits}X}"


def to_octal_triplet(bits: Sequence[bool]) -> str:
    """Format a permission vector as three octal digits, e.g. `640`."""
    return "".join(str(to_integer(bits[offset : offset + 3])) for offset in range(0, len(bits), 3))


def to_symbolic(bits: Sequence[bool]) -> str:
    """Format a permission vector as `rwxr-x---` notation."""
    return "".join(_SYMBOLS[index % 3] if bit else "-" for index, bit in enumerate(bits))


def from_octal_triplet(text: str) -> BitVector | None:
    """Parse a three-digit octal permission preset like `755`."""
    stripped = text.strip()
    if len(stripped) != 3 or any(char not in "01234567" for char in stripped):
        return None
    return from_integer(int(stripped, 8), PERMISSION_WIDTH)


def from_symbolic(text: str) -> BitVector | None:
    """Parse `rw-r--r--` notation, returning None for anything else."""
    stripped = text.strip()
    if len(stripped) != PERMISSION_WIDTH:
        return None
    bits: list[bool] = []
    for index, char in enumerate(stripped):
        if char == "-":
            bits.append(False)
        elif char == _SYMBOLS[index % 3]:
            bits.append(True)
        else:
            return None
    return tuple(bits)


def describe_permissions(bits: Sequence[bool]) -> str:
    """Describe a permission vector in plain language."""
    parts: list[str] = []
    for index, user_class in enumerate(PERMISSION_CLASSES):
        granted = [name for offset, name in enumerate(PERMISSION_NAMES) if bits[index * 3 + offset]]
        if granted:
            parts.append(f"{user_class} can {', '.join(granted)}")
        else:
            parts.append(f"{user_class} has no permissions")
    return "; ".join(parts)


def sanitize_hex(text: str, max_digits: int = 2) -> str:
    """Keep only hex digits, upper-cased and truncated."""
    return "".join(char for char in text.upper() if char in _HEX_DIGITS)[:max_digits]


def parse_bits(text: str, length: int = BYTE_WIDTH) -> BitVector | None:
    """Parse a string of exactly `length` binary digits; separators are ignored."""
    digits = text.strip().replace(" ", "").replace("_", "")
    if len(digits) != length or any(char not in "01" for char in digits):
        return None
    return tuple(char == "1" for char in digits)


def toggle(bits: Sequence[bool], index: int) -> BitVector:
    """Return a copy with one bit flipped."""
    if not 0 <= index < len(bits):
        raise IndexError(index)
    return tuple(not bit if position == index else bool(bit) for position, bit in enumerate(bits))


def apply_operation(operation: str, first: Sequence[bool], second: Sequence[bool] | None = None) -> BitVector:
    """Apply one bitwise operation to byte vectors."""
    if operation == "AND":
        return tuple(bool(a) and bool(b) for a, b in zip(first, _require(second), strict=True))
    if operation == "OR":
        return tuple(bool(a) or bool(b) for a, b in zip(first, _require(second), strict=True))
    if operation == "XOR":
        return tuple(bool(a) != bool(b) for a, b in zip(first, _require(second), strict=True))
    if operation == "NOT":
        return tuple(not bit for bit in first)
    if operation == "SHIFT":
        # Left shift by one; the most significant bit falls off.
        return tuple(bool(bit) for bit in first[1:]) + (False,)
    raise ValueError(f"Unknown operation: {operation}")


def apply_operation_to_values(operation: str, first: int, second: int | None = None) -> int:
    """Integer form of `apply_operation`, masked to one byte."""
    if operation == "AND":
        return first & _require(second)
    if operation == "OR":
        return first | _require(second)
    if operation == "XOR":
        return first ^ _require(second)
    if operation == "NOT":
        return ~first & 0xFF
    if operation == "SHIFT":
        return (first << 1) & 0xFF
    raise ValueError(f"Unknown operation: {operation}")


def character_to_bits(character: str) -> BitVector:
    """Return the byte vector of an ASCII character; anything else is all-clear."""
    if not character or ord(character[0]) > 127:
        return empty()
    return from_integer(ord(character[0]))


def bits_to_character(bits: Sequence[bool]) -> str | None:
    """Return the ASCII character for a byte vector, or None above 127."""
    value = to_integer(bits)
    if value > 127:
        return None
    return chr(value)


def rgb_hex(rgb: RGB) -> str:
    return f"#{rgb.red:02X}{rgb.green:02X}{rgb.blue:02X}"


def _require(second: _T | None) -> _T:
    if second is None:
        raise ValueError("Binary operation requires a second operand.")
    return second
