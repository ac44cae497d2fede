"""Binary file-size unit conversion (powers of 1024)."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum


class FileSizeUnit(str, Enum):
    """IEC binary size units."""

    BYTE = "B"
    KIBIBYTE = "KiB"
    MEBIBYTE = "MiB"
    GIBIBYTE = "GiB"
    TEBIBYTE = "TiB"

    @property
    def multiplier(self) -> int:
        return 1024 ** list(FileSizeUnit).index(self)

    @property
    def explanation(self) -> str:
        if self is FileSizeUnit.BYTE:
            return "1 byte = 8 bits"
        exponent = 10 * list(FileSizeUnit).index(self)
        previous = list(FileSizeUnit)[list(FileSizeUnit).index(self) - 1]
        previous_name = "bytes" if previous is FileSizeUnit.BYTE else previous.value
        return f"1 {self.value} = 1,024 {previous_name} (2^{exponent})"


@dataclass(frozen=True)
class ConversionResult:
    """One conversion with its worked steps."""

    source_value: float
    source_unit: FileSizeUnit
    target_value: float
    target_unit: FileSizeUnit
    steps: tuple[str, ...]

    @property
    def formatted(self) -> str:
        return f"{self.source_value:.2f} {self.source_unit.value} = {self.target_value:.2f} {self.target_unit.value}"


def parse_unit(text: str) -> FileSizeUnit | None:
    """Match a unit symbol case-insensitively."""
    lowered = text.strip().lower()
    for unit in FileSizeUnit:
        if unit.value.lower() == lowered:
            return unit
    return None


def parse_size(text: str) -> float | None:
    """Parse a finite, non-negative number or return None."""
    try:
        value = float(text.strip())
    except ValueError:
        return None
    if not math.isfinite(value) or value < 0:
        return None
    return value


def convert(value: float, source: FileSizeUnit, target: FileSizeUnit) -> ConversionResult:
    """Convert `value` between units via bytes."""
    source_bytes = value * source.multiplier
    result = source_bytes / target.multiplier
    steps = (
        f"{value:g} {source.value} x {source.multiplier:,} = {source_bytes:,.0f} bytes",
        f"{source_bytes:,.0f} bytes / {target.multiplier:,} = {result:.2f} {target.value}",
    )
    return ConversionResult(
        source_value=value,
        source_unit=source,
        target_value=result,
        target_unit=target,
        steps=steps,
    )
