"""Challenge variants: target domains, comparators and scoring constants.

Each game is the same engine driven by a different variant. A variant knows
how to draw a target, how to turn the player's raw input into a comparable
value, whether that value matches, and how many points a match is worth.
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import cast

from . import bits
from .content_loader import load_permission_scenarios
from .models import RGB, PermissionScenario

TimeBonus = Callable[[int], int]

COLOR_TOLERANCE = 0.05
PRINTABLE_ASCII = (32, 126)


def capped_half_time_bonus(remaining: int) -> int:
    """Half the remaining seconds, at most 10."""
    return min(10, remaining // 2)


def double_time_bonus(remaining: int) -> int:
    return remaining * 2


@dataclass(frozen=True)
class ScoringRules:
    """Points for one correct answer."""

    base_points: int
    streak_bonus: int
    time_bonus: TimeBonus

    def points(self, remaining: int, streak: int) -> int:
        """Return base + time bonus + streak bonus."""
        return self.base_points + self.time_bonus(max(0, remaining)) + max(0, streak) * self.streak_bonus


@dataclass(frozen=True)
class VariantRules:
    """Configuration constants of one challenge variant.

    `completion_score` of None means finishing a session counts as completing
    the module. `cumulative_progress` adds session scores to the stored module
    score instead of replacing it.
    """

    module_key: str
    title: str
    duration: int
    scoring: ScoringRules
    history_cap: int
    completion_score: int | None
    end_on_completion: bool = False
    max_rounds: int | None = None
    time_refund: int = 0
    cumulative_progress: bool = False


@dataclass(frozen=True)
class OperationTarget:
    """Bitwise challenge: operands drawn at random and the expected result."""

    operation: str
    first: int
    second: int | None
    result: int


@dataclass(frozen=True)
class OperandInput:
    """Player operands for a bitwise challenge."""

    first: tuple[bool, ...]
    second: tuple[bool, ...] | None = None


class ChallengeVariant(ABC):
    """Policy object plugged into `ChallengeEngine`."""

    rules: VariantRules
    # Variants that take typed or confirmed answers rather than live bit toggles.
    requires_confirm = False

    @property
    def module_key(self) -> str:
        return self.rules.module_key

    @abstractmethod
    def generate_target(self, rng: random.Random) -> object:
        """Draw a new target uniformly from the variant's domain."""

    @abstractmethod
    def derive(self, player_state: object) -> object | None:
        """Turn raw player state into a comparable value, or None if unusable."""

    @abstractmethod
    def matches(self, answer: object, target: object) -> bool:
        """Return whether a derived answer satisfies the target."""

    def details(self, target: object, answer: object) -> dict[str, str]:
        """Display values recorded alongside a score entry."""
        return {}


def _byte_vector(player_state: object, length: int = bits.BYTE_WIDTH) -> tuple[bool, ...] | None:
    if isinstance(player_state, str) or not isinstance(player_state, Sequence):
        return None
    if len(player_state) != length:
        return None
    return tuple(bool(bit) for bit in player_state)


class BinaryBasicsVariant(ChallengeVariant):
    """Reproduce a decimal number 0-255 with eight bit toggles."""

    rules = VariantRules(
        module_key="BinaryBasics",
        title="Binary Basics",
        duration=20,
        scoring=ScoringRules(base_points=10, streak_bonus=5, time_bonus=capped_half_time_bonus),
        history_cap=8,
        completion_score=1000,
    )

    def generate_target(self, rng: random.Random) -> int:
        return rng.randint(0, 255)

    def derive(self, player_state: object) -> int | None:
        vector = _byte_vector(player_state)
        return None if vector is None else bits.to_integer(vector)

    def matches(self, answer: object, target: object) -> bool:
        return answer == target

    def details(self, target: object, answer: object) -> dict[str, str]:
        vector = bits.from_integer(cast(int, answer))
        return {"decimal": str(answer), "binary": bits.to_binary_string(vector), "hex": bits.to_hex(vector)}


class HexadecimalVariant(ChallengeVariant):
    """Reproduce a two-digit hex value with eight bit toggles."""

    rules = VariantRules(
        module_key="Hexadecimal",
        title="Hexadecimal",
        duration=20,
        scoring=ScoringRules(base_points=10, streak_bonus=5, time_bonus=capped_half_time_bonus),
        history_cap=8,
        completion_score=1000,
    )

    def generate_target(self, rng: random.Random) -> str:
        return f"{rng.randint(0, 255):02X}"

    def derive(self, player_state: object) -> str | None:
        vector = _byte_vector(player_state)
        return None if vector is None else bits.to_hex(vector)

    def matches(self, answer: object, target: object) -> bool:
        return answer == target

    def details(self, target: object, answer: object) -> dict[str, str]:
        value = int(str(answer), 16)
        return {"decimal": str(value), "binary": bits.to_binary_string(bits.from_integer(value)), "hex": str(answer)}


class BitwiseVariant(ChallengeVariant):
    """Set operands so that one bitwise operation yields the target byte."""

    def __init__(self, operation: str = "AND") -> None:
        operation = operation.upper()
        if operation not in bits.OPERATIONS:
            raise ValueError(f"Unknown operation: {operation}")
        self.operation = operation
        self.rules = VariantRules(
            module_key="BinaryOperations",
            title=f"Binary Operations ({operation})",
            duration=30,
            scoring=ScoringRules(base_points=10, streak_bonus=2, time_bonus=capped_half_time_bonus),
            history_cap=8,
            completion_score=None,
        )

    @property
    def unary(self) -> bool:
        return self.operation in bits.UNARY_OPERATIONS

    def generate_target(self, rng: random.Random) -> OperationTarget:
        first = rng.randint(0, 255)
        second = None if self.unary else rng.randint(0, 255)
        result = bits.apply_operation_to_values(self.operation, first, second)
        return OperationTarget(operation=self.operation, first=first, second=second, result=result)

    def derive(self, player_state: object) -> int | None:
        """Accept player operands, or a finished 8-bit result pattern."""
        if isinstance(player_state, OperandInput):
            first = _byte_vector(player_state.first)
            if first is None:
                return None
            second = None
            if not self.unary:
                second = _byte_vector(player_state.second)
                if second is None:
                    return None
            return bits.to_integer(bits.apply_operation(self.operation, first, second))
        vector = _byte_vector(player_state)
        return None if vector is None else bits.to_integer(vector)

    def matches(self, answer: object, target: object) -> bool:
        return isinstance(target, OperationTarget) and answer == target.result

    def details(self, target: object, answer: object) -> dict[str, str]:
        if not isinstance(target, OperationTarget):
            return {}
        values = {
            "operation": target.operation,
            "first": bits.to_binary_string(bits.from_integer(target.first)),
            "result": bits.to_binary_string(bits.from_integer(target.result)),
        }
        if target.second is not None:
            values["second"] = bits.to_binary_string(bits.from_integer(target.second))
        return values


def sanitize_character(text: str) -> str | None:
    """Keep only the first character of typed input."""
    return text[0] if text else None


class AsciiVariant(ChallengeVariant):
    """Type the character whose ASCII code is shown."""

    requires_confirm = True
    rules = VariantRules(
        module_key="App_ASCII TEXT",
        title="ASCII Text",
        duration=30,
        scoring=ScoringRules(base_points=100, streak_bonus=0, time_bonus=double_time_bonus),
        history_cap=5,
        completion_score=600,
        end_on_completion=True,
        time_refund=5,
        cumulative_progress=True,
    )

    def generate_target(self, rng: random.Random) -> str:
        low, high = PRINTABLE_ASCII
        return chr(rng.randint(low, high))

    def derive(self, player_state: object) -> str | None:
        if not isinstance(player_state, str):
            return None
        return sanitize_character(player_state)

    def matches(self, answer: object, target: object) -> bool:
        return answer == target

    def details(self, target: object, answer: object) -> dict[str, str]:
        code = ord(str(target))
        return {"ascii": str(code), "binary": bits.to_binary_string(bits.from_integer(code))}


class ColorVariant(ChallengeVariant):
    """Mix red, green and blue bytes close to a target colour."""

    rules = VariantRules(
        module_key="App_COLOR CODING",
        title="Color Coding",
        duration=30,
        scoring=ScoringRules(base_points=100, streak_bonus=0, time_bonus=double_time_bonus),
        history_cap=5,
        completion_score=500,
        end_on_completion=True,
        max_rounds=5,
        cumulative_progress=True,
    )

    def __init__(self, tolerance: float = COLOR_TOLERANCE) -> None:
        self.tolerance = tolerance

    def generate_target(self, rng: random.Random) -> RGB:
        return RGB(red=rng.randint(0, 255), green=rng.randint(0, 255), blue=rng.randint(0, 255))

    def derive(self, player_state: object) -> RGB | None:
        """Accept an RGB value or three byte vectors (red, green, blue)."""
        if isinstance(player_state, RGB):
            return player_state
        if isinstance(player_state, Sequence) and not isinstance(player_state, str) and len(player_state) == 3:
            channels = [_byte_vector(channel) for channel in player_state]
            if any(channel is None for channel in channels):
                return None
            red, green, blue = (bits.to_integer(channel) for channel in channels if channel is not None)
            return RGB(red=red, green=green, blue=blue)
        return None

    def matches(self, answer: object, target: object) -> bool:
        if not isinstance(answer, RGB) or not isinstance(target, RGB):
            return False
        return all(
            abs(player - expected) / 255.0 <= self.tolerance
            for player, expected in zip(answer.channels(), target.channels(), strict=True)
        )

    def details(self, target: object, answer: object) -> dict[str, str]:
        if not isinstance(answer, RGB) or not isinstance(target, RGB):
            return {}
        return {"target_hex": bits.rgb_hex(target), "player_hex": bits.rgb_hex(answer)}


class PermissionsVariant(ChallengeVariant):
    """Set the nine permission bits a curated scenario asks for."""

    requires_confirm = True
    rules = VariantRules(
        module_key="App_FILE PERMISSIONS",
        title="File Permissions",
        duration=30,
        scoring=ScoringRules(base_points=100, streak_bonus=0, time_bonus=double_time_bonus),
        history_cap=8,
        completion_score=800,
        cumulative_progress=True,
    )

    def __init__(self, scenarios: Sequence[PermissionScenario]) -> None:
        if not scenarios:
            raise ValueError("At least one permission scenario is required.")
        self.scenarios = tuple(scenarios)

    def generate_target(self, rng: random.Random) -> PermissionScenario:
        return rng.choice(self.scenarios)

    def derive(self, player_state: object) -> tuple[bool, ...] | None:
        return _byte_vector(player_state, bits.PERMISSION_WIDTH)

    def matches(self, answer: object, target: object) -> bool:
        return isinstance(target, PermissionScenario) and answer == target.expected_bits

    def details(self, target: object, answer: object) -> dict[str, str]:
        vector = cast(tuple[bool, ...], answer)
        return {"symbolic": bits.to_symbolic(vector), "octal": bits.to_octal_triplet(vector)}


VARIANT_NAMES = ("binary", "hex", "bitwise", "ascii", "color", "permissions")


def build_variant(
    name: str,
    *,
    operation: str = "AND",
    scenarios: Sequence[PermissionScenario] | None = None,
) -> ChallengeVariant:
    """Create a variant by short name."""
    if name == "binary":
        return BinaryBasicsVariant()
    if name == "hex":
        return HexadecimalVariant()
    if name == "bitwise":
        return BitwiseVariant(operation)
    if name == "ascii":
        return AsciiVariant()
    if name == "color":
        return ColorVariant()
    if name == "permissions":
        if scenarios is None:
            scenarios = load_permission_scenarios()
        return PermissionsVariant(scenarios)
    raise KeyError(f"Unknown variant {name!r}; expected one of: {', '.join(VARIANT_NAMES)}")
