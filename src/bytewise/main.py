"""CLI entrypoint for the bit and byte challenge trainer."""

from __future__ import annotations

import argparse
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from . import bits
from .config import DB_PATH, LOG_LEVEL
from .engine import ChallengeEngine
from .filesize import parse_unit
from .models import RGB, EngineState, PermissionScenario
from .service import ByteWiseService
from .variants import (
    AsciiVariant,
    BitwiseVariant,
    ColorVariant,
    OperandInput,
    OperationTarget,
    PermissionsVariant,
)

InputFn = Callable[[str], str]
PrintFn = Callable[[str], None]
MENU_QUIT_COMMANDS = {"q"}
MENU_BACK_COMMANDS = {"b"}
FLOW_EXIT_COMMANDS = {":quit", ":exit", ":q", ":b", ":back"}
SUBMIT_COMMANDS = {"s", "submit", ":s"}


class QuitApp(Exception):
    """Signal immediate app exit from nested menu flows."""


@dataclass
class PlayerBits:
    """Bit state the player edits during one challenge."""

    main: tuple[bool, ...] = field(default_factory=bits.empty)
    second: tuple[bool, ...] = field(default_factory=bits.empty)
    red: tuple[bool, ...] = field(default_factory=bits.empty)
    green: tuple[bool, ...] = field(default_factory=bits.empty)
    blue: tuple[bool, ...] = field(default_factory=bits.empty)


def _service(db_path: Path | None = None) -> ByteWiseService:
    """Create app service with local database path."""
    return ByteWiseService(db_path=db_path or DB_PATH)


def run(argv: list[str] | None = None) -> int:
    """Run the CLI application."""
    parser = argparse.ArgumentParser(prog="bytewise", description="Timed binary, hex and byte-encoding challenges")
    parser.add_argument("command", nargs="?", default="play", choices=["play"])
    parser.add_argument("--db", type=Path, default=None, help="progress database path")
    parser.add_argument("--log-level", default=LOG_LEVEL, help="logging level (default: %(default)s)")
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return play_shell(db_path=args.db)


def play_shell(input_fn: InputFn = input, print_fn: PrintFn = print, db_path: Path | None = None) -> int:
    """Run persistent menu-driven shell."""
    service = _service(db_path)
    try:
        while True:
            print_fn("\n=== ByteWise ===")
            print_fn("1) Binary basics")
            print_fn("2) Hexadecimal")
            print_fn("3) Binary operations")
            print_fn("4) ASCII text")
            print_fn("5) Color coding")
            print_fn("6) File permissions")
            print_fn("7) File sizes")
            print_fn("8) Status")
            print_fn("9) Admin")
            print_fn("p) Playground")
            print_fn("q) Quit")
            choice = input_fn("Choose: ").strip().lower()

            try:
                if choice == "1":
                    _run_challenge(service, service.new_engine("binary"), input_fn, print_fn)
                elif choice == "2":
                    _run_challenge(service, service.new_engine("hex"), input_fn, print_fn)
                elif choice == "3":
                    _operations_flow(service, input_fn, print_fn)
                elif choice == "4":
                    _run_challenge(service, service.new_engine("ascii"), input_fn, print_fn)
                elif choice == "5":
                    _run_challenge(service, service.new_engine("color"), input_fn, print_fn)
                elif choice == "6":
                    _run_challenge(service, service.new_engine("permissions"), input_fn, print_fn)
                elif choice == "7":
                    _file_size_flow(service, input_fn, print_fn)
                elif choice == "8":
                    _status_flow(service, print_fn)
                elif choice == "p":
                    _playground_flow(input_fn, print_fn)
                elif choice == "9":
                    _admin_flow(service, input_fn, print_fn)
                elif choice in MENU_QUIT_COMMANDS:
                    return 0
                else:
                    print_fn("Invalid choice.")
            except QuitApp:
                return 0
    finally:
        service.close()


def _operations_flow(service: ByteWiseService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Pick an operation and run its challenge."""
    print_fn("\n=== Binary Operations ===")
    for idx, operation in enumerate(bits.OPERATIONS, start=1):
        print_fn(f"{idx}) {operation}")
    print_fn("b) Back")
    print_fn("q) Quit")
    choice = input_fn("Choose operation: ").strip().lower()
    if choice in MENU_BACK_COMMANDS:
        return
    if choice in MENU_QUIT_COMMANDS:
        raise QuitApp()
    if not choice.isdigit() or not (0 <= int(choice) - 1 < len(bits.OPERATIONS)):
        print_fn("Invalid choice.")
        return
    operation = bits.OPERATIONS[int(choice) - 1]
    _run_challenge(service, service.new_engine("bitwise", operation=operation), input_fn, print_fn)


def _run_challenge(service: ByteWiseService, engine: ChallengeEngine, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Play one timed session until time runs out, it completes, or the player leaves."""
    rules = engine.variant.rules
    print_fn(f"\n=== {rules.title} Challenge ===")
    print_fn(_instructions(engine))
    print_fn("Type :q to leave the challenge.")
    player = PlayerBits(main=bits.empty(_input_width(engine)))
    engine.start()
    try:
        while engine.state is EngineState.ACTIVE:
            snapshot = engine.snapshot()
            print_fn(f"\nTime: {snapshot.remaining_seconds}s  Score: {snapshot.score}  Streak: {snapshot.streak}")
            print_fn(_describe_target(snapshot.target))
            if not isinstance(engine.variant, AsciiVariant):
                print_fn(_describe_player(engine, player))
            raw_input = input_fn("> ")
            user_input = raw_input.strip()
            service.ticks.pump()
            if user_input.lower() in FLOW_EXIT_COMMANDS:
                print_fn("Challenge abandoned.")
                engine.exit()
                return
            if engine.state is not EngineState.ACTIVE:
                break
            _handle_input(engine, player, raw_input, print_fn)

        snapshot = engine.snapshot()
        print_fn(f"\nChallenge over. Final score: {snapshot.score}")
        if snapshot.completed:
            print_fn("Module completed.")
        for entry in snapshot.history:
            print_fn(f"- {_describe_entry(entry.target, entry.points)}")
    finally:
        engine.reset()


def _input_width(engine: ChallengeEngine) -> int:
    return bits.PERMISSION_WIDTH if isinstance(engine.variant, PermissionsVariant) else bits.BYTE_WIDTH


def _instructions(engine: ChallengeEngine) -> str:
    variant = engine.variant
    if isinstance(variant, AsciiVariant):
        return "Type the character for the ASCII code shown."
    if isinstance(variant, ColorVariant):
        text = "Set channels with `r 11001000`, `g ...`, `b ...` (or `r 3` to toggle bit 3)."
    elif isinstance(variant, PermissionsVariant):
        text = "Enter rwx notation (rw-r--r--), octal (644) or a bit number 1-9 to toggle."
    elif isinstance(variant, BitwiseVariant):
        if variant.unary:
            text = "Set the operand with `a 10101010` (or `a 3` to toggle bit 3)."
        else:
            text = "Set operands with `a 10101010` and `b 01010101` (or `a 3` to toggle bit 3)."
    else:
        text = "Enter eight bits (10101101) or a bit number 1-8 to toggle."
    if variant.requires_confirm:
        text += " Type `s` to submit."
    return text


def _describe_target(target: object) -> str:
    if isinstance(target, OperationTarget):
        return f"Target: {target.operation} result {bits.to_binary_string(bits.from_integer(target.result))}"
    if isinstance(target, RGB):
        return f"Target colour: {bits.rgb_hex(target)}"
    if isinstance(target, PermissionScenario):
        return f"Task: {target.description}"
    if isinstance(target, int):
        return f"Target: {target}"
    if isinstance(target, str) and len(target) == 2:
        return f"Target: 0x{target}"
    if isinstance(target, str):
        code = ord(target)
        return f"ASCII {code} ({bits.to_binary_string(bits.from_integer(code))})"
    return f"Target: {target}"


def _describe_player(engine: ChallengeEngine, player: PlayerBits) -> str:
    variant = engine.variant
    if isinstance(variant, BitwiseVariant):
        result = bits.apply_operation(variant.operation, player.main, None if variant.unary else player.second)
        operands = f"A={bits.to_binary_string(player.main)}"
        if not variant.unary:
            operands += f" B={bits.to_binary_string(player.second)}"
        return f"{operands} -> {bits.to_binary_string(result)}"
    if isinstance(variant, ColorVariant):
        rgb = RGB(bits.to_integer(player.red), bits.to_integer(player.green), bits.to_integer(player.blue))
        return f"Your colour: {bits.rgb_hex(rgb)}"
    if isinstance(variant, PermissionsVariant):
        return f"Your permissions: {bits.to_symbolic(player.main)} ({bits.to_octal_triplet(player.main)})"
    value = bits.to_integer(player.main)
    return f"Your bits: {bits.to_binary_string(player.main)} = {value} = 0x{bits.to_hex(player.main)}"


def _describe_entry(target: object, points: int) -> str:
    return f"{_describe_target(target).removeprefix('Target: ')} (+{points})"


def _edit_vector(current: tuple[bool, ...], text: str) -> tuple[bool, ...] | None:
    """Apply a full bit string or a 1-based toggle index to a vector."""
    parsed = bits.parse_bits(text, len(current))
    if parsed is not None:
        return parsed
    stripped = text.strip()
    if stripped.isdigit() and 1 <= int(stripped) <= len(current):
        return bits.toggle(current, int(stripped) - 1)
    return None


def _permission_vector(current: tuple[bool, ...], text: str) -> tuple[bool, ...] | None:
    """Apply rwx notation, an octal triplet or a 1-based toggle to a permission vector."""
    updated = bits.from_symbolic(text) or bits.from_octal_triplet(text)
    if updated is not None:
        return updated
    return _edit_vector(current, text)


def _handle_input(engine: ChallengeEngine, player: PlayerBits, raw_input: str, print_fn: PrintFn) -> None:
    """Update player state from one input line and submit it."""
    variant = engine.variant
    user_input = raw_input.strip()

    if isinstance(variant, AsciiVariant):
        # Unstripped so that a space can answer ASCII 32.
        if not engine.submit(raw_input):
            print_fn("Not quite. Try again.")
        else:
            print_fn("Correct.")
        return

    if isinstance(variant, ColorVariant):
        channel, _, rest = user_input.partition(" ")
        attribute = {"r": "red", "g": "green", "b": "blue"}.get(channel.lower())
        updated = _edit_vector(getattr(player, attribute), rest) if attribute else None
        if attribute is None or updated is None:
            print_fn("Invalid input.")
            return
        setattr(player, attribute, updated)
        if engine.submit(RGB(bits.to_integer(player.red), bits.to_integer(player.green), bits.to_integer(player.blue))):
            print_fn("Match!")
            player.red = player.green = player.blue = bits.empty()
        return

    if isinstance(variant, BitwiseVariant):
        operand, _, rest = user_input.partition(" ")
        operand = operand.lower()
        if operand == "a":
            updated = _edit_vector(player.main, rest)
        elif operand == "b" and not variant.unary:
            updated = _edit_vector(player.second, rest)
        else:
            updated = None
        if updated is None:
            print_fn("Invalid input.")
            return
        if operand == "a":
            player.main = updated
        else:
            player.second = updated
        if engine.submit(OperandInput(first=player.main, second=None if variant.unary else player.second)):
            print_fn("Correct.")
            player.main = player.second = bits.empty()
        return

    # Single-vector variants: binary, hexadecimal and permissions.
    if variant.requires_confirm and user_input.lower() in SUBMIT_COMMANDS:
        if engine.submit(player.main):
            print_fn("Correct.")
            player.main = bits.empty(len(player.main))
        else:
            print_fn("Not quite. Try again.")
        return
    if isinstance(variant, PermissionsVariant):
        updated = _permission_vector(player.main, user_input)
        error = "Invalid permissions."
    else:
        updated = _edit_vector(player.main, user_input)
        error = "Invalid input."
    if updated is None:
        print_fn(error)
        return
    player.main = updated
    if not variant.requires_confirm and engine.submit(player.main):
        print_fn("Correct.")
        player.main = bits.empty(len(player.main))


def _playground_flow(input_fn: InputFn, print_fn: PrintFn) -> None:
    """Untimed exploration of bits, ASCII and permissions."""
    print_fn("\n=== Playground ===")
    print_fn("1) Bits and hex")
    print_fn("2) ASCII text")
    print_fn("3) File permissions")
    print_fn("b) Back")
    print_fn("q) Quit")
    choice = input_fn("Choose playground: ").strip().lower()
    if choice in MENU_BACK_COMMANDS:
        return
    if choice in MENU_QUIT_COMMANDS:
        raise QuitApp()
    if choice == "1":
        _explore(
            "Bits and Hex",
            "Enter eight bits, a bit number 1-8 to toggle, or `x 2F` to load hex digits.",
            bits.empty(),
            _describe_byte,
            _edit_byte,
            input_fn,
            print_fn,
        )
    elif choice == "2":
        _explore(
            "ASCII",
            "Enter eight bits, a bit number 1-8 to toggle, or `c A` to load a character.",
            bits.empty(),
            _describe_ascii,
            _edit_ascii,
            input_fn,
            print_fn,
        )
    elif choice == "3":
        presets = ", ".join(f"{name} ({octal})" for name, octal in bits.PERMISSION_PRESETS.items())
        _explore(
            "File Permissions",
            f"Enter rwx notation, octal, a bit number 1-9 to toggle, or a preset: {presets}.",
            bits.empty(bits.PERMISSION_WIDTH),
            _describe_permission_bits,
            _edit_permission_bits,
            input_fn,
            print_fn,
        )
    else:
        print_fn("Invalid choice.")


def _explore(
    title: str,
    hint: str,
    state: tuple[bool, ...],
    describe: Callable[[tuple[bool, ...]], list[str]],
    edit: Callable[[tuple[bool, ...], str], tuple[bool, ...] | None],
    input_fn: InputFn,
    print_fn: PrintFn,
) -> None:
    """Edit one vector freely until the player leaves."""
    print_fn(f"\n=== {title} Playground ===")
    print_fn(hint)
    print_fn("Type :q to leave the playground.")
    while True:
        for line in describe(state):
            print_fn(line)
        raw_input = input_fn("> ")
        if raw_input.strip().lower() in FLOW_EXIT_COMMANDS:
            return
        updated = edit(state, raw_input)
        if updated is None:
            print_fn("Invalid input.")
            continue
        state = updated


def _describe_byte(state: tuple[bool, ...]) -> list[str]:
    return [f"Bits: {bits.to_binary_string(state)} = {bits.to_integer(state)} = 0x{bits.to_hex(state)}"]


def _edit_byte(state: tuple[bool, ...], text: str) -> tuple[bool, ...] | None:
    stripped = text.strip()
    if stripped[:2].lower() == "x ":
        digits = bits.sanitize_hex(stripped[2:])
        return bits.from_integer(int(digits, 16)) if digits else None
    return _edit_vector(state, stripped)


def _describe_ascii(state: tuple[bool, ...]) -> list[str]:
    character = bits.bits_to_character(state)
    shown = repr(character) if character is not None else "not ASCII"
    return [f"Bits: {bits.to_binary_string(state)} = {bits.to_integer(state)} -> {shown}"]


def _edit_ascii(state: tuple[bool, ...], text: str) -> tuple[bool, ...] | None:
    # Unstripped after the prefix so that `c ` followed by a space loads ASCII 32.
    if text.lstrip()[:2].lower() == "c ":
        return bits.character_to_bits(text.lstrip()[2:])
    return _edit_vector(state, text)


def _describe_permission_bits(state: tuple[bool, ...]) -> list[str]:
    return [
        f"Permissions: {bits.to_symbolic(state)} ({bits.to_octal_triplet(state)})",
        bits.describe_permissions(state),
    ]


def _edit_permission_bits(state: tuple[bool, ...], text: str) -> tuple[bool, ...] | None:
    preset = bits.PERMISSION_PRESETS.get(text.strip().lower())
    if preset is not None:
        return bits.from_octal_triplet(preset)
    return _permission_vector(state, text)


def _file_size_flow(service: ByteWiseService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Convert sizes between binary units."""
    print_fn("\n=== File Sizes ===")
    print_fn("Units: B, KiB, MiB, GiB, TiB")
    value_text = input_fn("Value: ").strip()
    source = parse_unit(input_fn("From unit: "))
    target = parse_unit(input_fn("To unit: "))
    if source is None or target is None:
        print_fn("Unknown unit.")
        return
    try:
        result = service.convert_file_size(value_text, source, target)
    except ValueError as exc:
        print_fn(str(exc))
        return
    print_fn(result.formatted)
    for step in result.steps:
        print_fn(f"  {step}")


def _status_flow(service: ByteWiseService, print_fn: PrintFn) -> None:
    """Print module progress and achievements."""
    print_fn("\n=== Module Status ===")
    rows = [
        (state.title, "completed" if state.completed else "-", str(state.score), ", ".join(state.achievements) or "-")
        for state in service.list_module_states()
    ]
    title_width = max(len("Module"), max(len(row[0]) for row in rows))
    status_width = max(len("Status"), max(len(row[1]) for row in rows))
    score_width = max(len("Score"), max(len(row[2]) for row in rows))
    header = f"{'Module':<{title_width}} {'Status':<{status_width}} {'Score':>{score_width}} Achievements"
    print_fn(header)
    print_fn("-" * len(header))
    for row in rows:
        print_fn(f"{row[0]:<{title_width}} {row[1]:<{status_width}} {row[2]:>{score_width}} {row[3]}")

    print_fn("\n=== Achievements ===")
    for status in service.list_achievements():
        mark = "x" if status.earned else " "
        print_fn(
            f"[{mark}] {status.achievement.title}: {status.score}/{status.achievement.required_score} "
            f"({status.ratio * 100:.0f}%)"
        )


def _admin_flow(service: ByteWiseService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Admin menu for progress management."""
    print_fn("\n=== Admin ===")
    print_fn("1) Reset all progress")
    print_fn("b) Back")
    print_fn("q) Quit")
    choice = input_fn("Choose admin option: ").strip().lower()
    if choice in MENU_BACK_COMMANDS:
        return
    if choice in MENU_QUIT_COMMANDS:
        raise QuitApp()
    if choice != "1":
        print_fn("Invalid choice.")
        return
    print_fn("WARNING: This clears completion, scores and achievements for every module.")
    confirm = input_fn("Type YES to confirm reset: ").strip()
    if confirm != "YES":
        print_fn("Reset cancelled.")
        return
    service.reset_all_progress()
    print_fn("All progress reset.")


def main_entry() -> None:
    """Console script entrypoint."""
    raise SystemExit(run())


if __name__ == "__main__":  # pragma: no cover
    main_entry()
