"""Load declarative catalogs from bundled JSON resources."""

from __future__ import annotations

import json
from importlib import resources
from pathlib import Path
from typing import Any

from .bits import PERMISSION_WIDTH, from_octal_triplet, from_symbolic
from .models import Achievement, PermissionScenario

CONTENT_PACKAGE = "bytewise.content"
ACHIEVEMENTS_FILE = "achievements.json"
SCENARIOS_FILE = "permission_scenarios.json"


def _achievement_from_dict(raw: dict[str, Any]) -> Achievement:
    """Build an achievement from raw JSON content."""
    required_score = int(raw.get("required_score", 0))
    if required_score < 0:
        raise ValueError(f"Achievement '{raw.get('id', '<unknown>')}' has a negative required score.")
    module = str(raw.get("module", "")).strip()
    if not module:
        raise ValueError(f"Achievement '{raw.get('id', '<unknown>')}' has no module.")
    return Achievement(
        id=str(raw["id"]),
        title=str(raw["title"]),
        description=str(raw.get("description", "")),
        module=module,
        required_score=required_score,
    )


def _scenario_from_dict(raw: dict[str, Any]) -> PermissionScenario:
    """Build a permission scenario from octal, symbolic or explicit bit content."""
    scenario_id = str(raw.get("id", "<unknown>"))
    bits: tuple[bool, ...] | None
    if "bits" in raw:
        bits = tuple(bool(item) for item in raw["bits"])
        if len(bits) != PERMISSION_WIDTH:
            bits = None
    elif "octal" in raw:
        bits = from_octal_triplet(str(raw["octal"]))
    else:
        bits = from_symbolic(str(raw.get("symbolic", "")))
    if bits is None:
        raise ValueError(f"Permission scenario '{scenario_id}' has no valid 9-bit pattern.")
    return PermissionScenario(id=str(raw["id"]), description=str(raw["description"]), expected_bits=bits)


def parse_achievements(raw: dict[str, Any]) -> dict[str, Achievement]:
    """Parse an achievements document keyed by module."""
    catalog: dict[str, Achievement] = {}
    seen_ids: set[str] = set()
    for item in raw.get("achievements", []):
        achievement = _achievement_from_dict(item)
        if achievement.id in seen_ids:
            raise ValueError(f"Duplicate achievement id: {achievement.id}")
        if achievement.module in catalog:
            raise ValueError(f"Module '{achievement.module}' has more than one achievement.")
        seen_ids.add(achievement.id)
        catalog[achievement.module] = achievement
    return catalog


def parse_scenarios(raw: dict[str, Any]) -> list[PermissionScenario]:
    """Parse a permission scenarios document."""
    scenarios = [_scenario_from_dict(item) for item in raw.get("scenarios", [])]
    seen: set[str] = set()
    for scenario in scenarios:
        if scenario.id in seen:
            raise ValueError(f"Duplicate permission scenario id: {scenario.id}")
        seen.add(scenario.id)
    if not scenarios:
        raise ValueError("At least one permission scenario is required.")
    return scenarios


def _read_bundled(name: str) -> dict[str, Any]:
    entry = resources.files(CONTENT_PACKAGE).joinpath(name)
    return json.loads(entry.read_text(encoding="utf-8-sig"))


def load_achievements() -> dict[str, Achievement]:
    """Load the bundled achievements catalog."""
    return parse_achievements(_read_bundled(ACHIEVEMENTS_FILE))


def load_permission_scenarios() -> list[PermissionScenario]:
    """Load the bundled permission scenarios."""
    return parse_scenarios(_read_bundled(SCENARIOS_FILE))


def load_achievements_from_file(path: Path) -> dict[str, Achievement]:
    """Load an achievements catalog from disk for tests/tools."""
    return parse_achievements(json.loads(path.read_text(encoding="utf-8-sig")))


def load_permission_scenarios_from_file(path: Path) -> list[PermissionScenario]:
    """Load permission scenarios from disk for tests/tools."""
    return parse_scenarios(json.loads(path.read_text(encoding="utf-8-sig")))
