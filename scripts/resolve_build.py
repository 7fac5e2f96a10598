"""Resolve a saved build state into a character sheet.

Usage examples:
    python -m scripts.resolve_build --state-file build.json
    python -m scripts.resolve_build --state-json '{"classId":"fighter","level":4}' --json
    python -m scripts.resolve_build --state-file build.json --compendium-dir data/

The compendium directory may hold classes.json, feats.json,
optionalfeatures.json, races.json and backgrounds.json. Each file is either a
JSON list of records or an object wrapping the list under "class", "feat",
"optionalfeature", "race" or "background". Without
it, only the curated fighter/rogue metadata is available and ancestry /
background ids in the state stay unresolved.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from charplanner.engine.build_engine import BuildResult, BuildState, build_character
from charplanner.engine.hydration import BuilderHydrator, HydrationStatus
from charplanner.models.abilities import ability_modifier, format_modifier
from charplanner.models.constants import ABILITY_LIST
from charplanner.parser.class_parser import build_class_catalogue
from charplanner.parser.feat_parser import build_feat_list
from charplanner.parser.optional_feature_parser import build_optional_feature_list


COMPENDIUM_FILES = {
    "class": "classes.json",
    "feat": "feats.json",
    "optionalfeature": "optionalfeatures.json",
    "race": "races.json",
    "background": "backgrounds.json",
}


def _load_json_arg(raw_json: str | None, file_path: Path | None) -> dict[str, Any]:
    if raw_json is not None:
        payload = json.loads(raw_json)
    elif file_path is not None:
        payload = json.loads(file_path.read_text())
    else:
        return {}
    if not isinstance(payload, dict):
        raise ValueError("Build state JSON must be an object.")
    return payload


def _records(payload: Any, key: str) -> list[Any]:
    """Record list from a bare list or a ``{key: [...]}`` wrapper."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get(key), list):
        return payload[key]
    return []


def _read_compendium(directory: Path | None, key: str) -> list[Any]:
    if directory is None:
        return []
    path = directory / COMPENDIUM_FILES[key]
    if not path.exists():
        return []
    return _records(json.loads(path.read_text()), key)


def _file_fetcher(directory: Path | None, key: str):
    async def fetch() -> list[Any]:
        return await asyncio.to_thread(_read_compendium, directory, key)
    return fetch


def prepare_state(state: BuildState, compendium_dir: Path | None) -> tuple[BuildState, HydrationStatus]:
    """Attach class, feat, optional feature, ancestry and background records to *state*."""
    catalogue = {c.id: c for c in build_class_catalogue(_read_compendium(compendium_dir, "class"))}
    if state.class_id in catalogue:
        state = state.with_class(catalogue[state.class_id])

    feats = build_feat_list(_read_compendium(compendium_dir, "feat"))
    if feats:
        state = state.with_feats({feat.id: feat for feat in feats})

    options = build_optional_feature_list(_read_compendium(compendium_dir, "optionalfeature"))
    if options:
        state = state.with_optional_features(options)

    hydrator = BuilderHydrator(
        _file_fetcher(compendium_dir, "race"),
        _file_fetcher(compendium_dir, "background"),
    )
    state = asyncio.run(hydrator.hydrate(state))
    return state, hydrator.status


def _render_text_result(result: BuildResult) -> str:
    character = result.character
    lines: list[str] = []
    lines.append(f"{character.name or 'Unnamed'} (id={character.id})")
    if character.classes:
        cls = character.classes[0]
        subclass = f" / {cls.subclass_id}" if cls.subclass_id else ""
        lines.append(f"Class: {cls.class_id} {cls.levels}{subclass}")
    else:
        lines.append("Class: none")
    for key in ("race", "background"):
        if character.overview.get(key):
            lines.append(f"{key.title()}: {character.overview[key]}")

    lines.append("")
    lines.append("Abilities:")
    for ability in ABILITY_LIST:
        total = character.abilities.total[ability]
        lines.append(f"  {ability.value}: {total:>2} ({format_modifier(ability_modifier(total))})")

    lines.append("")
    lines.append(
        f"HP {character.hp}  AC {character.armor_class}  Speed {character.speed}  "
        f"Prof {format_modifier(character.proficiency_bonus)}  "
        f"Passive Perception {character.passive_perception}"
    )
    if character.saving_throws:
        lines.append("Saves: " + ", ".join(a.value for a in character.saving_throws))
    if character.skills:
        lines.append("Skills: " + ", ".join(character.skills))
    if character.languages:
        lines.append("Languages: " + ", ".join(character.languages))

    if character.features:
        lines.append("")
        lines.append("Features:")
        for feature in character.features:
            lines.append(f"  - {feature.name} [{', '.join(feature.source)}]")

    if result.pending_decisions:
        lines.append("")
        lines.append("Pending decisions:")
        for decision in result.pending_decisions:
            lines.append(f"  - {decision.id}: {decision.display_label()}")

    if result.warnings:
        lines.append("")
        lines.append("Warnings:")
        for warning in result.warnings:
            lines.append(f"  - [{warning.category}] {warning.message}")
    else:
        lines.append("")
        lines.append("Build complete.")
    return "\n".join(lines)


def main() -> None:
    parser = argparse.ArgumentParser(description="Resolve a build state into a character sheet")
    state_group = parser.add_mutually_exclusive_group()
    state_group.add_argument("--state-file", type=Path, help="Path to a saved BuildState JSON object.")
    state_group.add_argument("--state-json", type=str, help="Inline BuildState JSON object.")
    parser.add_argument("--compendium-dir", type=Path, help="Directory with compendium JSON files.")
    parser.add_argument("--json", action="store_true", help="Emit machine-readable JSON output.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output.")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    state = BuildState.from_dict(_load_json_arg(args.state_json, args.state_file))
    state, status = prepare_state(state, args.compendium_dir)
    for kind in ("ancestry", "background"):
        error = getattr(status, kind).error
        if error:
            print(f"Warning: could not load {kind} records: {error}")

    result = build_character(state)
    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
        return
    print(_render_text_result(result))


if __name__ == "__main__":
    main()
