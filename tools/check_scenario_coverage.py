# MIT License © 2025 Motohiro Suzuki
"""
tools/check_scenario_coverage.py

scenario_table.yml lists each handshake scenario with the test and the
script that exercise it. Exit code 1 if any listed file is absent.
"""

from pathlib import Path

import yaml

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SCENARIO_TABLE = PROJECT_ROOT / "scenarios" / "scenario_table.yml"

_EVIDENCE = (("evidence_test", "test"), ("evidence_script", "script"))


def find_missing(scenarios: list, root: Path = PROJECT_ROOT) -> list:
    missing = []
    for scn in scenarios:
        sid = scn.get("scenario_id")
        if not sid:
            missing.append("scenario without scenario_id")
            continue
        for field, label in _EVIDENCE:
            ref = scn.get(field)
            if not ref:
                missing.append(f"{sid}: {field} not defined")
                continue
            path = ref.split("::")[0]
            if not (root / path).exists():
                missing.append(f"{sid}: missing {label} {path}")
    return missing


def load_scenarios(table: Path = SCENARIO_TABLE) -> list:
    data = yaml.safe_load(table.read_text(encoding="utf-8")) or {}
    return data.get("scenarios", [])


def main() -> int:
    if not SCENARIO_TABLE.exists():
        print(f"[FAIL] no table at {SCENARIO_TABLE}")
        return 1

    scenarios = load_scenarios()
    missing = find_missing(scenarios) if scenarios else ["table is empty"]
    for m in missing:
        print(f"[FAIL] {m}")
    if missing:
        return 1

    print(f"[OK] {len(scenarios)} scenarios covered")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
