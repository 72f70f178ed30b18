"""
Suite Loader

Loads and saves test suites (test cases plus recorded agent responses) as
JSON. A file holds either one suite object or a suite pack
``{"pack_name": ..., "suites": [...]}``.
"""

import json
from pathlib import Path

from agent_pattern_eval.domain.batch import TestSuite


def load_test_suites(file_path: str) -> list[TestSuite]:
    """
    Load the test suites stored in a JSON file

    Args:
        file_path: Path to a suite or suite pack JSON file

    Returns:
        list[TestSuite]: Suites in file order

    Raises:
        FileNotFoundError: If the file does not exist
        KeyError: If a required field is missing
    """
    with open(file_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    raw_suites = data["suites"] if "suites" in data else [data]
    for raw in raw_suites:
        for field in ("suite_id", "pattern", "test_cases"):
            if field not in raw:
                raise KeyError(f"Required field '{field}' is missing: {file_path}")
    return [TestSuite.from_dict(raw) for raw in raw_suites]


def load_all_suites(suites_dir: str = "suites") -> list[TestSuite]:
    """
    Load every suite file in a directory

    Raises:
        FileNotFoundError: If the directory does not exist
    """
    suites_path = Path(suites_dir)
    if not suites_path.exists():
        raise FileNotFoundError(f"Suites directory does not exist: {suites_dir}")

    suites = []
    for json_file in sorted(suites_path.glob("*.json")):
        suites.extend(load_test_suites(str(json_file)))
    return suites


def save_test_suites(suites: list[TestSuite], file_path: str, pack_name: str = "generated") -> None:
    """Write suites as a suite pack"""
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {"pack_name": pack_name, "suites": [s.to_dict() for s in suites]}
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
