from pathlib import Path

import tomlkit

PYPROJECT_PATH = Path(__file__).resolve().parent.parent.parent / "pyproject.toml"


def get_pyproject_version(toml_file: Path = PYPROJECT_PATH) -> str:
    """Get the drupal2wp version from the pyproject.toml file.

    Args:
        toml_file (Path): Location of the pyproject.toml file

    Returns:
        str: drupal2wp's version, or "unknown" when it cannot be read
    """
    if not toml_file.is_file():
        return "unknown"

    with toml_file.open(encoding="utf-8") as f:
        toml_data = tomlkit.load(f)

    project = toml_data.get("project", {})
    return str(project.get("version", "unknown"))
