from importlib import metadata
from pathlib import Path

import tomli as tomllib

DISTRIBUTION = "datajpa"


def get_version() -> str:
    """
    Resolve the datajpa version.

    A source checkout reads pyproject.toml next to the package; an installed
    distribution reports its metadata version.
    """
    pyproject_path = Path(__file__).parent.parent / "pyproject.toml"
    if pyproject_path.exists():
        with open(pyproject_path, "rb") as f:
            project = tomllib.load(f).get("project", {})
        if project.get("name") == DISTRIBUTION:
            return project.get("version", "unknown")

    try:
        return metadata.version(DISTRIBUTION)
    except metadata.PackageNotFoundError:
        return "unknown"
