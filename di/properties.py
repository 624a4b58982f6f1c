"""
Componentry - Property Source

A plain string-keyed map of configuration values that builders read through
the container. Values can be set one by one or loaded from ``key=value``
files, either on disk or shipped inside a package.
"""

from __future__ import annotations

import io
from importlib import resources
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

from dotenv import dotenv_values


class PropertySource:
    """String-to-string property map."""

    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self._values: Dict[str, str] = {}
        if initial:
            self._merge(initial)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self._values.get(name, default)

    def set(self, name: str, value: str) -> None:
        self._values[name] = str(value)

    def load_file(self, path: Union[str, Path]) -> int:
        """
        Load ``key=value`` lines from a file on disk.

        Later keys overwrite earlier ones. Returns the number of keys read.

        Raises:
            FileNotFoundError: If ``path`` does not exist
        """
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Properties file not found: {path}")
        values = dotenv_values(path, interpolate=False, encoding="utf-8")
        return self._merge(values)

    def load_resource(self, package: str, resource: str) -> int:
        """Load ``key=value`` lines from a resource bundled in ``package``."""
        text = resources.files(package).joinpath(resource).read_text(encoding="utf-8")
        values = dotenv_values(stream=io.StringIO(text), interpolate=False)
        return self._merge(values)

    def _merge(self, values: Mapping[str, Optional[str]]) -> int:
        for key, value in values.items():
            # A bare key with no '=' is read as an empty value.
            self._values[key] = "" if value is None else str(value)
        return len(values)

    def as_dict(self) -> Dict[str, str]:
        return dict(self._values)

    def clear(self) -> None:
        self._values.clear()

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __len__(self) -> int:
        return len(self._values)
