"""
Per-invocation environment construction.

The builder derives a RuntimeEnvironment from a base mapping (normally a
snapshot of ``os.environ``) without touching the base itself.
"""

import os
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Union

from chromium_runtime.domain.value_objects import RuntimeEnvironment


# Variables that must follow the scratch home when it is redirected
HOME_DEPENDENT_VARS = {
    "XDG_CONFIG_HOME": ".config",
    "XDG_CACHE_HOME": ".cache",
}


def _default_is_writable(path: str) -> bool:
    return bool(path) and os.path.isdir(path) and os.access(path, os.W_OK)


def merge_search_path(required: Iterable[str], existing: Optional[str]) -> List[str]:
    """
    Put ``required`` entries first, then existing entries, without duplicates.

    Empty entries are dropped; order within each group is preserved.
    """
    merged: List[str] = []
    seen = set()
    existing_entries = existing.split(os.pathsep) if existing else []
    for entry in [*required, *existing_entries]:
        if entry and entry not in seen:
            seen.add(entry)
            merged.append(entry)
    return merged


class EnvironmentBuilder:
    """
    Builds the environment for one child process.

    Library path entries are prepended to the search path, and the home
    variable is redirected to the scratch directory when the ambient home
    is not writable (typical for serverless runtimes).
    """

    def __init__(
        self,
        library_paths: Iterable[Union[str, Path]] = (),
        scratch_home: Optional[Union[str, Path]] = None,
        extra_env: Optional[Mapping[str, str]] = None,
        library_path_var: str = "LD_LIBRARY_PATH",
        home_var: str = "HOME",
        force_scratch_home: bool = False,
        is_writable: Callable[[str], bool] = _default_is_writable,
    ):
        self.library_paths = tuple(str(p) for p in library_paths)
        self.scratch_home = Path(scratch_home) if scratch_home else None
        self.extra_env = dict(extra_env or {})
        self.library_path_var = library_path_var
        self.home_var = home_var
        self.force_scratch_home = force_scratch_home
        self.is_writable = is_writable

    def _should_redirect_home(self, base: Mapping[str, str]) -> bool:
        if self.scratch_home is None:
            return False
        if self.force_scratch_home:
            return True
        return not self.is_writable(base.get(self.home_var, ""))

    def build(self, base: Mapping[str, str]) -> RuntimeEnvironment:
        """
        Produce a RuntimeEnvironment from ``base``.

        Args:
            base: Inherited environment; never mutated

        Returns:
            RuntimeEnvironment with library path and home adjusted
        """
        variables: Dict[str, str] = dict(base)
        controlled = {self.library_path_var, self.home_var, *HOME_DEPENDENT_VARS}
        variables.update({k: v for k, v in self.extra_env.items() if k not in controlled})

        search_path = merge_search_path(self.library_paths, base.get(self.library_path_var))
        if search_path:
            variables[self.library_path_var] = os.pathsep.join(search_path)

        redirected = self._should_redirect_home(base)
        if redirected:
            home = str(self.scratch_home)
            variables[self.home_var] = home
            for var, subdir in HOME_DEPENDENT_VARS.items():
                variables[var] = str(self.scratch_home / subdir)

        return RuntimeEnvironment(
            variables=variables,
            library_paths=tuple(search_path),
            scratch_home=self.scratch_home,
            home_redirected=redirected,
        )
