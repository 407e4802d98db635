"""Registry of historical engine revisions.

Each module named v<N> in tapevm.implementations is one revision of the
engine. A revision is usable when it exposes
``execute(instructions, input_data, max_steps) -> RunResult``; the first
line of its docstring is shown as its summary.
"""

from dataclasses import dataclass
import functools
import importlib
import logging
import pkgutil
import re
from types import ModuleType
from typing import Callable, Dict, List, Tuple

from . import implementations
from .engine import RunResult

logger = logging.getLogger(__name__)

_REVISION_NAME = re.compile(r'v(\d+)$')


@dataclass(frozen=True)
class Revision:
    """One discovered engine revision."""
    version: str
    number: int
    module: ModuleType

    @property
    def execute(self) -> Callable[..., RunResult]:
        return self.module.execute

    @property
    def summary(self) -> str:
        doc = (self.module.__doc__ or "").strip()
        return doc.splitlines()[0] if doc else self.version


def revision_number(module_name: str) -> int | None:
    """Return N for a module named v<N>, else None."""
    match = _REVISION_NAME.match(module_name)
    return int(match.group(1)) if match else None


@functools.lru_cache(maxsize=None)
def discover_revisions() -> Dict[str, Revision]:
    """
    Import every v<N> module under tapevm.implementations, oldest first.

    Modules that fail to import or lack execute() are logged and skipped.

    Raises:
        RuntimeError: If no usable revision is found
    """
    found: List[Revision] = []
    for info in pkgutil.iter_modules(implementations.__path__):
        number = revision_number(info.name)
        if number is None:
            continue
        qualified = f"{implementations.__name__}.{info.name}"
        try:
            module = importlib.import_module(qualified)
        except ImportError as e:
            logger.warning("Skipping revision %s: %s", qualified, e)
            continue
        if not callable(getattr(module, 'execute', None)):
            logger.warning("Skipping revision %s: no execute()", qualified)
            continue
        found.append(Revision(info.name, number, module))

    if not found:
        raise RuntimeError("No engine revisions found in tapevm.implementations")

    found.sort(key=lambda r: r.number)
    logger.debug("Engine revisions: %s", ', '.join(r.version for r in found))
    return {r.version: r for r in found}


def get_available_versions() -> List[str]:
    return list(discover_revisions())


def get_revision(version: str) -> Revision:
    """
    Look up a revision by its version identifier.

    Raises:
        ValueError: If no such revision exists
    """
    revisions = discover_revisions()
    if version not in revisions:
        raise ValueError(
            f"Unknown implementation: {version}. Available: {', '.join(revisions)}"
        )
    return revisions[version]


def get_implementation(version: str) -> ModuleType:
    """Return the module implementing a revision."""
    return get_revision(version).module


def describe_revisions() -> List[Tuple[str, str]]:
    """(version, summary) for every revision, oldest first."""
    return [(r.version, r.summary) for r in discover_revisions().values()]
