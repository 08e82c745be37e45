"""
Plugin loader for automatic discovery of source profiles.

Every package under ``plugins/`` may export a module-level ``SOURCES`` list of
:class:`core.strategies.SourceProfile`. Discovery order is the sorted package
name order, so registration order is stable between runs.
"""

import importlib
import logging
import pathlib
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from .errors import UnknownSourceError
from .interfaces import PageFetcher
from .strategies import ProfileStrategy, SourceProfile, build_strategy

logger = logging.getLogger(__name__)

# Plugin directory relative to this file
PLUGIN_DIR = pathlib.Path(__file__).parent.parent / "plugins"

# Global registry of discovered source profiles
_REGISTRY: Dict[str, SourceProfile] = {}


def refresh_registry() -> None:
    """Import every plugin package and collect its ``SOURCES``."""
    _REGISTRY.clear()

    if not PLUGIN_DIR.exists():
        logger.warning(f"Plugin directory does not exist: {PLUGIN_DIR}")
        return

    plugin_count = 0
    for package_dir in sorted(PLUGIN_DIR.iterdir()):
        if not (package_dir / "__init__.py").exists() or package_dir.name.startswith("_"):
            continue

        module_name = f"plugins.{package_dir.name}"
        try:
            mod = importlib.import_module(module_name)
        except Exception as e:
            logger.error(f"Failed to load plugin {module_name}: {e}")
            continue
        plugin_count += 1

        for profile in getattr(mod, "SOURCES", []):
            if not isinstance(profile, SourceProfile):
                logger.warning(f"{module_name}.SOURCES contains a non-profile entry: {profile!r}")
                continue
            if profile.name in _REGISTRY:
                logger.error(f"Duplicate source name {profile.name!r} in {module_name}, ignoring")
                continue
            _REGISTRY[profile.name] = profile
            logger.debug(f"Registered source: {profile.name} ({profile.format})")

    logger.info(f"Plugin discovery complete: {plugin_count} plugins, {len(_REGISTRY)} sources")


def get(name: str) -> SourceProfile:
    """Get a source profile by name.

    Raises:
        UnknownSourceError: If no plugin provides the source
    """
    if not _REGISTRY:
        refresh_registry()

    if name not in _REGISTRY:
        raise UnknownSourceError(name, _REGISTRY.keys())

    return _REGISTRY[name]


def list_available() -> Dict[str, SourceProfile]:
    """Get a copy of all registered source profiles."""
    if not _REGISTRY:
        refresh_registry()
    return _REGISTRY.copy()


def build_strategies(
    fetcher: PageFetcher,
    names: Optional[Iterable[str]] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> List[ProfileStrategy]:
    """Instantiate strategies for ``names`` (all discovered sources by default)."""
    profiles = list_available()
    selected = list(names) if names is not None else list(profiles)
    return [build_strategy(get(name), fetcher, clock=clock) for name in selected]
