"""
YAML plan loader with per-path caching.

Usage::

    from bootcore.plan.loader import PlanLoader

    loader = PlanLoader()
    spec = loader.load(Path("plans/a1-platform.yaml"))
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import ClassVar

import yaml

from bootcore.plan.schema import PlanSpec

logger = logging.getLogger(__name__)


class PlanLoader:
    """Loads and caches bootstrap plans from YAML files."""

    _cache: ClassVar[dict[str, PlanSpec]] = {}

    @classmethod
    def clear_cache(cls) -> None:
        """Clear the plan cache (useful in tests)."""
        cls._cache.clear()

    def load(self, path: Path) -> PlanSpec:
        """Load a plan from a YAML file.

        Raises:
            FileNotFoundError: If the file does not exist.
            yaml.YAMLError: If the file contains invalid YAML.
            pydantic.ValidationError: If the YAML does not match the schema.
        """
        path = Path(path)
        key = str(path.resolve())
        if key in self._cache:
            logger.debug("Plan cache hit: %s", key)
            return self._cache[key]

        if not path.exists():
            raise FileNotFoundError(f"Plan file not found: {path}")

        with open(path) as fh:
            raw = yaml.safe_load(fh)

        spec = PlanSpec.model_validate(raw)
        self._cache[key] = spec

        logger.debug(
            "Loaded plan: plan_id=%s, actions=%d, probes=%d",
            spec.plan_id,
            len(spec.actions),
            len(spec.probes),
        )
        return spec

    def load_from_string(self, yaml_str: str) -> PlanSpec:
        """Load a plan from a YAML string."""
        raw = yaml.safe_load(yaml_str)
        return PlanSpec.model_validate(raw)
