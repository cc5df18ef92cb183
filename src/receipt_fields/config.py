"""Tunable constants for the extraction heuristics."""

import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict

import yaml

logger = logging.getLogger(__name__)

DEFAULT_RULES_PATH = Path(__file__).parent / "rules" / "usage_categories.yml"


@dataclass(frozen=True)
class ExtractionConfig:
    """
    Read-only configuration shared by every parser.

    The numeric weights are hand-tuned; they are exposed here so a deployment
    can adjust them without touching parser code.
    """
    # Candidates reported per field on a fresh extraction
    max_candidates: int = 5
    # Fields below this confidence are sent to review
    confidence_threshold: float = 0.5
    # Subtracted from confidence when a value came from an alternate OCR reading
    alternate_reading_penalty: float = 0.1

    amount_strong_keyword_boost: float = 0.2

    # Max vertical gap for joining payee fragments, as a fraction of the taller line
    payee_adjacency_ratio: float = 0.5
    payee_min_length: int = 2
    payee_heuristic_min_length: int = 3
    payee_heuristic_factor: float = 0.6

    usage_fuzzy_threshold: float = 80.0
    usage_fuzzy_min_length: int = 5
    usage_fallback_confidence: float = 0.1

    rules_path: Path = field(default=DEFAULT_RULES_PATH)

    @classmethod
    def from_dict(cls, overrides: Dict[str, Any]) -> 'ExtractionConfig':
        """Build a config from defaults plus the given overrides."""
        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")

        values = dict(overrides)
        if 'rules_path' in values:
            values['rules_path'] = Path(values['rules_path'])
        return replace(cls(), **values)

    @classmethod
    def from_yaml(cls, config_path: Path) -> 'ExtractionConfig':
        """
        Load config overrides from a YAML mapping.

        Args:
            config_path: Path to a YAML file whose keys are ExtractionConfig fields

        Returns:
            ExtractionConfig with the file's values applied over the defaults
        """
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                overrides = yaml.safe_load(f) or {}
        except Exception as e:
            logger.error(f"Failed to load extraction config from {config_path}: {e}")
            raise

        if not isinstance(overrides, dict):
            raise ValueError(f"Config file {config_path} must contain a mapping")

        logger.info(f"Loaded {len(overrides)} config overrides from {config_path}")
        return cls.from_dict(overrides)
