"""
Path-based classification of WRI raster layers.

Every function here is a pure, total function of a path string: nothing
touches the filesystem and nothing raises. Classification is expressed as
ordered rule lists evaluated first-match-wins, so adding a domain or a
naming pattern is a one-line change that can be tested on its own.

Example:
    >>> classify_data_type("data/livelihoods/indicators/foo_status_bar.tif")
    'indicator'
    >>> extract_domain("data/livelihoods/indicators/foo.tif")
    'livelihoods'
"""

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath
from typing import Callable, List, Optional, Sequence, Union

PathLike = Union[str, PurePath]


class DataType(str, Enum):
    """Top-level taxonomy of a raster layer."""

    INDICATOR = "indicator"
    AGGREGATE = "aggregate"
    FINAL_SCORE = "final_score"
    EXCLUDE = "exclude"


# Domain directory names, most specific first so that substring matches on
# filenames do not resolve "iconic_species" to "species".
DOMAIN_NAMES: List[str] = [
    "air_quality",
    "biodiversity",
    "carbon",
    "communities",
    "iconic_places",
    "iconic_species",
    "infrastructure",
    "livelihoods",
    "natural_habitats",
    "sense_of_place",
    "sensitivity_analysis",
    "species",
    "water",
]

UNKNOWN_DOMAIN = "unknown"
ALL_DOMAINS = "all_domains"

INDICATORS_DIR = "indicators"

# Directories whose aggregate-looking files are drafts, checks or copies.
EXCLUDED_AGGREGATE_DIRS = ("indicators", "final_checks", "archive", "indicators_no_mask")

# Directory names marking the unmasked variant of a layer.
NO_MASK_DIRS = ("indicators_no_mask",)
NO_MASK_SUFFIX = "_no_mask"

FINAL_SCORE_PATTERN = re.compile(r"WRI_score\.tif$")
AGGREGATE_PATTERN = re.compile(r"_(domain_score|resilience|resistance|status)\.tif$")


@dataclass(frozen=True)
class Rule:
    """A single classification rule: ``result`` applies when ``matches`` holds."""

    matches: Callable[[str], bool]
    result: str
    name: str = ""


def _contains(fragment: str) -> Callable[[str], bool]:
    return lambda text: fragment in text


INDICATOR_DIMENSION_RULES: List[Rule] = [
    Rule(_contains("_resistance_"), "resistance", "indicator-resistance"),
    Rule(_contains("_recovery_"), "recovery", "indicator-recovery"),
    Rule(_contains("_status_"), "status", "indicator-status"),
]

AGGREGATE_DIMENSION_RULES: List[Rule] = [
    Rule(_contains("domain_score"), "domain_score", "aggregate-domain-score"),
    Rule(_contains("resilience"), "resilience", "aggregate-resilience"),
    Rule(_contains("resistance"), "resistance", "aggregate-resistance"),
    Rule(_contains("status"), "status", "aggregate-status"),
]


def first_match(rules: Sequence[Rule], text: str) -> Optional[str]:
    """Return the result of the first rule matching ``text``, or None."""
    for rule in rules:
        if rule.matches(text):
            return rule.result
    return None


def _parts(path: PathLike) -> List[str]:
    """Split a path into segments, accepting both separators."""
    return [p for p in re.split(r"[\\/]+", str(path)) if p]


def _filename(path: PathLike) -> str:
    parts = _parts(path)
    return parts[-1] if parts else ""


def _directories(path: PathLike) -> List[str]:
    return _parts(path)[:-1]


def _is_excluded_dir(segment: str, exclude_retro: bool) -> bool:
    if segment in EXCLUDED_AGGREGATE_DIRS:
        return True
    return exclude_retro and segment.lower().startswith("retro")


def classify_data_type(path: PathLike, exclude_retro: bool = False) -> str:
    """
    Classify a raster path into indicator, aggregate, final_score or exclude.

    Args:
        path: Path to the raster, relative or absolute
        exclude_retro: Also treat ``retro*`` directories as excluded locations
            for aggregate layers

    Returns:
        One of the ``DataType`` values
    """
    directories = _directories(path)
    filename = _filename(path)

    if INDICATORS_DIR in directories:
        return DataType.INDICATOR.value
    if FINAL_SCORE_PATTERN.search(filename):
        return DataType.FINAL_SCORE.value
    if AGGREGATE_PATTERN.search(filename) and not any(
        _is_excluded_dir(d, exclude_retro) for d in directories
    ):
        return DataType.AGGREGATE.value
    return DataType.EXCLUDE.value


def extract_domain(path: PathLike) -> str:
    """
    Extract the WRI domain a raster belongs to.

    Resolution order:
        1. the directory immediately preceding an ``indicators`` directory
        2. any directory named after a known domain
        3. a known domain name inside the filename
        4. ``"unknown"``
    """
    parts = _parts(path)
    directories = parts[:-1]

    if INDICATORS_DIR in directories:
        idx = directories.index(INDICATORS_DIR)
        if idx > 0:
            return directories[idx - 1]

    for domain in DOMAIN_NAMES:
        if domain in directories:
            return domain

    filename = _filename(path)
    for domain in DOMAIN_NAMES:
        if domain in filename:
            return domain

    return UNKNOWN_DOMAIN


def classify_dimension(data_type: str, filename: str) -> Optional[str]:
    """Classify the resilience dimension of a layer, None when not applicable."""
    if data_type == DataType.INDICATOR.value:
        return first_match(INDICATOR_DIMENSION_RULES, filename)
    if data_type == DataType.AGGREGATE.value:
        return first_match(AGGREGATE_DIMENSION_RULES, filename)
    return None


def canonical_output_filename(path: PathLike) -> str:
    """
    Collision-safe COG basename for a source raster.

    The extension is normalized to ``.tif``. Layers under a no-mask
    directory get a ``_no_mask`` suffix so they do not overwrite the masked
    layer with the same basename.
    """
    filename = _filename(path)
    stem = PurePath(filename).stem
    if any(d in NO_MASK_DIRS for d in _directories(path)) and not stem.endswith(NO_MASK_SUFFIX):
        stem = f"{stem}{NO_MASK_SUFFIX}"
    return f"{stem}.tif"
