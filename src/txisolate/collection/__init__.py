"""Directory-walking test collection driven by an exclusion list."""

from txisolate.collection.collector import (  # noqa: F401
    CollectedItem,
    CollectionReport,
    TestCollector,
    collector_from_config,
    find_shadowed_dirs,
)
from txisolate.collection.patterns import ExclusionList, FilePatterns  # noqa: F401

__all__ = [
    "CollectedItem",
    "CollectionReport",
    "ExclusionList",
    "FilePatterns",
    "TestCollector",
    "collector_from_config",
    "find_shadowed_dirs",
]
