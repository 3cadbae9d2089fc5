"""Shell-style name patterns used to exclude directories and select test files."""

from __future__ import annotations

import fnmatch
from pathlib import Path
from typing import Iterable, Iterator, List, Sequence, Union

PatternSource = Union[str, Iterable[str], None]


def split_patterns(source: PatternSource) -> List[str]:
    """Turn ``"a b tmp*"`` or ``["a", "b c"]`` into ``["a", "b", "tmp*"]``."""
    if source is None:
        return []
    if isinstance(source, str):
        return source.split()
    patterns: List[str] = []
    for entry in source:
        patterns.extend(str(entry).split())
    return patterns


class _NamePatterns:
    """Basename matcher over a list of fnmatch patterns."""

    def __init__(self, patterns: PatternSource = None) -> None:
        self.patterns: List[str] = split_patterns(patterns)

    def __iter__(self) -> Iterator[str]:
        return iter(self.patterns)

    def __len__(self) -> int:
        return len(self.patterns)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({' '.join(self.patterns)!r})"

    def matching_pattern(self, path: Union[str, Path]) -> Union[str, None]:
        """Return the first pattern that matches the basename of ``path``."""
        name = Path(path).name
        for pattern in self.patterns:
            if fnmatch.fnmatch(name, pattern):
                return pattern
        return None

    def matches(self, path: Union[str, Path]) -> bool:
        return self.matching_pattern(path) is not None


class ExclusionList(_NamePatterns):
    """Directory basenames that recursion must never enter, at any depth.

    Matching looks only at the final path component, so ``config`` excludes
    ``./config`` and ``./tests/config`` alike.
    """

    def extend(self, patterns: PatternSource) -> "ExclusionList":
        """Return a new list with extra patterns appended."""
        return ExclusionList(self.patterns + split_patterns(patterns))


class FilePatterns(_NamePatterns):
    """Globs selecting test modules, e.g. ``test_*.py *_test.py``."""

    @classmethod
    def from_sequence(cls, patterns: Sequence[str]) -> "FilePatterns":
        return cls(list(patterns))
