"""Collect test cases from a directory tree, skipping excluded directories.

The walk mirrors how pytest applies ``norecursedirs``: a directory whose
basename matches the exclusion list is never entered, wherever it sits in the
tree. Paths handed in explicitly (``testpaths``) are always walked, which is
why listing what to include is safer than listing what to skip.

Test files are read with :mod:`ast`; nothing is imported.
"""

from __future__ import annotations

import ast
import fnmatch
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import structlog

from txisolate.collection.patterns import (
    ExclusionList,
    FilePatterns,
    PatternSource,
    split_patterns,
)
from txisolate.core.configuration import TxIsolateConfig
from txisolate.core.constants import DEFAULT_NORECURSEDIRS, DEFAULT_PYTHON_FILES
from txisolate.core.exceptions import CollectionError

logger = structlog.get_logger(__name__)

_BUILTIN_EXCLUSIONS = ExclusionList(DEFAULT_NORECURSEDIRS)


@dataclass(frozen=True)
class CollectedItem:
    """One test case found in a test file."""

    path: Path
    name: str
    cls: Optional[str] = None
    lineno: int = field(default=0, compare=False)

    @property
    def nodeid(self) -> str:
        parts = [self.path.as_posix()]
        if self.cls:
            parts.append(self.cls)
        parts.append(self.name)
        return "::".join(parts)


@dataclass
class CollectionReport:
    """What a collection run found and what it skipped."""

    root: Path
    items: List[CollectedItem] = field(default_factory=list)
    files: List[Path] = field(default_factory=list)
    excluded_dirs: List[Path] = field(default_factory=list)
    shadowed_dirs: List[Path] = field(default_factory=list)

    @property
    def nodeids(self) -> List[str]:
        return [item.nodeid for item in self.items]

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form used by ``txisolate collect -o json``."""
        return {
            "root": str(self.root),
            "items": self.nodeids,
            "files": [p.as_posix() for p in self.files],
            "excluded_dirs": [p.as_posix() for p in self.excluded_dirs],
            "shadowed_dirs": [p.as_posix() for p in self.shadowed_dirs],
        }


def _name_matches(name: str, patterns: Sequence[str]) -> bool:
    # pytest semantics: plain entries are prefixes, entries with wildcards are globs
    for pattern in patterns:
        if any(ch in pattern for ch in "*?["):
            if fnmatch.fnmatch(name, pattern):
                return True
        elif name.startswith(pattern):
            return True
    return False


def _contains_test_files(directory: Path, file_patterns: FilePatterns) -> bool:
    """Whether ``directory`` holds a test file, ignoring pytest's built-in exclusions."""
    for dirpath, dirnames, filenames in os.walk(directory):
        dirnames[:] = [d for d in dirnames if not _BUILTIN_EXCLUSIONS.matches(d)]
        if any(file_patterns.matches(name) for name in filenames):
            return True
    return False


def find_shadowed_dirs(
    root: Union[str, Path],
    norecursedirs: PatternSource = DEFAULT_NORECURSEDIRS,
    python_files: PatternSource = DEFAULT_PYTHON_FILES,
) -> List[Path]:
    """Return excluded directories under ``root`` that contain test files.

    Only directories excluded by patterns beyond pytest's built-in defaults are
    considered, so virtualenvs and build trees are not reported.
    """
    collector = TestCollector(
        root, norecursedirs=norecursedirs, python_files=python_files
    )
    return collector.collect(parse=False).shadowed_dirs


class TestCollector:
    """Walk a tree and gather test cases, never entering excluded directories."""

    # keep pytest from treating this class as a test class
    __test__ = False

    def __init__(
        self,
        root: Union[str, Path],
        norecursedirs: PatternSource = DEFAULT_NORECURSEDIRS,
        python_files: PatternSource = DEFAULT_PYTHON_FILES,
        python_classes: PatternSource = "Test",
        python_functions: PatternSource = "test",
        testpaths: Optional[Iterable[Union[str, Path]]] = None,
        detect_shadowed: bool = True,
    ) -> None:
        """Initialize the collector.

        Args:
            root: directory node ids are made relative to.
            norecursedirs: exclusion list, e.g. ``"build dist tmp*"``.
            python_files: globs selecting test modules.
            python_classes: class name prefixes (or globs) holding test methods.
            python_functions: function name prefixes (or globs) that are tests.
            testpaths: when given, only these paths (relative to root) are walked.
            detect_shadowed: report excluded directories that contain test files.
        """
        self.root = Path(root).resolve()
        self.exclusions = (
            norecursedirs
            if isinstance(norecursedirs, ExclusionList)
            else ExclusionList(norecursedirs)
        )
        self.file_patterns = FilePatterns(python_files)
        self.class_patterns = split_patterns(python_classes)
        self.function_patterns = split_patterns(python_functions)
        self.testpaths = [Path(p) for p in (testpaths or [])]
        self.detect_shadowed = detect_shadowed

    def __repr__(self) -> str:
        return (
            f"TestCollector(root={str(self.root)!r}, exclusions={self.exclusions!r}, "
            f"testpaths={[p.as_posix() for p in self.testpaths]!r})"
        )

    def _relative(self, path: Path) -> Path:
        try:
            return path.resolve().relative_to(self.root)
        except ValueError:
            return path.resolve()

    def _start_paths(self) -> List[Path]:
        if not self.testpaths:
            return [self.root]
        starts = []
        for testpath in self.testpaths:
            path = testpath if testpath.is_absolute() else self.root / testpath
            if not path.exists():
                raise CollectionError(f"file or directory not found: {testpath}")
            starts.append(path)
        return starts

    def collect(self, parse: bool = True) -> CollectionReport:
        """Walk every start path and return the report.

        Args:
            parse: read test files for test cases. Without it only files and
                skipped directories are reported.

        Raises:
            CollectionError: a start path is missing or a test file is not valid Python.
        """
        report = CollectionReport(root=self.root)
        for start in self._start_paths():
            if start.is_file():
                # explicitly named files are collected whatever their name
                self._collect_file(start, report, parse)
            else:
                self._walk(start, report, parse)

        # file order, then source order, as pytest reports them
        report.items.sort(key=lambda item: (item.path.as_posix(), item.lineno))
        logger.debug(
            "collection_finished",
            root=str(self.root),
            items=len(report.items),
            excluded=len(report.excluded_dirs),
            shadowed=len(report.shadowed_dirs),
        )
        return report

    def _walk(self, start: Path, report: CollectionReport, parse: bool) -> None:
        for dirpath, dirnames, filenames in os.walk(start):
            current = Path(dirpath)
            kept = []
            for dirname in sorted(dirnames):
                pattern = self.exclusions.matching_pattern(dirname)
                if pattern is None:
                    kept.append(dirname)
                    continue
                excluded = current / dirname
                report.excluded_dirs.append(self._relative(excluded))
                if self._is_shadowed(excluded, pattern):
                    report.shadowed_dirs.append(self._relative(excluded))
                    logger.warning(
                        "excluded_directory_contains_tests",
                        directory=self._relative(excluded).as_posix(),
                        pattern=pattern,
                    )
            # pruning in place stops os.walk from descending
            dirnames[:] = kept

            for filename in sorted(filenames):
                if self.file_patterns.matches(filename):
                    self._collect_file(current / filename, report, parse)

    def _is_shadowed(self, directory: Path, pattern: str) -> bool:
        if not self.detect_shadowed or pattern in _BUILTIN_EXCLUSIONS.patterns:
            return False
        return _contains_test_files(directory, self.file_patterns)

    def _collect_file(self, path: Path, report: CollectionReport, parse: bool) -> None:
        relative = self._relative(path)
        report.files.append(relative)
        if parse:
            report.items.extend(self.parse_file(path, relative))

    def parse_file(self, path: Path, relative: Optional[Path] = None) -> List[CollectedItem]:
        """Return the test cases defined in one file."""
        relative = relative if relative is not None else self._relative(path)
        try:
            tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
        except (SyntaxError, UnicodeDecodeError) as exc:
            raise CollectionError(f"could not parse {relative.as_posix()}: {exc}") from exc

        items: List[CollectedItem] = []
        for node in tree.body:
            if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                if _name_matches(node.name, self.function_patterns):
                    items.append(CollectedItem(relative, node.name, lineno=node.lineno))
            elif isinstance(node, ast.ClassDef):
                items.extend(self._parse_class(node, relative))
        return items

    def _parse_class(self, node: ast.ClassDef, relative: Path) -> List[CollectedItem]:
        if not _name_matches(node.name, self.class_patterns):
            return []
        methods = [
            child
            for child in node.body
            if isinstance(child, (ast.FunctionDef, ast.AsyncFunctionDef))
        ]
        if any(method.name == "__init__" for method in methods):
            # pytest refuses to collect test classes with a constructor
            logger.info(
                "skipping_class_with_init", path=relative.as_posix(), cls=node.name
            )
            return []
        return [
            CollectedItem(relative, method.name, cls=node.name, lineno=method.lineno)
            for method in methods
            if _name_matches(method.name, self.function_patterns)
        ]


def collector_from_config(
    root: Union[str, Path],
    config: Optional[TxIsolateConfig] = None,
    extra_exclusions: PatternSource = None,
    testpaths: Optional[Iterable[Union[str, Path]]] = None,
) -> TestCollector:
    """Build a collector from the ``collection`` config section.

    Args:
        root: directory to collect from.
        config: configuration to read; defaults are used when omitted.
        extra_exclusions: patterns appended to the configured exclusion list.
        testpaths: overrides the configured ``testpaths``.
    """
    if config is None:
        config = TxIsolateConfig()
    exclusions = ExclusionList(config.get_list("collection", "norecursedirs"))
    if extra_exclusions:
        exclusions = exclusions.extend(extra_exclusions)
    if testpaths is None:
        testpaths = config.get_list("collection", "testpaths")
    return TestCollector(
        root,
        norecursedirs=exclusions,
        python_files=config.get_list("collection", "python_files"),
        python_classes=config.get_list("collection", "python_classes"),
        python_functions=config.get_list("collection", "python_functions"),
        testpaths=testpaths,
        detect_shadowed=config.get_boolean("collection", "warn_shadowed"),
    )
