"""Tests for exclusion-list driven collection."""

from pathlib import Path

import pytest

from txisolate.collection.collector import (
    TestCollector,
    collector_from_config,
    find_shadowed_dirs,
)
from txisolate.core.configuration import TxIsolateConfig
from txisolate.core.exceptions import CollectionError

WIDGET_TESTS = '''
import pytest


def helper():
    pass


def test_create():
    pass


async def test_async_create():
    pass


class TestWidget:
    def setup_method(self):
        pass

    def test_rename(self):
        pass


class WidgetHelpers:
    def test_not_collected(self):
        pass
'''

CONFIG_TESTS = '''
def test_config_loads():
    pass
'''


@pytest.fixture
def project(make_tree):
    return make_tree(
        {
            "tests/test_widget.py": WIDGET_TESTS,
            "tests/config/test_settings.py": CONFIG_TESTS,
            "tests/config/settings.yaml": "a: 1\n",
            "config/defaults_test.py": CONFIG_TESTS,
            "tmp_build/test_generated.py": CONFIG_TESTS,
            ".venv/lib/test_site.py": CONFIG_TESTS,
            "src/widget.py": "def test_looks_like_a_test(): pass\n",
        }
    )


class TestCollection:
    def test_collects_functions_and_methods(self, project):
        report = TestCollector(project, norecursedirs=".*").collect()

        assert report.nodeids[:4] == [
            "config/defaults_test.py::test_config_loads",
            "tests/config/test_settings.py::test_config_loads",
            "tests/test_widget.py::test_create",
            "tests/test_widget.py::test_async_create",
        ]
        assert "tests/test_widget.py::TestWidget::test_rename" in report.nodeids
        assert not any("WidgetHelpers" in nodeid for nodeid in report.nodeids)
        assert not any("src/" in nodeid for nodeid in report.nodeids)
        assert not any("setup_method" in nodeid for nodeid in report.nodeids)

    def test_nested_directory_with_excluded_name_is_skipped(self, project):
        report = TestCollector(project, norecursedirs=".* config").collect()

        # tests/config holds real tests, and still nothing under it runs
        assert "tests/config/test_settings.py::test_config_loads" not in report.nodeids
        assert "config/defaults_test.py::test_config_loads" not in report.nodeids
        assert Path("tests/config") in report.excluded_dirs
        assert Path("config") in report.excluded_dirs
        assert "tests/test_widget.py::test_create" in report.nodeids

    def test_excluded_dirs_with_tests_are_reported_as_shadowed(self, project):
        report = TestCollector(project, norecursedirs=".* config").collect()

        assert report.shadowed_dirs == [Path("config"), Path("tests/config")]

    def test_builtin_exclusions_are_not_reported_as_shadowed(self, project):
        report = TestCollector(project).collect()

        assert Path(".venv") in report.excluded_dirs
        assert Path(".venv") not in report.shadowed_dirs

    def test_wildcard_exclusion(self, project):
        report = TestCollector(project, norecursedirs=".* tmp*").collect()

        assert Path("tmp_build") in report.excluded_dirs
        assert not any(nodeid.startswith("tmp_build") for nodeid in report.nodeids)

    def test_shadow_detection_can_be_disabled(self, project):
        report = TestCollector(
            project, norecursedirs=".* config", detect_shadowed=False
        ).collect()
        assert report.shadowed_dirs == []

    def test_parse_false_lists_files_only(self, project):
        report = TestCollector(project, norecursedirs=".*").collect(parse=False)

        assert report.items == []
        assert Path("tests/test_widget.py") in report.files


class TestExplicitInclusion:
    def test_testpaths_are_never_excluded(self, project):
        report = TestCollector(
            project, norecursedirs=".* config", testpaths=["tests/config"]
        ).collect()

        assert report.nodeids == ["tests/config/test_settings.py::test_config_loads"]

    def test_testpaths_limit_the_walk(self, project):
        report = TestCollector(project, testpaths=["tests"]).collect()

        assert all(nodeid.startswith("tests/") for nodeid in report.nodeids)
        assert "tests/config/test_settings.py::test_config_loads" in report.nodeids

    def test_explicit_file_is_collected_whatever_its_name(self, project):
        report = TestCollector(project, testpaths=["src/widget.py"]).collect()

        assert report.nodeids == ["src/widget.py::test_looks_like_a_test"]

    def test_missing_testpath_raises(self, project):
        with pytest.raises(CollectionError, match="not found: nowhere"):
            TestCollector(project, testpaths=["nowhere"]).collect()


class TestParsing:
    def test_syntax_error_names_the_file(self, make_tree):
        root = make_tree({"test_broken.py": "def test_x(:\n"})
        with pytest.raises(CollectionError, match="test_broken.py"):
            TestCollector(root).collect()

    def test_class_with_init_is_skipped(self, make_tree):
        root = make_tree(
            {
                "test_init.py": (
                    "class TestHasInit:\n"
                    "    def __init__(self):\n"
                    "        pass\n\n"
                    "    def test_never(self):\n"
                    "        pass\n"
                )
            }
        )
        assert TestCollector(root).collect().items == []

    def test_custom_function_globs(self, make_tree):
        root = make_tree(
            {"test_checks.py": "def check_one():\n    pass\n\ndef test_two():\n    pass\n"}
        )
        report = TestCollector(root, python_functions="check_*").collect()
        assert report.nodeids == ["test_checks.py::check_one"]

    def test_lineno_is_recorded(self, make_tree):
        root = make_tree({"test_lines.py": "\n\ndef test_third_line():\n    pass\n"})
        (item,) = TestCollector(root).collect().items
        assert item.lineno == 3
        assert item.cls is None


def test_find_shadowed_dirs(project):
    assert find_shadowed_dirs(project, norecursedirs=".* tmp*") == [Path("tmp_build")]


def test_collector_from_config(project):
    config = TxIsolateConfig(dict_config={"collection": {"norecursedirs": ".*"}})

    collector = collector_from_config(project, config, extra_exclusions=["config"])
    report = collector.collect()

    assert list(collector.exclusions) == [".*", "config"]
    assert "tests/config/test_settings.py::test_config_loads" not in report.nodeids


def test_report_to_dict(project):
    report = TestCollector(project, norecursedirs=".* config").collect()
    data = report.to_dict()

    assert data["shadowed_dirs"] == ["config", "tests/config"]
    assert data["items"] == report.nodeids
