"""Tests for context binding helpers."""

import pytest
import structlog

from txisolate.core.logging import (
    bind_isolation_context,
    clear_isolation_context,
    get_isolation_context,
    set_isolation_context,
)
from txisolate.core.structlog_utils import bind_context


@pytest.fixture(autouse=True)
def clean_context():
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()


class Holder:
    def __init__(self, test_id):
        self.test_id = test_id

    @bind_context(test_id="self.test_id")
    def current(self):
        return get_isolation_context()

    @bind_context(test_id="self.test_id")
    def explode(self):
        raise RuntimeError("boom")


def test_bind_context_binds_for_the_call_only():
    holder = Holder("tests/test_a.py::test_one")

    assert holder.current() == {"isolation_test_id": "tests/test_a.py::test_one"}
    assert get_isolation_context() == {}


def test_bind_context_unbinds_on_exception():
    with pytest.raises(RuntimeError):
        Holder("t").explode()
    assert get_isolation_context() == {}


def test_bind_context_skips_none_values():
    assert Holder(None).current() == {}


def test_positional_param_names():
    @bind_context("phase")
    def run(phase):
        return get_isolation_context()

    assert run("setup") == {"isolation_phase": "setup"}


def test_bind_isolation_context_restores_previous_value():
    set_isolation_context(test_id="outer")
    with bind_isolation_context(test_id="inner"):
        assert get_isolation_context()["isolation_test_id"] == "inner"
    assert get_isolation_context()["isolation_test_id"] == "outer"


def test_clear_leaves_foreign_keys():
    structlog.contextvars.bind_contextvars(request_id="abc")
    set_isolation_context(test_id="x")

    clear_isolation_context()

    assert structlog.contextvars.get_contextvars() == {"request_id": "abc"}
