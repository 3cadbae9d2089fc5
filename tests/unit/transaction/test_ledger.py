"""Unit tests for the rollback ledger."""

from txisolate.transaction.ledger import RollbackLedger


def test_balanced_session():
    ledger = RollbackLedger()
    for test_id in ("t::a", "t::b"):
        ledger.record_begin(test_id)
        ledger.record_rollback(test_id)

    assert ledger.opened == 2
    assert ledger.rolled_back == 2
    assert ledger.leaks() == []
    assert ledger.double_reverts() == []
    assert ledger.summary() == "2 of 2 transactions rolled back"


def test_leak_and_double_revert_are_reported():
    ledger = RollbackLedger()
    ledger.record_begin("t::leaky")
    ledger.record_begin("t::twice")
    ledger.record_rollback("t::twice")
    ledger.record_rollback("t::twice")

    assert ledger.leaks() == ["t::leaky"]
    assert ledger.double_reverts() == ["t::twice"]
    assert ledger.rollbacks_for("t::twice") == 2
    assert ledger.rollbacks_for("t::leaky") == 0
    assert ledger.summary() == (
        "2 of 2 transactions rolled back (1 leaked, 1 double reverts)"
    )


def test_failures():
    ledger = RollbackLedger()
    ledger.record_begin("t::a")
    ledger.record_rollback("t::a")
    ledger.record_failure("t::a", RuntimeError("disk gone"))

    assert ledger.failures() == {"t::a": "RuntimeError('disk gone')"}
    assert ledger.summary().endswith("(1 rollback failures)")
