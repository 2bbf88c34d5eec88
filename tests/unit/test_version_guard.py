"""
Unit tests for the version guard.

Tests cover:
- Request shape validation
- Global version preconditions
- Conditional and unconditional write/delete preconditions
"""

import pytest

from vssd.vss_server.engine import VersionGuard
from vssd.vss_server.errors import ConflictError, ErrorCode, InvalidRequestError
from vssd.vss_server.store import DeleteItem, MutationPlan, VersionedValue, WriteItem


class FakeTransaction:
    """In-memory stand-in for StoreTransaction reads."""

    def __init__(self, global_version=0, keys=None):
        self._global_version = global_version
        self._keys = keys or {}

    def global_version(self):
        return self._global_version

    def get(self, key):
        return self._keys.get(key)


class TestValidateRequest:
    """Tests for VersionGuard.validate_request."""

    @pytest.fixture
    def guard(self):
        return VersionGuard()

    def test_valid_plan(self, guard):
        plan = MutationPlan(
            store_id="s",
            global_version=0,
            writes=(WriteItem("a", 0, b"1"), WriteItem("b", -1, b"2")),
            deletes=(DeleteItem("c", 3),),
        )
        guard.validate_request(plan)

    def test_empty_plan_is_valid(self, guard):
        guard.validate_request(MutationPlan(store_id="s"))

    def test_missing_store_id(self, guard):
        with pytest.raises(InvalidRequestError):
            guard.validate_request(MutationPlan(store_id="", writes=(WriteItem("a", 0),)))

    def test_empty_key(self, guard):
        with pytest.raises(InvalidRequestError):
            guard.validate_request(MutationPlan(store_id="s", writes=(WriteItem("", 0),)))

    def test_version_below_minus_one(self, guard):
        with pytest.raises(InvalidRequestError):
            guard.validate_request(MutationPlan(store_id="s", deletes=(DeleteItem("a", -2),)))

    def test_negative_global_version(self, guard):
        with pytest.raises(InvalidRequestError):
            guard.validate_request(MutationPlan(store_id="s", global_version=-1))

    def test_global_version_beyond_int64(self, guard):
        with pytest.raises(InvalidRequestError):
            guard.validate_request(MutationPlan(store_id="s", global_version=2**63))

    def test_version_beyond_int64(self, guard):
        guard.validate_request(MutationPlan(store_id="s", writes=(WriteItem("a", 2**63 - 1),)))

        with pytest.raises(InvalidRequestError):
            guard.validate_request(MutationPlan(store_id="s", writes=(WriteItem("a", 2**63),)))
        with pytest.raises(InvalidRequestError):
            guard.validate_request(MutationPlan(store_id="s", deletes=(DeleteItem("a", 2**70),)))

    def test_duplicate_write_keys(self, guard):
        plan = MutationPlan(store_id="s", writes=(WriteItem("a", 0), WriteItem("a", 1)))
        with pytest.raises(InvalidRequestError) as exc_info:
            guard.validate_request(plan)
        assert exc_info.value.code == ErrorCode.INVALID_REQUEST_EXCEPTION

    def test_duplicate_key_across_writes_and_deletes(self, guard):
        plan = MutationPlan(
            store_id="s",
            writes=(WriteItem("a", 0),),
            deletes=(DeleteItem("a", -1),),
        )
        with pytest.raises(InvalidRequestError):
            guard.validate_request(plan)


class TestCheck:
    """Tests for VersionGuard.check."""

    @pytest.fixture
    def guard(self):
        return VersionGuard()

    def test_global_version_match(self, guard):
        txn = FakeTransaction(global_version=4)
        guard.check(MutationPlan(store_id="s", global_version=4), txn)

    def test_global_version_mismatch(self, guard):
        txn = FakeTransaction(global_version=4)
        with pytest.raises(ConflictError) as exc_info:
            guard.check(MutationPlan(store_id="s", global_version=3), txn)
        assert exc_info.value.code == ErrorCode.CONFLICT_EXCEPTION
        assert exc_info.value.details["global_version"] == 4

    def test_global_version_skipped_when_absent(self, guard):
        guard.check(MutationPlan(store_id="s"), FakeTransaction(global_version=9))

    def test_first_write_expects_zero(self, guard):
        txn = FakeTransaction()
        guard.check(MutationPlan(store_id="s", writes=(WriteItem("a", 0),)), txn)

        with pytest.raises(ConflictError):
            guard.check(MutationPlan(store_id="s", writes=(WriteItem("a", 1),)), txn)

    def test_conditional_write_matches_current_version(self, guard):
        txn = FakeTransaction(keys={"a": VersionedValue(5, b"x")})
        current = guard.check(MutationPlan(store_id="s", writes=(WriteItem("a", 5),)), txn)
        assert current["a"].version == 5

        with pytest.raises(ConflictError) as exc_info:
            guard.check(MutationPlan(store_id="s", writes=(WriteItem("a", 4),)), txn)
        assert exc_info.value.details["version"] == 5

    def test_unconditional_write_always_passes(self, guard):
        txn = FakeTransaction(keys={"a": VersionedValue(5, b"x")})
        current = guard.check(
            MutationPlan(store_id="s", writes=(WriteItem("a", -1), WriteItem("b", -1))),
            txn,
        )
        assert current == {"a": VersionedValue(5, b"x"), "b": None}

    def test_conditional_delete(self, guard):
        txn = FakeTransaction(keys={"a": VersionedValue(2, b"x")})
        guard.check(MutationPlan(store_id="s", deletes=(DeleteItem("a", 2),)), txn)

        with pytest.raises(ConflictError):
            guard.check(MutationPlan(store_id="s", deletes=(DeleteItem("a", 1),)), txn)

    def test_conditional_delete_of_missing_key_conflicts(self, guard):
        with pytest.raises(ConflictError):
            guard.check(
                MutationPlan(store_id="s", deletes=(DeleteItem("missing", 0),)),
                FakeTransaction(),
            )

    def test_unconditional_delete_of_missing_key_passes(self, guard):
        guard.check(
            MutationPlan(store_id="s", deletes=(DeleteItem("missing", -1),)),
            FakeTransaction(),
        )

    def test_any_failure_rejects_plan(self, guard):
        """One stale item among valid ones still fails the whole check."""
        txn = FakeTransaction(
            keys={"a": VersionedValue(1, b""), "b": VersionedValue(1, b"")},
        )
        plan = MutationPlan(
            store_id="s",
            writes=(WriteItem("a", 1), WriteItem("b", 0)),
            deletes=(DeleteItem("c", -1),),
        )
        with pytest.raises(ConflictError) as exc_info:
            guard.check(plan, txn)
        assert exc_info.value.details["key"] == "b"
