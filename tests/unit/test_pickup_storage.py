"""
Unit tests for the ledger stores.

Every behavioral test runs against both backends.
"""

import threading

import pytest

from anonpickup.crypto.field import FieldElement
from anonpickup.errors import (
    InputValidationError,
    InvalidStateError,
    NullifierReusedError,
    PackageNotFoundError,
)
from anonpickup.pickup import (
    InMemoryLedgerStore,
    PackageRecord,
    PackageStatus,
    SQLiteLedgerStore,
)
from anonpickup.pickup.package import ChallengeLink


def make_record(package_id: str = "PKG-1", created_at: float = 1000.0, **overrides) -> PackageRecord:
    values = dict(
        package_id=package_id,
        buyer_commitment=FieldElement(11),
        seller_commitment=FieldElement(22),
        store_address="STORE-7",
        min_age_required=18,
        created_at=created_at,
        expires_at=created_at + 100.0,
        item_price=1999,
        shipping_fee=500,
        pickup_credential=FieldElement(33),
    )
    values.update(overrides)
    return PackageRecord(**values)


def committed(record: PackageRecord) -> PackageRecord:
    updated = record.copy()
    updated.store_commitment = FieldElement(44)
    updated.status = PackageStatus.STORE_COMMITTED
    return updated


def picked_up(record: PackageRecord, nullifier: FieldElement) -> PackageRecord:
    updated = record.copy()
    updated.status = PackageStatus.PICKED_UP
    updated.nullifier = nullifier
    updated.picked_up_at = 1050.0
    return updated


@pytest.fixture(params=["memory", "sqlite"])
def store(request):
    if request.param == "memory":
        ledger = InMemoryLedgerStore()
    else:
        ledger = SQLiteLedgerStore()
    yield ledger
    ledger.close()


class TestPackageRecord:
    """Test the record type."""

    def test_dict_round_trip(self):
        """Test to_dict/from_dict."""
        record = picked_up(committed(make_record(seller="acme")), FieldElement(99))
        assert PackageRecord.from_dict(record.to_dict()) == record

    def test_from_dict_rejects_garbage(self):
        """Test malformed records."""
        data = make_record().to_dict()
        data["status"] = "lost"
        with pytest.raises(InputValidationError):
            PackageRecord.from_dict(data)
        with pytest.raises(InputValidationError):
            PackageRecord.from_dict({"package_id": "x"})

    def test_expiry_boundary(self):
        """Test a package is expired at exactly expires_at."""
        record = make_record()
        assert not record.is_expired(1099.999)
        assert record.is_expired(1100.0)

    def test_commitment_for(self):
        """Test challenge link lookup."""
        record = committed(make_record())
        assert record.commitment_for(ChallengeLink.CREDENTIAL) == FieldElement(33)
        assert record.commitment_for(ChallengeLink.BUYER) == FieldElement(11)
        assert record.commitment_for(ChallengeLink.SELLER) == FieldElement(22)
        assert record.commitment_for(ChallengeLink.STORE) == FieldElement(44)
        assert make_record().commitment_for(ChallengeLink.STORE) is None

    def test_terminal_states(self):
        """Test which states are terminal."""
        assert PackageStatus.PICKED_UP.is_terminal
        assert PackageStatus.EXPIRED.is_terminal
        assert not PackageStatus.REGISTERED.is_terminal
        assert not PackageStatus.STORE_COMMITTED.is_terminal


class TestLedgerStore:
    """Tests shared by both backends."""

    def test_insert_and_get(self, store):
        """Test records come back equal but not identical."""
        record = make_record()
        store.insert_package(record)
        loaded = store.get_package("PKG-1")
        assert loaded == record
        assert loaded is not record
        assert store.get_package("missing") is None

    def test_returned_records_are_copies(self, store):
        """Test mutating a returned record does not touch the ledger."""
        store.insert_package(make_record())
        loaded = store.get_package("PKG-1")
        loaded.status = PackageStatus.PICKED_UP
        assert store.get_package("PKG-1").status is PackageStatus.REGISTERED

    def test_duplicate_insert(self, store):
        """Test package ids are unique."""
        store.insert_package(make_record())
        with pytest.raises(InvalidStateError) as exc_info:
            store.insert_package(make_record(item_price=1))
        assert exc_info.value.current_state == "registered"
        assert store.get_package("PKG-1").item_price == 1999

    def test_save_compare_and_set(self, store):
        """Test save only applies from the expected status."""
        record = make_record()
        store.insert_package(record)
        store.save_package(committed(record), PackageStatus.REGISTERED)
        assert store.get_package("PKG-1").status is PackageStatus.STORE_COMMITTED

        with pytest.raises(InvalidStateError):
            store.save_package(committed(record), PackageStatus.REGISTERED)
        with pytest.raises(PackageNotFoundError):
            store.save_package(make_record("PKG-9"), PackageStatus.REGISTERED)

    def test_list_packages(self, store):
        """Test ordering and status filter."""
        store.insert_package(make_record("PKG-B", created_at=2.0))
        store.insert_package(make_record("PKG-A", created_at=2.0))
        store.insert_package(make_record("PKG-C", created_at=1.0))
        store.save_package(committed(make_record("PKG-C", created_at=1.0)), PackageStatus.REGISTERED)
        assert [r.package_id for r in store.list_packages()] == ["PKG-C", "PKG-A", "PKG-B"]
        assert [r.package_id for r in store.list_packages(PackageStatus.REGISTERED)] == [
            "PKG-A",
            "PKG-B",
        ]
        assert store.list_packages(PackageStatus.EXPIRED) == []

    def test_consume_nullifier(self, store):
        """Test a nullifier can be recorded once."""
        nullifier = FieldElement(12345)
        assert not store.nullifier_exists(nullifier)
        assert store.consume_nullifier(nullifier, "PKG-1")
        assert store.nullifier_exists(nullifier)
        assert not store.consume_nullifier(nullifier, "PKG-2")
        assert store.count_nullifiers() == 1

    def test_concurrent_consume(self, store):
        """Test exactly one of many racing inserts wins."""
        nullifier = FieldElement(777)
        barrier = threading.Barrier(50)
        results = []
        results_lock = threading.Lock()

        def worker(i):
            barrier.wait()
            outcome = store.consume_nullifier(nullifier, f"PKG-{i}")
            with results_lock:
                results.append(outcome)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(50)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count(True) == 1
        assert store.count_nullifiers() == 1

    def test_commit_pickup(self, store):
        """Test the nullifier and the transition land together."""
        record = committed(make_record())
        store.insert_package(record)
        nullifier = FieldElement(999)
        store.commit_pickup(picked_up(record, nullifier), nullifier)
        loaded = store.get_package("PKG-1")
        assert loaded.status is PackageStatus.PICKED_UP
        assert loaded.nullifier == nullifier
        assert store.nullifier_exists(nullifier)

    def test_commit_pickup_reused_nullifier_writes_nothing(self, store):
        """Test a known nullifier leaves the record untouched."""
        record = committed(make_record())
        store.insert_package(record)
        nullifier = FieldElement(999)
        store.consume_nullifier(nullifier, "PKG-0")
        with pytest.raises(NullifierReusedError):
            store.commit_pickup(picked_up(record, nullifier), nullifier)
        assert store.get_package("PKG-1").status is PackageStatus.STORE_COMMITTED
        assert store.count_nullifiers() == 1

    def test_commit_pickup_wrong_state_writes_nothing(self, store):
        """Test a record outside STORE_COMMITTED records no nullifier."""
        record = make_record()
        store.insert_package(record)
        nullifier = FieldElement(999)
        with pytest.raises(InvalidStateError):
            store.commit_pickup(picked_up(record, nullifier), nullifier)
        assert not store.nullifier_exists(nullifier)
        assert store.get_package("PKG-1").status is PackageStatus.REGISTERED

    def test_second_commit_fails(self, store):
        """Test a picked-up package cannot be picked up again."""
        record = committed(make_record())
        store.insert_package(record)
        store.commit_pickup(picked_up(record, FieldElement(1)), FieldElement(1))
        with pytest.raises(InvalidStateError):
            store.commit_pickup(picked_up(record, FieldElement(2)), FieldElement(2))
        assert store.count_nullifiers() == 1

    def test_context_manager(self):
        """Test with-statement closes the store."""
        with InMemoryLedgerStore() as ledger:
            ledger.insert_package(make_record())


class TestSQLitePersistence:
    """Test the file-backed ledger."""

    def test_survives_reopen(self, tmp_path):
        """Test records and nullifiers persist across connections."""
        path = str(tmp_path / "ledger" / "pickup.db")
        record = committed(make_record())
        with SQLiteLedgerStore(path) as ledger:
            ledger.insert_package(record)
            ledger.commit_pickup(picked_up(record, FieldElement(5)), FieldElement(5))

        with SQLiteLedgerStore(path) as reopened:
            loaded = reopened.get_package("PKG-1")
            assert loaded.status is PackageStatus.PICKED_UP
            assert reopened.nullifier_exists(FieldElement(5))
            assert not reopened.consume_nullifier(FieldElement(5), "PKG-2")

    def test_large_field_values(self, tmp_path):
        """Test 254-bit commitments survive storage as text."""
        big = FieldElement(2**253 + 12345)
        record = make_record(buyer_commitment=big, seller_commitment=big)
        with SQLiteLedgerStore(str(tmp_path / "big.db")) as ledger:
            ledger.insert_package(record)
            assert ledger.get_package("PKG-1").buyer_commitment == big
