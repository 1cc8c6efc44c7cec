"""
Tests for storage backends and transaction support
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from billing_core.storage import InMemoryStorage, SQLiteStorage, StorageRecord, decimal_to_str


# Test data
test_data = {
    "id": "contract_001",
    "client_name": "Ana",
    "principal": "1000.00",
    "created_at": datetime.now(timezone.utc).isoformat(),
    "updated_at": datetime.now(timezone.utc).isoformat()
}


@pytest.fixture(params=["memory", "sqlite"])
def storage(request, tmp_path):
    if request.param == "memory":
        backend = InMemoryStorage()
    else:
        backend = SQLiteStorage(tmp_path / "test.db")
    yield backend
    backend.close()


class TestStorageBackends:
    """Test both backends behave the same"""

    def test_basic_operations(self, storage):
        """Test CRUD operations"""
        storage.save("contracts", "contract_001", test_data)
        assert storage.load("contracts", "contract_001") == test_data

        assert storage.exists("contracts", "contract_001")
        assert not storage.exists("contracts", "missing")

        storage.save("contracts", "contract_002", {"id": "contract_002", "client_name": "Bia"})
        assert len(storage.load_all("contracts")) == 2
        assert storage.count("contracts") == 2

        results = storage.find("contracts", {"client_name": "Bia"})
        assert [r["id"] for r in results] == ["contract_002"]

        assert storage.delete("contracts", "contract_001")
        assert not storage.delete("contracts", "contract_001")
        assert storage.load("contracts", "contract_001") is None

    def test_loaded_copy_is_detached(self, storage):
        storage.save("contracts", "c1", {"id": "c1", "due_dates": ["2024-01-01"]})
        loaded = storage.load("contracts", "c1")
        loaded["due_dates"].append("2024-02-01")

        assert storage.load("contracts", "c1")["due_dates"] == ["2024-01-01"]

    def test_lookup_by_indexed_fields(self, storage):
        storage.save("payment_events", "p1", {"id": "p1", "contract_id": "c1", "amount": "80"})
        storage.save("payment_events", "p2", {"id": "p2", "contract_id": "c2", "amount": "10"})
        storage.save("payment_events", "p3", {"id": "p3", "contract_id": "c1", "amount": "20"})

        assert [r["id"] for r in storage.find("payment_events", {"contract_id": "c1"})] == ["p1", "p3"]
        assert [r["id"] for r in storage.find("payment_events",
                                              {"contract_id": "c1", "amount": "20"})] == ["p3"]
        assert storage.find("payment_events", {"contract_id": "c9"}) == []

    def test_delete_where(self, storage):
        storage.save("payment_events", "p1", {"id": "p1", "contract_id": "c1"})
        storage.save("payment_events", "p2", {"id": "p2", "contract_id": "c2"})
        storage.save("payment_events", "p3", {"id": "p3", "contract_id": "c1"})

        assert storage.delete_where("payment_events", {"contract_id": "c1"}) == 2
        assert [r["id"] for r in storage.load_all("payment_events")] == ["p2"]
        assert storage.delete_where("payment_events", {"contract_id": "c1"}) == 0

    def test_atomic_commit(self, storage):
        with storage.atomic():
            storage.save("contracts", "c1", {"id": "c1"})
            storage.save("payment_events", "p1", {"id": "p1", "contract_id": "c1"})

        assert storage.exists("contracts", "c1")
        assert storage.exists("payment_events", "p1")

    def test_atomic_rollback(self, storage):
        storage.save("contracts", "c1", {"id": "c1", "notes": "before"})

        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("contracts", "c1", {"id": "c1", "notes": "after"})
                storage.save("payment_events", "p1", {"id": "p1"})
                raise RuntimeError("payment failed")

        assert storage.load("contracts", "c1")["notes"] == "before"
        assert not storage.exists("payment_events", "p1")

    def test_nested_atomic_rolls_back_everything(self, storage):
        storage.save("contracts", "c1", {"id": "c1", "notes": "before"})

        with pytest.raises(ValueError):
            with storage.atomic():
                storage.save("contracts", "c1", {"id": "c1", "notes": "outer"})
                with storage.atomic():
                    storage.save("contracts", "c2", {"id": "c2"})
                raise ValueError("late failure")

        assert storage.load("contracts", "c1")["notes"] == "before"
        assert not storage.exists("contracts", "c2")


class TestSQLitePersistence:
    """Test data survives reopening the database"""

    def test_reopen(self, tmp_path):
        path = tmp_path / "billing.db"
        storage = SQLiteStorage(path)
        storage.save("contracts", "c1", test_data)
        storage.close()

        reopened = SQLiteStorage(path)
        assert reopened.load("contracts", "c1") == test_data
        reopened.close()


class TestStorageRecord:
    """Test record serialization helpers"""

    def test_base_dict(self):
        now = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)
        record = StorageRecord(id="r1", created_at=now, updated_at=now)

        assert record.base_dict() == {
            "id": "r1",
            "created_at": now.isoformat(),
            "updated_at": now.isoformat()
        }

    def test_decimal_to_str(self):
        assert decimal_to_str(Decimal('433.3333333333')) == "433.3333333333"
        assert decimal_to_str(None) is None
