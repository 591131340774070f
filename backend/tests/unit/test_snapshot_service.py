"""Tests for SnapshotService."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from services.snapshot_service import SnapshotService


class TestSnapshotService:
    def test_append_and_list_oldest_first(self, db):
        now = datetime.now(timezone.utc)
        SnapshotService.append(db, "user-1", Decimal("200"), taken_at=now - timedelta(hours=1))
        SnapshotService.append(db, "user-1", Decimal("100"), taken_at=now - timedelta(hours=2))

        rows = SnapshotService.list_for_user(db, "user-1")

        assert [r.total_value for r in rows] == [Decimal("100"), Decimal("200")]

    def test_window_excludes_old_snapshots(self, db):
        now = datetime.now(timezone.utc)
        SnapshotService.append(db, "user-1", Decimal("1"), taken_at=now - timedelta(days=40))
        SnapshotService.append(db, "user-1", Decimal("2"), taken_at=now - timedelta(days=5))

        assert len(SnapshotService.list_for_user(db, "user-1", days=30)) == 1
        assert len(SnapshotService.list_for_user(db, "user-1", days=60)) == 2

    def test_partial_filter(self, db):
        SnapshotService.append(db, "user-1", Decimal("10"))
        SnapshotService.append(db, "user-1", Decimal("5"), is_partial=True)

        assert len(SnapshotService.list_for_user(db, "user-1")) == 2
        complete = SnapshotService.list_for_user(db, "user-1", include_partial=False)
        assert [r.total_value for r in complete] == [Decimal("10")]

    def test_scoped_to_user(self, db):
        SnapshotService.append(db, "user-1", Decimal("10"))

        assert SnapshotService.list_for_user(db, "user-2") == []

    def test_default_timestamp(self, db):
        snapshot = SnapshotService.append(db, "user-1", Decimal("10"))

        assert snapshot.taken_at is not None
        assert snapshot.is_partial is False

    def test_latest_for_user(self, db):
        now = datetime.now(timezone.utc)
        SnapshotService.append(db, "user-1", Decimal("1"), taken_at=now - timedelta(hours=2))
        SnapshotService.append(db, "user-1", Decimal("2"), taken_at=now - timedelta(hours=1))
        SnapshotService.append(db, "user-2", Decimal("3"), taken_at=now)

        assert SnapshotService.latest_for_user(db, "user-1").total_value == Decimal("2")
        assert SnapshotService.latest_for_user(db, "nobody") is None
