import itertools
import random

import pytest

from app.core.errors import InvalidRequestError, NotificationNotFoundError
from app.models.notification import NOTIFICATION_TYPES, Notification
from app.services import notification_store
from tests.factories import add_notification


def _ids(rows):
    return [r.id for r in rows]


def test_list_is_newest_first_and_scoped_to_owner(db):
    old = add_notification(db, "user-1", minutes=1)
    new = add_notification(db, "user-1", minutes=5)
    add_notification(db, "user-2", minutes=3)

    rows = notification_store.list_notifications(db, "user-1")

    assert _ids(rows) == [new.id, old.id]


def test_deleted_never_listed_or_counted_for_any_filter(db):
    add_notification(db, minutes=1, notification_type="signal")
    add_notification(db, minutes=2, notification_type="event", read=True)
    gone_unread = add_notification(db, minutes=3, notification_type="signal", deleted=True)
    gone_read = add_notification(db, minutes=4, notification_type="event", read=True, deleted=True)

    for ntype, unread_only in itertools.product([None, *NOTIFICATION_TYPES], [False, True]):
        rows = notification_store.list_notifications(
            db, "user-1", limit=200, notification_type=ntype, unread_only=unread_only
        )
        assert gone_unread.id not in _ids(rows)
        assert gone_read.id not in _ids(rows)
    assert notification_store.count_unread(db, "user-1") == 1


def test_type_and_unread_filters(db):
    signal = add_notification(db, minutes=1, notification_type="signal")
    add_notification(db, minutes=2, notification_type="event")
    add_notification(db, minutes=3, notification_type="signal", read=True)

    rows = notification_store.list_notifications(db, "user-1", notification_type="signal", unread_only=True)

    assert _ids(rows) == [signal.id]


def test_pages_are_contiguous_slices_of_full_list(db):
    for m in range(7):
        add_notification(db, minutes=m)
    # two rows sharing a timestamp
    add_notification(db, minutes=3)

    full = _ids(notification_store.list_notifications(db, "user-1", limit=200))
    first = _ids(notification_store.list_notifications(db, "user-1", limit=3, offset=0))
    second = _ids(notification_store.list_notifications(db, "user-1", limit=3, offset=3))

    assert first == full[:3]
    assert second == full[3:6]
    assert not set(first) & set(second)


def test_equal_timestamps_keep_a_stable_order(db):
    for _ in range(5):
        add_notification(db, minutes=0)

    runs = [_ids(notification_store.list_notifications(db, "user-1")) for _ in range(3)]

    assert runs[0] == runs[1] == runs[2]


def test_list_rejects_bad_paging_and_unknown_type(db):
    with pytest.raises(InvalidRequestError):
        notification_store.list_notifications(db, "user-1", limit=0)
    with pytest.raises(InvalidRequestError):
        notification_store.list_notifications(db, "user-1", offset=-1)
    with pytest.raises(InvalidRequestError):
        notification_store.list_notifications(db, "user-1", notification_type="webinar")


def test_mark_read_sets_read_at_once(db):
    row = add_notification(db)

    first = notification_store.mark_read(db, "user-1", row.id)
    read_at = first.read_at
    again = notification_store.mark_read(db, "user-1", row.id)

    assert first.read is True
    assert read_at is not None
    assert again.read_at == read_at


def test_mark_read_of_other_users_notification_is_not_found(db):
    row = add_notification(db, "user-2")

    with pytest.raises(NotificationNotFoundError):
        notification_store.mark_read(db, "user-1", row.id)
    db.refresh(row)
    assert row.read is False


def test_deleted_notification_cannot_be_marked_read(db):
    row = add_notification(db, deleted=True)

    with pytest.raises(NotificationNotFoundError):
        notification_store.mark_read(db, "user-1", row.id)


def test_mark_all_read_is_idempotent(db):
    add_notification(db, minutes=1)
    add_notification(db, minutes=2)
    add_notification(db, minutes=3, deleted=True)
    other = add_notification(db, "user-2", minutes=4)

    assert notification_store.mark_all_read(db, "user-1") == 2
    assert notification_store.mark_all_read(db, "user-1") == 0
    assert notification_store.count_unread(db, "user-1") == 0
    db.refresh(other)
    assert other.read is False


def test_mark_all_read_leaves_deleted_rows_alone(db):
    gone = add_notification(db, deleted=True)

    notification_store.mark_all_read(db, "user-1")

    db.refresh(gone)
    assert gone.read is False
    assert gone.read_at is None


def test_soft_delete_keeps_the_row(db):
    row = add_notification(db)

    notification_store.soft_delete(db, "user-1", row.id)

    stored = db.query(Notification).filter(Notification.id == row.id).one()
    assert stored.deleted is True
    assert stored.deleted_at is not None
    assert notification_store.list_notifications(db, "user-1") == []
    assert notification_store.get_notification(db, row.id) is not None


def test_create_for_users_dedupes_recipients(db):
    rows = notification_store.create_notification_for_users(
        db,
        ["user-2", "user-1", "user-2", " ", ""],
        notification_type="announcement",
        title="Weekly outlook",
        message="Majors outlook is live",
        metadata={"analysis_id": "a1"},
    )

    assert sorted(r.user_id for r in rows) == ["user-1", "user-2"]
    assert all(r.read is False and r.deleted is False for r in rows)
    assert rows[0].payload == {"analysis_id": "a1"}


def test_create_rejects_unknown_type(db):
    with pytest.raises(InvalidRequestError):
        notification_store.create_notification(
            db, user_id="user-1", notification_type="promo", title="t", message="m"
        )


@pytest.mark.parametrize("seed", range(6))
def test_unread_count_tracks_random_interleavings(db, seed):
    rng = random.Random(seed)
    users = ["alice", "bob"]
    shadow = {}  # id -> [user, read, deleted]

    for _ in range(50):
        user = rng.choice(users)
        visible = [nid for nid, (u, _, deleted) in shadow.items() if u == user and not deleted]
        op = rng.choice(["insert", "insert", "read", "read_all", "delete"])
        if op == "insert":
            row = notification_store.create_notification(
                db,
                user_id=user,
                notification_type=rng.choice(NOTIFICATION_TYPES),
                title="t",
                message="m",
            )
            shadow[row.id] = [user, False, False]
        elif op == "read" and visible:
            nid = rng.choice(visible)
            notification_store.mark_read(db, user, nid)
            shadow[nid][1] = True
        elif op == "read_all":
            notification_store.mark_all_read(db, user)
            for nid in visible:
                shadow[nid][1] = True
        elif op == "delete" and visible:
            nid = rng.choice(visible)
            notification_store.soft_delete(db, user, nid)
            shadow[nid][2] = True

        for u in users:
            expected = sum(1 for (owner, read, deleted) in shadow.values() if owner == u and not read and not deleted)
            assert notification_store.count_unread(db, u) == expected

    for row in db.query(Notification).all():
        assert (row.read_at is not None) == row.read
        assert (row.deleted_at is not None) == row.deleted
