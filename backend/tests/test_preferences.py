import pytest

from app.core.errors import InvalidRequestError
from app.services import preferences_service
from tests.factories import set_preference


def test_no_row_means_everything_enabled(db):
    for ntype in ("signal", "event", "announcement", "system"):
        assert preferences_service.is_push_enabled(db, "user-1", ntype)


def test_only_explicit_false_disables(db):
    set_preference(db, "user-1", push_signals=False, push_events=None, push_announcements=True)

    assert not preferences_service.is_push_enabled(db, "user-1", "signal")
    assert preferences_service.is_push_enabled(db, "user-1", "event")
    assert preferences_service.is_push_enabled(db, "user-1", "announcement")
    assert preferences_service.is_push_enabled(db, "user-1", "system")


def test_unknown_type_is_not_suppressed(db):
    set_preference(db, "user-1", push_signals=False, push_events=False, push_announcements=False, push_system=False)

    assert preferences_service.is_push_enabled(db, "user-1", "promo")


def test_flags_are_independent(db):
    preferences_service.update_preferences(db, "user-1", {"push_events": False})

    prefs = preferences_service.get_preferences(db, "user-1")

    assert prefs == {
        "push_signals": True,
        "push_events": False,
        "push_announcements": True,
        "push_system": True,
    }


def test_update_rejects_unknown_flag(db):
    with pytest.raises(InvalidRequestError):
        preferences_service.update_preferences(db, "user-1", {"push_marketing": False})
