from datetime import datetime, timedelta, timezone

import pytest

from app.services.notification_format import (
    format_event_notification,
    format_relative_time,
    format_signal_notification,
    notification_to_payload,
    route_for_push_data,
)
from tests.factories import BASE_TIME, add_notification

NOW = datetime(2026, 3, 30, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "delta, expected",
    [
        (timedelta(seconds=20), "Just now"),
        (timedelta(minutes=5), "5m ago"),
        (timedelta(hours=2, minutes=59), "2h ago"),
        (timedelta(days=3), "3d ago"),
        (timedelta(days=15), "2w ago"),
        (timedelta(days=40), "2026-02-18"),
    ],
)
def test_relative_time(delta, expected):
    assert format_relative_time(NOW - delta, now=NOW) == expected


def test_relative_time_accepts_iso_strings_and_naive_datetimes():
    assert format_relative_time("2026-03-30T11:00:00Z", now=NOW) == "1h ago"
    assert format_relative_time(datetime(2026, 3, 30, 11, 30), now=NOW) == "30m ago"


def test_signal_title_reflects_direction():
    buy = format_signal_notification(title="Breakout", trading_pair="EUR/USD", signal_type="buy", entry_price="1.0850")
    sell = format_signal_notification(title="Reversal", trading_pair="GBP/JPY", signal_type="sell", entry_price="191.20")

    assert buy == {"title": "📈 New Signal: EUR/USD", "message": "Breakout - Entry at 1.0850"}
    assert sell["title"] == "📉 New Signal: GBP/JPY"


def test_event_notification():
    result = format_event_notification(title="NFP live", event_type="webinar", start_date="2026-04-03T12:30:00Z")

    assert result == {"title": "📅 New Event: NFP live", "message": "webinar starting 2026-04-03"}


@pytest.mark.parametrize(
    "data, expected",
    [
        ({"notification_type": "signal", "metadata": {"signal_id": "42"}}, "/signals/42"),
        ({"notification_type": "signal"}, "/signals"),
        ({"notification_type": "event", "metadata": {"event_id": "7"}}, "/events/7"),
        ({"notification_type": "announcement", "metadata": {"analysis_id": "a1"}}, "/analysis/a1"),
        ({"notification_type": "system", "action_url": "/settings"}, "/settings"),
        ({"notification_type": "system"}, None),
        ({"notification_type": "signal", "metadata": ["42"]}, "/signals"),
        ({"notification_type": "event", "metadata": "7"}, "/events"),
        (None, None),
    ],
)
def test_route_for_push_data(data, expected):
    assert route_for_push_data(data) == expected


def test_payload_exposes_metadata_column(db):
    row = add_notification(db, metadata={"signal_id": "42"}, read=True)

    payload = notification_to_payload(row)

    assert payload["metadata"] == {"signal_id": "42"}
    assert payload["read"] is True
    assert payload["read_at"].startswith(BASE_TIME.date().isoformat())
    assert payload["deleted_at"] is None
