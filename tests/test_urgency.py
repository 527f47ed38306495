from datetime import date, datetime

import pytest

from decor_scheduler.models import AppointmentStatus as S
from decor_scheduler.urgency import Bucket, classify, days_until, sort_by_urgency, urgent_appointments

NOW = datetime(2024, 3, 13, 22, 30)


@pytest.mark.parametrize(
    "event_date, expected",
    [
        (date(2024, 3, 13), Bucket.TODAY),
        (date(2024, 3, 14), Bucket.TOMORROW),
        (date(2024, 3, 15), Bucket.UPCOMING),
        (date(2024, 3, 16), Bucket.UPCOMING),
        (date(2024, 3, 17), None),
        (date(2024, 3, 12), None),
    ],
)
def test_classify_by_distance(make_appointment, event_date, expected):
    assert classify(make_appointment(event_date), NOW) == expected


@pytest.mark.parametrize("status", [S.CANCELLED, S.COMPLETED])
def test_closed_appointments_never_classify(make_appointment, status):
    for offset in range(0, 4):
        appt = make_appointment(date(2024, 3, 13 + offset), status)
        assert classify(appt, NOW) is None


def test_confirmed_and_missing_status_classify(make_appointment):
    assert classify(make_appointment(date(2024, 3, 13), S.CONFIRMED), NOW) is Bucket.TODAY
    assert classify(make_appointment(date(2024, 3, 13), None), NOW) is Bucket.TODAY


def test_wider_horizon(make_appointment):
    appt = make_appointment(date(2024, 3, 20))

    assert classify(appt, NOW) is None
    assert classify(appt, NOW, upcoming_days=7) is Bucket.UPCOMING


def test_days_until_ignores_time_of_day():
    assert days_until(date(2024, 3, 14), datetime(2024, 3, 13, 23, 59)) == 1
    assert days_until(date(2024, 3, 10), date(2024, 3, 13)) == -3


def test_bucket_priority():
    assert [b.priority for b in Bucket] == [0, 1, 2, 3]


def test_sort_is_stable_within_bucket():
    items = [
        ("a", Bucket.UPCOMING),
        ("b", Bucket.REMINDER),
        ("c", Bucket.TODAY),
        ("d", Bucket.UPCOMING),
        ("e", Bucket.TODAY),
        ("f", Bucket.TOMORROW),
    ]

    ordered = sort_by_urgency(items, key=lambda item: item[1])

    assert [name for name, _ in ordered] == ["c", "e", "f", "a", "d", "b"]


def test_urgent_appointments(make_appointment):
    later = make_appointment(date(2024, 3, 16))
    today = make_appointment(date(2024, 3, 13))
    gone = make_appointment(date(2024, 3, 13), S.CANCELLED)
    far = make_appointment(date(2024, 4, 1))

    pairs = urgent_appointments([later, gone, far, today], NOW)

    assert pairs == [(Bucket.TODAY, today), (Bucket.UPCOMING, later)]
