from datetime import datetime, timedelta

from geovote.services.schedule import validate_schedule

NOW = datetime(2025, 6, 1, 12, 0, 0)
DAY = timedelta(days=1)


def test_empty_schedule_is_valid():
    assert validate_schedule({}, now=NOW) == []


def test_well_ordered_schedule_is_valid():
    fields = {
        "registration_start": NOW + DAY,
        "registration_end": NOW + 2 * DAY,
        "voting_start": NOW + 2 * DAY,
        "voting_end": NOW + 3 * DAY,
    }
    assert validate_schedule(fields, now=NOW) == []


def test_past_dates_rejected_on_create_only():
    fields = {"voting_start": NOW - DAY, "voting_end": NOW + DAY}
    assert "Voting start must be in the future" in validate_schedule(fields, now=NOW)
    assert validate_schedule(fields, allow_past=True, now=NOW) == []


def test_registration_end_requires_start():
    errors = validate_schedule({"registration_end": NOW + DAY}, now=NOW)
    assert errors == ["Registration end requires a registration start"]


def test_end_before_start_rejected():
    errors = validate_schedule(
        {
            "registration_start": NOW + 2 * DAY,
            "registration_end": NOW + DAY,
            "voting_start": NOW + 4 * DAY,
            "voting_end": NOW + 3 * DAY,
        },
        now=NOW,
    )
    assert "Registration end must be after registration start" in errors
    assert "Voting end must be after voting start" in errors


def test_voting_cannot_overlap_registration():
    errors = validate_schedule(
        {
            "registration_start": NOW + DAY,
            "registration_end": NOW + 3 * DAY,
            "voting_start": NOW + 2 * DAY,
        },
        now=NOW,
    )
    assert errors == ["Voting start must be on or after registration end"]


def test_voting_start_after_open_registration_start():
    errors = validate_schedule({"registration_start": NOW + 2 * DAY, "voting_start": NOW + DAY}, now=NOW)
    assert errors == ["Voting start must be after registration start"]
