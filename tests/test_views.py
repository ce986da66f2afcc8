from noteminder.models import Note, NoteImportance, NoteStatus
from noteminder.views import (
    SortConfig,
    SortDirection,
    SortKey,
    derive_view,
    filter_today,
    next_sort_config,
    sort_notes,
)
from tests.conftest import UTC, utc_ms

NOW = utc_ms(2026, 10, 19, 12, 0)


def _ids(notes):
    return [n.id for n in notes]


def test_sort_toggle_cycles_back_to_input_order():
    notes = [
        Note(id="a", created_at=3),
        Note(id="b", created_at=1),
        Note(id="c", created_at=2),
    ]
    config = None
    seen = []
    for _ in range(3):
        config = next_sort_config(config, SortKey.CREATED_AT)
        seen.append(_ids(derive_view(notes, config)))
    assert seen == [["b", "c", "a"], ["a", "c", "b"], ["a", "b", "c"]]
    assert config is None


def test_new_key_restarts_at_ascending():
    config = SortConfig(SortKey.STATUS, SortDirection.DESC)
    assert next_sort_config(config, SortKey.IMPORTANCE) == SortConfig(SortKey.IMPORTANCE, SortDirection.ASC)


def test_importance_uses_rank_and_is_stable():
    notes = [
        Note(id="m1", importance=NoteImportance.MEDIUM),
        Note(id="h", importance=NoteImportance.HIGH),
        Note(id="l", importance=NoteImportance.LOW),
        Note(id="m2", importance=NoteImportance.MEDIUM),
    ]
    asc = sort_notes(notes, SortConfig(SortKey.IMPORTANCE))
    desc = sort_notes(notes, SortConfig(SortKey.IMPORTANCE, SortDirection.DESC))
    assert _ids(asc) == ["l", "m1", "m2", "h"]
    # equal elements keep input order in both directions
    assert _ids(desc) == ["h", "m1", "m2", "l"]


def test_status_follows_lifecycle_order():
    notes = [
        Note(id="done", status=NoteStatus.DONE),
        Note(id="todo", status=NoteStatus.TODO),
        Note(id="partial", status=NoteStatus.PARTIAL),
        Note(id="doing", status=NoteStatus.IN_PROGRESS),
    ]
    assert _ids(sort_notes(notes, SortConfig(SortKey.STATUS))) == ["todo", "doing", "partial", "done"]


def test_reminder_sort_puts_disabled_reminders_lowest():
    notes = [
        Note(id="late", is_reminder_on=True, reminder_time=500),
        Note(id="off", is_reminder_on=False, reminder_time=1),
        Note(id="early", is_reminder_on=True, reminder_time=100),
    ]
    assert _ids(sort_notes(notes, SortConfig(SortKey.REMINDER_TIME))) == ["off", "early", "late"]


def test_missing_values_stay_last_in_both_directions():
    notes = [
        Note(id="none1"),
        Note(id="x", end_time=5),
        Note(id="none2"),
        Note(id="y", end_time=9),
    ]
    asc = sort_notes(notes, SortConfig(SortKey.END_TIME))
    desc = sort_notes(notes, SortConfig(SortKey.END_TIME, SortDirection.DESC))
    assert _ids(asc) == ["x", "y", "none1", "none2"]
    assert _ids(desc) == ["y", "x", "none1", "none2"]


def test_today_filter_uses_interval_overlap():
    notes = [
        Note(id="overnight", start_time=utc_ms(2026, 10, 18, 23, 0), end_time=utc_ms(2026, 10, 19, 1, 0)),
        Note(id="yesterday", start_time=utc_ms(2026, 10, 18, 9, 0), end_time=utc_ms(2026, 10, 18, 10, 0)),
        Note(id="tomorrow", start_time=utc_ms(2026, 10, 20, 0, 0)),
        Note(id="point", start_time=utc_ms(2026, 10, 19, 23, 59, 59)),
        Note(id="no-start", end_time=NOW),
    ]
    assert _ids(filter_today(notes, NOW, UTC)) == ["overnight", "point"]


def test_derive_view_filters_then_sorts():
    notes = [
        Note(id="a", start_time=utc_ms(2026, 10, 19, 15, 0), importance=NoteImportance.LOW),
        Note(id="b", start_time=utc_ms(2026, 10, 25, 9, 0), importance=NoteImportance.HIGH),
        Note(id="c", start_time=utc_ms(2026, 10, 19, 8, 0), importance=NoteImportance.HIGH),
    ]
    view = derive_view(
        notes,
        SortConfig(SortKey.IMPORTANCE, SortDirection.DESC),
        today_only=True,
        now=NOW,
        tz=UTC,
    )
    assert _ids(view) == ["c", "a"]
