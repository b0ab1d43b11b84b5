from app.whtransfers.services.code_resolver import CodeResolver
from tests.saga_helpers import add_box


def test_box_code_expands_to_sku_times_multiplier(db_session):
    add_box(db_session, "BOX-X-10", "X", 10)

    resolution = CodeResolver(db_session).resolve([("BOX-X-10", 2)])

    assert len(resolution.lines) == 1
    line = resolution.lines[0]
    assert (line.sku, line.qty, line.box_code, line.scanned_code) == ("X", 20, "BOX-X-10", "BOX-X-10")


def test_plain_code_passes_through(db_session):
    resolution = CodeResolver(db_session).resolve([("7501234567890", 3)])

    line = resolution.lines[0]
    assert (line.sku, line.qty, line.box_code) == ("7501234567890", 3, None)


def test_codes_are_trimmed_and_empty_or_non_positive_lines_dropped(db_session):
    resolution = CodeResolver(db_session).resolve([("  A  ", 1), ("", 4), ("   ", 2), ("B", 0), ("C", -1)])

    assert [(line.sku, line.qty) for line in resolution.lines] == [("A", 1)]


def test_signed_resolution_keeps_negative_lines_and_expands_boxes(db_session):
    add_box(db_session, "BOX-X-10", "X", 10)

    resolution = CodeResolver(db_session).resolve(
        [("BOX-X-10", -1), ("Y", -3), ("Z", 0), ("W", 2)], allow_negative=True
    )

    assert [(line.sku, line.qty) for line in resolution.lines] == [("X", -10), ("Y", -3), ("W", 2)]


def test_inactive_box_is_not_expanded(db_session):
    add_box(db_session, "BOX-OLD", "X", 6, is_active=False)

    line = CodeResolver(db_session).resolve_one("BOX-OLD", 2)

    assert (line.sku, line.qty, line.box_code) == ("BOX-OLD", 2, None)


def test_totals_sum_box_and_loose_units_per_sku(db_session):
    add_box(db_session, "BOX-X-10", "X", 10)

    resolution = CodeResolver(db_session).resolve([("X", 3), ("BOX-X-10", 1), ("Y", 2), ("X", 1)])

    assert resolution.totals() == {"X": 14, "Y": 2}
    assert list(resolution.totals()) == ["X", "Y"]


def test_empty_input_is_empty_resolution(db_session):
    resolution = CodeResolver(db_session).resolve([])
    assert resolution.is_empty
    assert resolution.totals() == {}
