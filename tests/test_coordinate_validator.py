from __future__ import annotations

import pytest

from routesheet_automation.orchestrator.routesheet.constants import (
    EXPECTED_HEADERS,
    POSITION_TO_SQL_COLUMN,
    SQL_COLUMNS,
)
from routesheet_automation.orchestrator.routesheet.validator import (
    INVALID_RESPONSE_MESSAGE,
    convert_ai_response_to_sql,
    detect_column_shift,
    format_coordinate_table,
    validate_data_types,
    validate_headers_at_positions,
    validate_positions_present,
    validate_row_before_sql,
)


def test_complete_row_is_mapped_to_every_column(make_row):
    result = validate_row_before_sql(make_row())

    assert result.valid is True
    assert result.errors == []
    assert result.warnings == []
    assert set(result.mapped_data) == set(SQL_COLUMNS)
    assert result.mapped_data["tournee"] == "TCT0046"
    assert result.mapped_data["vehicule"] == "232"
    assert result.mapped_data["nom_employe_complet"] == "Rezali, Karim"


def test_blank_values_become_null_and_others_pass_through(make_row):
    result = validate_row_before_sql(make_row())

    assert result.mapped_data["autorisation"] is None
    assert result.mapped_data["changement_par"] is None
    assert result.mapped_data["approuve"] == "✓"


def test_missing_positions_reject_row_and_are_named(make_row):
    row = make_row(drop=(9, 12))

    check = validate_positions_present(row)
    assert check.valid is False
    assert check.missing == [9, 12]

    result = validate_row_before_sql(row)
    assert result.valid is False
    assert result.mapped_data is None
    assert result.errors == ["Missing positions: 9, 12"]


def test_header_matching_tolerates_accents_and_extra_words(make_row):
    row = make_row(headers={1: "tournee", 9: "No véhicule affecté", 13: "RETOUR"})
    assert validate_headers_at_positions(row).valid is True

    row = make_row(headers={1: "no tournée complet"})
    assert validate_row_before_sql(row).valid is True


def test_truncated_header_matches_as_substring(make_row):
    row = make_row(headers={11: "Auto"})
    assert validate_headers_at_positions(row).valid is True


def test_wrong_header_is_an_alignment_error(make_row):
    row = make_row(headers={3: "Heure"})

    check = validate_headers_at_positions(row)
    assert check.valid is False
    assert [e.position for e in check.errors] == [3]
    assert check.errors[0].got == "Heure"
    assert check.errors[0].expected == list(EXPECTED_HEADERS[3])

    result = validate_row_before_sql(row)
    assert result.valid is False
    assert result.mapped_data is None
    assert result.errors == ['Position 3: expected Déb tour/Deb tour/Début tour/Debut tournee, got "Heure"']


def test_accented_variant_only_matches_when_substring_survives_stripping(make_row):
    # Variants keep their accents while the detected header loses them.
    row = make_row(headers={7: "Nom de l'employé", 14: "Adresse de début"})

    check = validate_headers_at_positions(row)
    assert sorted(e.position for e in check.errors) == [7, 14]


def test_presence_and_header_errors_accumulate(make_row):
    row = make_row(drop=(5,), headers={2: "Total"})

    result = validate_row_before_sql(row)
    assert result.valid is False
    assert result.errors[0] == "Missing positions: 5"
    assert result.errors[1].startswith("Position 2: expected Nom/Nom compagnie/Compagnie")


def test_format_mismatch_is_only_a_warning(make_row):
    result = validate_row_before_sql(make_row(values={1: "TCT46"}))

    assert result.valid is True
    assert result.mapped_data["tournee"] == "TCT46"
    assert result.warnings == ['Position 1 (tournee): expected TCT#### (e.g. TCT0046), got "TCT46"']


def test_warnings_are_returned_with_rejections(make_row):
    result = validate_row_before_sql(make_row(values={9: "23"}, drop=(17,)))

    assert result.valid is False
    assert len(result.warnings) == 1
    assert result.warnings[0].startswith("Position 9 (vehicule)")


@pytest.mark.parametrize(
    "position,value,ok",
    [
        (3, "9:18", True),
        (3, "09:18", True),
        (4, "9h54", False),
        (6, "450", False),
        (8, "04500", False),
        (9, 232, True),
        (9, "23a", False),
        (1, "tct0046", False),
        (6, "٠٤٥٠", False),
        (1, "TCT0046\n", False),
    ],
)
def test_format_rules(make_row, position, value, ok):
    check = validate_data_types(make_row(values={position: value}))
    assert check.valid is ok
    if not ok:
        assert [issue.position for issue in check.errors] == [position]


def test_blank_values_skip_format_checks(make_row):
    check = validate_data_types(make_row(values={1: "", 3: "", 6: "", 8: "", 9: "", 4: None}))
    assert check.valid is True


def test_unknown_positions_are_ignored(make_row, make_raw_row):
    from routesheet_automation.orchestrator.routesheet.parser import coerce_row

    raw = make_raw_row()
    raw["cells_by_position"]["18"] = {"position": 18, "header": "Notes", "value": "late"}
    result = validate_row_before_sql(coerce_row(raw, 1))

    assert result.valid is True
    assert "late" not in result.mapped_data.values()
    assert len(result.mapped_data) == len(POSITION_TO_SQL_COLUMN)


def test_validation_is_repeatable(make_row):
    row = make_row(values={1: "TCT46"})
    assert validate_row_before_sql(row) == validate_row_before_sql(row)


def test_position_tables_are_read_only():
    with pytest.raises(TypeError):
        POSITION_TO_SQL_COLUMN[1] = "other"  # type: ignore[index]
    with pytest.raises(TypeError):
        EXPECTED_HEADERS[1] = ("Other",)  # type: ignore[index]
    assert len(set(POSITION_TO_SQL_COLUMN.values())) == 17


def test_batch_partitions_rows_in_order(make_raw_row):
    payload = {
        "phase": "execute",
        "rows": [make_raw_row(5), make_raw_row(6, drop=(9,)), make_raw_row(7, values={1: "TCT0047"})],
    }

    result = convert_ai_response_to_sql(payload)

    assert result.success is False
    assert len(result.valid_rows) == 2
    assert [r["tournee"] for r in result.valid_rows] == ["TCT0046", "TCT0047"]
    assert result.valid_row_numbers == [5, 7]
    assert len(result.errors) == 1
    assert result.errors[0].row == 6
    assert result.errors[0].messages == ["Missing positions: 9"]


def test_batch_success_and_warnings(make_raw_row):
    payload = {"phase": "execute", "rows": [make_raw_row(1), make_raw_row(2, values={9: "32"})]}

    result = convert_ai_response_to_sql(payload)

    assert result.success is True
    assert len(result.valid_rows) == 2
    assert [w.row for w in result.warnings] == [2]
    body = result.to_dict()
    assert body["errors"] == []
    assert body["warnings"][0]["row"] == 2


def test_batch_flags_run_parallel_to_valid_rows(make_raw_row):
    payload = {
        "rows": [
            make_raw_row(3, values={9: "32"}),
            make_raw_row(3),
            make_raw_row(3, drop=(1,)),
            make_raw_row(4, values={12: "0450"}),
        ]
    }

    result = convert_ai_response_to_sql(payload)

    assert result.valid_row_numbers == [3, 3, 4]
    assert len(result.valid_row_flags) == len(result.valid_rows)
    assert result.valid_row_flags[0][0].startswith("Position 9 (vehicule)")
    assert result.valid_row_flags[1] == []
    assert "check mark" in result.valid_row_flags[2][-1]


@pytest.mark.parametrize("payload", [{}, None, {"rows": None}, {"rows": {"1": {}}}, {"rows": "abc"}, []])
def test_malformed_response_yields_row_zero_error(payload):
    result = convert_ai_response_to_sql(payload)

    assert result.success is False
    assert result.valid_rows == []
    assert len(result.errors) == 1
    assert result.errors[0].row == 0
    assert result.errors[0].messages == [INVALID_RESPONSE_MESSAGE]


def test_broken_row_entry_is_rejected_not_raised(make_raw_row):
    payload = {"rows": [make_raw_row(1), "garbage", {"row_number": 9, "cells_by_position": []}]}

    result = convert_ai_response_to_sql(payload)

    assert len(result.valid_rows) == 1
    assert [e.row for e in result.errors] == [2, 9]
    assert len(result.valid_rows) + len(result.errors) == len(payload["rows"])


def test_empty_rows_list_is_a_success():
    result = convert_ai_response_to_sql({"phase": "execute", "rows": []})
    assert result.success is True
    assert result.valid_rows == []


def test_column_shift_detection(make_row):
    assert detect_column_shift(make_row()) == []

    notices = detect_column_shift(make_row(values={6: "TAXI", 9: "Rezali", 12: "0450"}))
    assert len(notices) == 3
    assert notices[0].startswith("Position 6 (id_employe)")
    assert "Rezali" in notices[1]
    assert "check mark" in notices[2]


def test_coordinate_table_marks_blank_and_missing(make_row):
    text = format_coordinate_table(make_row(3, drop=(9,)))

    assert text.splitlines()[0] == "Row 3 (y=376.0)"
    assert "MISSING" in text
    assert "(empty)" in text
    assert "| tournee |" in text
