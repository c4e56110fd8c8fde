from bulk_entry.models import Student
from bulk_entry.paste_import import make_student_resolver, parse_count, parse_paste


def test_parse_count():
    assert parse_count("12") == (12, True)
    assert parse_count(" 7 ") == (7, True)
    assert parse_count("") == (0, True)
    assert parse_count("x") == (0, False)
    assert parse_count("3.5") == (0, False)
    assert parse_count("-2") == (0, False)


def test_resolver_by_id_and_name(students):
    resolve = make_student_resolver(students)
    assert resolve("102").student_id == "102"
    assert resolve("mehmet  KAYA").student_id == "102"
    assert resolve("Demir Zeynep").student_id == "103"
    assert resolve("Nobody") is None
    assert resolve("  ") is None


def test_full_row(subjects, students):
    text = "101\t30\t8\t2\t22\t10\t8\t15\t3\t2"
    result = parse_paste(text, subjects, make_student_resolver(students))
    assert result.summary() == "1 of 1 rows matched"
    assert result.warnings == []
    row = result.rows[0]
    assert row.student_id == "101"
    assert list(row.results) == ["tr", "math", "sci"]
    assert row.results["math"].wrong_count == 10
    assert row.results["sci"].empty_count == 2


def test_unknown_student_skipped_with_warning(subjects, students):
    text = "101\t1\t0\t0\n999\t5\t5\t5\n102\t2\t0\t0\n"
    result = parse_paste(text, subjects, make_student_resolver(students))
    assert result.matched == 2
    assert result.skipped == 1
    assert result.summary() == "2 of 3 rows matched"
    unmatched = [w for w in result.warnings if "No student" in w.message]
    assert [(w.line_number, w.token) for w in unmatched] == [(2, "999")]


def test_short_row_zero_filled(subjects, students):
    result = parse_paste("101\t30\t8", subjects, make_student_resolver(students))
    row = result.rows[0]
    assert row.results["tr"].correct_count == 30
    assert row.results["tr"].empty_count == 0
    assert row.results["sci"].correct_count == 0
    assert any("missing values set to 0" in w.message for w in result.warnings)


def test_extra_columns_ignored(subjects, students):
    text = "101" + "\t1" * 9 + "\t7\t7"
    result = parse_paste(text, subjects, make_student_resolver(students))
    assert result.matched == 1
    assert any("2 extra column" in w.message for w in result.warnings)


def test_invalid_cell_becomes_zero(subjects, students):
    text = "101\tabc\t8\t2\t0\t0\t0\t0\t0\t0"
    result = parse_paste(text, subjects, make_student_resolver(students))
    assert result.rows[0].results["tr"].correct_count == 0
    assert len(result.warnings) == 1
    assert "Invalid value 'abc'" in result.warnings[0].message


def test_blank_lines_and_crlf(subjects, students):
    text = "\r\n101\t1\t0\t0\r\n\r\n   \n102\t2\t0\t0\r\n"
    result = parse_paste(text, subjects, make_student_resolver(students))
    assert result.total == 2
    assert [r.student_id for r in result.rows] == ["101", "102"]
    assert [r.line_number for r in result.rows] == [2, 5]


def test_name_token(subjects, students):
    result = parse_paste("Ayse Yilmaz\t4\t0\t0", subjects, make_student_resolver(students))
    assert result.rows[0].student_id == "101"


def test_failing_resolver_skips_row(subjects):
    def resolve(token):
        if token == "boom":
            raise RuntimeError("lookup failed")
        return Student(student_id=token)

    result = parse_paste("boom\t1\t1\t1\nok\t1\t1\t1", subjects, resolve)
    assert [r.student_id for r in result.rows] == ["ok"]
    assert result.skipped == 1


def test_empty_input(subjects, students):
    result = parse_paste("", subjects, make_student_resolver(students))
    assert result.total == 0
    assert result.summary() == "0 of 0 rows matched"


def test_token_only_line_is_skipped(subjects, students):
    result = parse_paste("101\nAyse Yilmaz\n102\t5\t0\t0", subjects, make_student_resolver(students))
    assert [r.student_id for r in result.rows] == ["102"]
    assert result.summary() == "1 of 3 rows matched"
    skipped = [w for w in result.warnings if "row skipped" in w.message]
    assert [(w.line_number, w.token) for w in skipped] == [(1, "101"), (2, "Ayse Yilmaz")]
