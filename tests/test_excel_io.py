import openpyxl
import pytest

from bulk_entry import excel_io
from bulk_entry.grid_store import ResultGridStore
from bulk_entry.models import Field


def _header(ws):
    return [c.value for c in ws[1]]


def test_template_with_roster(subjects, students):
    ws = excel_io.build_template(subjects, students).active
    assert ws.title == "Results"
    assert _header(ws)[:5] == ["Student ID", "Student Name", "Turkish - Correct",
                               "Turkish - Wrong", "Turkish - Empty"]
    assert len(_header(ws)) == 2 + 3 * len(subjects)
    assert ws.cell(row=2, column=1).value == "101"
    assert ws.cell(row=4, column=2).value == "Zeynep Demir"


def test_template_without_roster_has_example_row(subjects):
    ws = excel_io.build_template(subjects).active
    assert ws.max_row == 2
    assert ws.cell(row=2, column=1).value == "12345"


def test_filled_template_reads_back(subjects, students):
    wb = excel_io.build_template(subjects, students)
    ws = wb.active
    for col, value in enumerate([30, 8, 2, None, None, None, 15, 3, 2], start=3):
        ws.cell(row=2, column=col, value=value)
    wb = excel_io.load_workbook_bytes(excel_io.workbook_bytes(wb))

    result = excel_io.read_results(wb, subjects, students)
    assert result.errors == []
    assert result.imported_count == 2
    assert [r.subject_id for r in result.results["101"]] == ["tr", "sci"]
    assert result.results["101"][0].wrong_count == 8
    assert result.results["101"][1].to_dict() == {"subject_id": "sci", "correct_count": 15,
                                                  "wrong_count": 3, "empty_count": 2}


def test_turkish_headers_and_name_lookup(subjects, students):
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.append(["Öğrenci Adı", "Mathematics - D", "Mathematics - Y", "Mathematics - B"])
    ws.append(["Mehmet Kaya", 20, 4, 16])
    result = excel_io.read_results(wb, subjects, students)
    assert result.errors == []
    assert result.results["102"][0].correct_count == 20


def test_bad_rows_reported(subjects, students):
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.append(["Student ID", "Science - Correct", "Science - Wrong", "Science - Empty"])
    ws.append(["999", 1, 0, 0])
    ws.append(["101", 15, 10, 0])
    ws.append([None, 3, 0, 0])
    ws.append(["102", 10, 2, 0])
    result = excel_io.read_results(wb, subjects, students)

    assert [e.row for e in result.errors] == [2, 3, 4]
    assert "Student not found" in result.errors[0].message
    assert "Row total" in result.errors[1].message
    assert result.errors[1].student_id == "101"
    assert list(result.results) == ["102"]


def test_missing_identity_column(subjects, students):
    wb = openpyxl.Workbook()
    wb.active.append(["Foo", "Bar"])
    result = excel_io.read_results(wb, subjects, students)
    assert result.imported_count == 0
    assert result.errors[0].row == 1


def test_export_contains_nets(subjects, students):
    store = ResultGridStore(subjects, students, 4)
    for which, value in zip(Field, ("30", "8", "2")):
        store.set_cell("101", "tr", which, value)
    store.set_cell("101", "sci", Field.CORRECT, "10")
    store.set_cell("101", "sci", Field.WRONG, "2")

    ws = excel_io.build_export(subjects, store.snapshot(), 4).active
    header = _header(ws)
    assert header[2:6] == ["Turkish - C", "Turkish - W", "Turkish - E", "Turkish - Net"]
    assert header[-1] == "Total Net"
    row = [c.value for c in ws[2]]
    assert row[:2] == ["101", "Ayse Yilmaz"]
    assert row[5] == pytest.approx(28.0)
    assert row[6:10] == [0, 0, 0, 0]
    assert row[-1] == pytest.approx(37.5)


def test_corrupt_workbook_bytes_rejected():
    with pytest.raises(excel_io.UnreadableWorkbook, match="Could not read Excel file"):
        excel_io.load_workbook_bytes(b"not a workbook")


def test_load_workbook_file(tmp_path, subjects):
    good = tmp_path / "template.xlsx"
    excel_io.build_template(subjects).save(good)
    assert excel_io.load_workbook_file(str(good)).active.title == "Results"

    broken = tmp_path / "broken.xlsx"
    broken.write_bytes(b"PK\x03\x04 truncated")
    with pytest.raises(excel_io.UnreadableWorkbook):
        excel_io.load_workbook_file(str(broken))

    with pytest.raises(FileNotFoundError):
        excel_io.load_workbook_file(str(tmp_path / "missing.xlsx"))
