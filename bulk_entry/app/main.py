"""Main entry point for the bulk result-entry desktop app."""
import logging
import os
import sys
from typing import List, Optional

from PySide6.QtWidgets import (
    QApplication,
    QFileDialog,
    QInputDialog,
    QMainWindow,
    QMessageBox,
)

from bulk_entry import data_store, excel_io
from bulk_entry.app.result_grid_panel import ResultGridPanel
from bulk_entry.app.setup_dialog import SetupDialog
from bulk_entry.entry_session import EntrySession, PersistenceError, SaveBlocked, SaveInProgress
from bulk_entry.models import EntrySettings, ExamSession, ExamType, Student
from bulk_entry.paste_import import ParsedPasteRow
from bulk_entry.scoring import InvalidConfiguration


class MainWindow(QMainWindow):
    def __init__(self):
        super().__init__()
        self.setWindowTitle("Bulk Result Entry")
        self.resize(1400, 900)

        self._project_config: dict = {}
        self._settings = EntrySettings()
        self._exam_types: List[ExamType] = []
        self._sessions: List[ExamSession] = []
        self._students: List[Student] = []
        self._entry: Optional[EntrySession] = None

        self._setup_ui()
        self._load_session()

    def _setup_ui(self):
        file_menu = self.menuBar().addMenu("File")
        file_menu.addAction("Open Project…").triggered.connect(self._show_setup)
        file_menu.addSeparator()
        file_menu.addAction("Quit").triggered.connect(self.close)

        session_menu = self.menuBar().addMenu("Session")
        session_menu.addAction("Choose Exam Session…").triggered.connect(self._choose_session)
        session_menu.addSeparator()
        session_menu.addAction("Save All").triggered.connect(self._save_all)
        session_menu.addAction("Clear All").triggered.connect(self._clear_all)
        session_menu.addSeparator()
        session_menu.addAction("Import Results from XLSX…").triggered.connect(self._import_xlsx)
        session_menu.addAction("Export Results as XLSX").triggered.connect(self._export_xlsx)
        session_menu.addAction("Save XLSX Template").triggered.connect(self._export_template)

        self._panel = ResultGridPanel()
        self._panel.save_requested.connect(self._save_all)
        self._panel.clear_requested.connect(self._clear_all)
        self.setCentralWidget(self._panel)

    # ── Project ───────────────────────────────────────────────────────────────

    def _load_session(self):
        data_store.dbg("Loading previous session…")
        config = data_store.load_session_config()
        if config:
            project_dir = config.get("project_dir", "")
            if os.path.isdir(project_dir):
                try:
                    self._apply_project(project_dir)
                    return
                except (OSError, ValueError, KeyError) as exc:
                    QMessageBox.warning(
                        self, "Load Error",
                        f"Could not restore previous session:\n{exc}\n\nPlease open a project."
                    )
        data_store.dbg("No previous session found, showing setup dialog")
        self._show_setup()

    def _show_setup(self):
        dlg = SetupDialog(self)
        if dlg.exec():
            try:
                self._apply_project(dlg.project_dir())
            except (OSError, ValueError, KeyError) as exc:
                QMessageBox.critical(self, "Open Project", f"Could not open project:\n{exc}")

    def _apply_project(self, project_dir: str):
        data_store.dbg(f"Applying project: {project_dir}")
        data_store.set_project_dir(project_dir)
        self._project_config = data_store.load_project_config(project_dir)
        self._settings = data_store.load_entry_settings_from_config(self._project_config)
        data_store.set_debug(self._settings.debug_mode)
        self._exam_types = data_store.load_exam_types_from_config(self._project_config)
        self._sessions = data_store.load_sessions_from_config(self._project_config)
        self._students = data_store.load_students(os.path.join(project_dir, "students.csv"))
        data_store.ensure_data_dirs()
        self._close_entry()
        data_store.dbg(f"Project applied: {len(self._students)} student(s), "
                       f"{len(self._sessions)} session(s)")
        if self._sessions:
            self._open_entry(self._sessions[0])

    # ── Entry session ─────────────────────────────────────────────────────────

    def _choose_session(self):
        if not self._sessions:
            QMessageBox.warning(self, "Sessions", "Open a project with exam sessions first.")
            return
        labels = [f"{s.name} ({s.exam_date})" if s.exam_date else s.name
                  for s in self._sessions]
        label, ok = QInputDialog.getItem(self, "Exam Session", "Session:", labels, 0, False)
        if ok:
            self._open_entry(self._sessions[labels.index(label)])

    def _open_entry(self, session: ExamSession):
        exam_type = next((et for et in self._exam_types
                          if et.exam_type_id == session.exam_type_id), None)
        if exam_type is None:
            QMessageBox.warning(self, "Exam Session",
                                f"Unknown exam type '{session.exam_type_id}'.")
            return
        subjects = data_store.load_subjects_from_config(self._project_config,
                                                        exam_type.exam_type_id)
        self._close_entry()
        try:
            entry = EntrySession(session, exam_type, subjects, self._students,
                                 data_store.LocalResultsGateway(exam_type.penalty_divisor))
            entry.open()
        except (PersistenceError, InvalidConfiguration) as exc:
            QMessageBox.critical(self, "Exam Session", str(exc))
            return
        self._entry = entry
        self.setWindowTitle(f"Bulk Result Entry — {session.name}")
        self._panel.set_session(entry, self._settings)

    def _close_entry(self):
        if self._entry is not None:
            self._entry.close()
        self._entry = None
        self._panel.set_session(None, self._settings)

    def _save_all(self):
        if self._entry is None:
            return
        self._panel.set_saving(True)
        try:
            report = self._entry.save_all()
        except SaveBlocked as exc:
            QMessageBox.warning(self, "Save", str(exc))
            return
        except SaveInProgress:
            return
        finally:
            self._panel.set_saving(False)
        if report.ok:
            QMessageBox.information(self, "Save",
                                    f"Saved results for {len(report.saved)} student(s).")
        else:
            details = "\n".join(f"{sid}: {msg}" for sid, msg in report.failed.items())
            QMessageBox.warning(
                self, "Save",
                f"Saved {len(report.saved)} student(s); {len(report.failed)} failed.\n"
                f"Your entries are kept, you can retry.\n\n{details}")

    def _clear_all(self):
        if self._entry is None:
            return
        self._entry.store.clear()
        self._panel.refresh()

    # ── Excel ─────────────────────────────────────────────────────────────────

    def _import_xlsx(self):
        if self._entry is None:
            QMessageBox.warning(self, "Import", "Open an exam session first.")
            return
        path, _ = QFileDialog.getOpenFileName(self, "Import Results", "",
                                              "Excel files (*.xlsx)")
        if not path:
            return
        try:
            wb = excel_io.load_workbook_file(path)
        except (excel_io.UnreadableWorkbook, OSError) as exc:
            QMessageBox.critical(self, "Import", f"Could not read {path}:\n{exc}")
            return
        store = self._entry.store
        result = excel_io.read_results(wb, store.subjects, store.students)
        store.bulk_apply(
            ParsedPasteRow(line_number=0, student_id=sid,
                           results={r.subject_id: r for r in rows})
            for sid, rows in result.results.items()
        )
        self._panel.refresh()
        msg = f"Imported {result.imported_count} subject result(s)."
        if result.errors:
            msg += "\n\n" + "\n".join(f"Row {e.row}: {e.message}" for e in result.errors[:20])
        QMessageBox.information(self, "Import", msg)

    def _export_xlsx(self):
        if self._entry is None:
            QMessageBox.warning(self, "Export", "Open an exam session first.")
            return
        store = self._entry.store
        path = os.path.join(data_store.EXPORT_DIR,
                            f"{self._entry.session.session_id}_results.xlsx")
        wb = excel_io.build_export(store.subjects, store.snapshot(),
                                   store.penalty_divisor, self._settings.net_decimals)
        if self._save_workbook(wb, path):
            QMessageBox.information(self, "Export", f"Results exported to:\n{path}")

    def _export_template(self):
        if self._entry is None:
            QMessageBox.warning(self, "Export", "Open an exam session first.")
            return
        store = self._entry.store
        path = os.path.join(data_store.EXPORT_DIR,
                            f"{self._entry.exam_type.exam_type_id}_template.xlsx")
        if self._save_workbook(excel_io.build_template(store.subjects, store.students), path):
            QMessageBox.information(self, "Export", f"Template saved to:\n{path}")

    def _save_workbook(self, wb, path: str) -> bool:
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            wb.save(path)
        except OSError as exc:
            QMessageBox.critical(self, "Export", f"Could not write {path}:\n{exc}")
            return False
        return True

    def closeEvent(self, event):
        self._close_entry()
        super().closeEvent(event)


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    app = QApplication(sys.argv)
    window = MainWindow()
    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
