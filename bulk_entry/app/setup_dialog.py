"""Open-project dialog: pick a project directory and preview its exam sessions."""
from typing import Optional

from PySide6.QtWidgets import (
    QDialog, QDialogButtonBox, QFileDialog, QHBoxLayout, QLabel,
    QLineEdit, QListWidget, QPushButton, QVBoxLayout,
)

from bulk_entry import data_store


class SetupDialog(QDialog):
    """Accepts only a directory that :func:`data_store.inspect_project` approves."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setWindowTitle("Open Exam Project")
        self.setMinimumWidth(560)

        self._summary: Optional[data_store.ProjectSummary] = None
        self._project_dir = ""

        layout = QVBoxLayout(self)
        layout.addWidget(QLabel(
            "Choose a project directory with <tt>config.json</tt> (exam types, "
            "subjects, sessions) and <tt>students.csv</tt>."
        ))

        dir_row = QHBoxLayout()
        self._dir_edit = QLineEdit()
        self._dir_edit.editingFinished.connect(self._inspect)
        dir_row.addWidget(self._dir_edit)
        browse_btn = QPushButton("Browse…")
        browse_btn.clicked.connect(self._browse)
        dir_row.addWidget(browse_btn)
        layout.addLayout(dir_row)

        layout.addWidget(QLabel("Exam sessions:"))
        self._sessions = QListWidget()
        self._sessions.setSelectionMode(QListWidget.SelectionMode.NoSelection)
        layout.addWidget(self._sessions)

        self._info = QLabel("")
        self._info.setWordWrap(True)
        layout.addWidget(self._info)

        self._buttons = QDialogButtonBox(
            QDialogButtonBox.StandardButton.Open | QDialogButtonBox.StandardButton.Cancel)
        self._buttons.accepted.connect(self._on_accept)
        self._buttons.rejected.connect(self.reject)
        layout.addWidget(self._buttons)

        config = data_store.load_session_config()
        if config:
            self._dir_edit.setText(config.get("project_dir", ""))
        self._inspect()

    def _browse(self):
        path = QFileDialog.getExistingDirectory(self, "Select Project Directory",
                                                self._dir_edit.text())
        if path:
            self._dir_edit.setText(path)
            self._inspect()

    def _inspect(self):
        self._sessions.clear()
        self._summary = None
        project_dir = self._dir_edit.text().strip()
        open_btn = self._buttons.button(QDialogButtonBox.StandardButton.Open)
        if not project_dir:
            self._info.setText("")
            open_btn.setEnabled(False)
            return
        try:
            summary = data_store.inspect_project(project_dir)
        except (OSError, ValueError) as exc:
            self._info.setStyleSheet("color: red;")
            self._info.setText(str(exc))
            open_btn.setEnabled(False)
            return

        names = {et.exam_type_id: et.name for et in summary.exam_types}
        for s in summary.sessions:
            date = f" ({s.exam_date})" if s.exam_date else ""
            self._sessions.addItem(
                f"{s.name}{date}: {names[s.exam_type_id]}, "
                f"{summary.subject_counts[s.exam_type_id]} subject(s)")
        self._info.setStyleSheet("")
        self._info.setText(f"{summary.student_count} student(s) on the roster.")
        self._summary = summary
        open_btn.setEnabled(True)

    def _on_accept(self):
        self._inspect()
        if self._summary is None:
            return
        self._project_dir = self._dir_edit.text().strip()
        data_store.save_session_config(self._project_dir)
        self.accept()

    def project_dir(self) -> str:
        return self._project_dir
