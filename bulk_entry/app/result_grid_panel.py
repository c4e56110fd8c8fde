"""Bulk result-entry spreadsheet: correct / wrong / empty counts per subject."""
from typing import List, Optional

from PySide6.QtCore import QEvent, Qt, Signal
from PySide6.QtGui import QColor
from PySide6.QtWidgets import (
    QAbstractItemView,
    QHBoxLayout,
    QHeaderView,
    QLabel,
    QLineEdit,
    QPlainTextEdit,
    QPushButton,
    QStyledItemDelegate,
    QTableWidget,
    QTableWidgetItem,
    QTabWidget,
    QVBoxLayout,
    QWidget,
)

from bulk_entry.entry_session import EntrySession
from bulk_entry.models import FIELD_ORDER, EntrySettings, Student
from bulk_entry.navigation import CellPosition, Key, next_position
from bulk_entry.scoring import format_net

_HEADER_ROWS = 3        # subject row · field row · question-count row
_FIXED_COLS = 2         # Student, ID
_COLS_PER_SUBJECT = 4   # C, W, E, Net

_BG_SUBJECT = QColor(180, 198, 230)
_BG_FIELD   = QColor(210, 224, 245)
_BG_COUNT   = QColor(235, 242, 252)
_BG_MISC    = QColor(215, 215, 215)
_BG_NET     = QColor(240, 240, 240)
_BG_ERROR   = QColor(255, 205, 210)

_NAV_KEYS = {
    Qt.Key.Key_Return: Key.ENTER,
    Qt.Key.Key_Enter: Key.ENTER,
    Qt.Key.Key_Down: Key.ARROW_DOWN,
    Qt.Key.Key_Up: Key.ARROW_UP,
    Qt.Key.Key_Tab: Key.TAB,
    Qt.Key.Key_Backtab: Key.TAB,
}


class _CountDelegate(QStyledItemDelegate):
    """Routes navigation keys typed inside a cell editor to the panel."""

    def __init__(self, panel: "ResultGridPanel"):
        super().__init__(panel)
        self._panel = panel

    def eventFilter(self, editor, event):
        if (event.type() == QEvent.Type.KeyPress and event.key() in _NAV_KEYS
                and self._panel.navigate(event)):
            return True
        return super().eventFilter(editor, event)


class ResultGridPanel(QWidget):
    save_requested = Signal()
    clear_requested = Signal()

    def __init__(self, parent=None):
        super().__init__(parent)
        self._session: Optional[EntrySession] = None
        self._settings = EntrySettings()
        self._rebuilding = False

        layout = QVBoxLayout(self)
        layout.setContentsMargins(4, 4, 4, 4)

        top = QHBoxLayout()
        self._search = QLineEdit()
        self._search.setPlaceholderText("Filter students by name or ID…")
        self._search.textChanged.connect(self._rebuild_table)
        top.addWidget(self._search)
        clear_btn = QPushButton("✕")
        clear_btn.setToolTip("Clear filter")
        clear_btn.setFixedWidth(28)
        clear_btn.clicked.connect(self._search.clear)
        top.addWidget(clear_btn)
        layout.addLayout(top)

        self._tabs = QTabWidget()
        layout.addWidget(self._tabs)

        self._table = QTableWidget()
        self._table.setEditTriggers(
            QAbstractItemView.EditTrigger.DoubleClicked |
            QAbstractItemView.EditTrigger.AnyKeyPressed
        )
        self._table.horizontalHeader().setSectionResizeMode(
            QHeaderView.ResizeMode.ResizeToContents)
        self._table.horizontalHeader().setVisible(False)
        self._table.verticalHeader().setVisible(False)
        self._table.setItemDelegate(_CountDelegate(self))
        self._table.itemChanged.connect(self._on_item_changed)
        self._table.installEventFilter(self)
        self._tabs.addTab(self._table, "Table")

        paste_tab = QWidget()
        paste_layout = QVBoxLayout(paste_tab)
        paste_layout.addWidget(QLabel(
            "Paste rows copied from a spreadsheet: student ID or name, then "
            "correct / wrong / empty for each subject, separated by tabs."))
        self._paste_edit = QPlainTextEdit()
        paste_layout.addWidget(self._paste_edit)
        paste_row = QHBoxLayout()
        self._paste_result = QLabel("")
        paste_row.addWidget(self._paste_result, 1)
        apply_btn = QPushButton("Apply Pasted Data")
        apply_btn.clicked.connect(self._apply_paste)
        paste_row.addWidget(apply_btn)
        paste_layout.addLayout(paste_row)
        self._tabs.addTab(paste_tab, "Paste")

        bottom = QHBoxLayout()
        self._status = QLabel("")
        bottom.addWidget(self._status, 1)
        clear_all_btn = QPushButton("Clear All")
        clear_all_btn.clicked.connect(self.clear_requested.emit)
        bottom.addWidget(clear_all_btn)
        self._save_btn = QPushButton("Save All")
        self._save_btn.clicked.connect(self.save_requested.emit)
        bottom.addWidget(self._save_btn)
        layout.addLayout(bottom)

        self._update_status()

    # ── Public API ────────────────────────────────────────────────────────────

    def set_session(self, session: Optional[EntrySession], settings: EntrySettings):
        self._session = session
        self._settings = settings
        self._paste_result.setText("")
        self._rebuild_table()

    def refresh(self):
        self._rebuild_table()

    def set_saving(self, saving: bool):
        self._save_btn.setEnabled(not saving and self._can_save())
        self._save_btn.setText("Saving…" if saving else "Save All")

    # ── Internal ──────────────────────────────────────────────────────────────

    def _can_save(self) -> bool:
        return (self._session is not None
                and not self._session.is_saving
                and not self._session.store.has_blocking_errors())

    def _subjects(self):
        return self._session.store.subjects if self._session else []

    def _filtered_students(self) -> List[Student]:
        if self._session is None:
            return []
        students = self._session.store.students
        text = self._search.text().strip().casefold()
        if not text:
            return students
        return [s for s in students
                if text in s.full_name.casefold() or text in s.student_id.casefold()]

    def _net_col(self, subject_index: int) -> int:
        return _FIXED_COLS + subject_index * _COLS_PER_SUBJECT + len(FIELD_ORDER)

    def _total_col(self) -> int:
        return _FIXED_COLS + len(self._subjects()) * _COLS_PER_SUBJECT

    def _cell_position(self, row: int, col: int) -> Optional[CellPosition]:
        """Map a table cell to a grid position; None for non-entry cells."""
        student_index = row - _HEADER_ROWS
        if student_index < 0 or student_index >= len(self._filtered_students()):
            return None
        offset = col - _FIXED_COLS
        if offset < 0 or col >= self._total_col():
            return None
        subject_index, field_index = divmod(offset, _COLS_PER_SUBJECT)
        if field_index >= len(FIELD_ORDER):
            return None
        return CellPosition(student_index, subject_index, FIELD_ORDER[field_index])

    def _table_cell(self, pos: CellPosition):
        return (_HEADER_ROWS + pos.student_index,
                _FIXED_COLS + pos.subject_index * _COLS_PER_SUBJECT
                + FIELD_ORDER.index(pos.field))

    def _rebuild_table(self):
        self._rebuilding = True
        self._table.blockSignals(True)
        try:
            self._build_table_contents()
        finally:
            self._table.blockSignals(False)
            self._rebuilding = False
        self._update_status()

    def _build_table_contents(self):
        subjects = self._subjects()
        filtered = self._filtered_students()
        self._table.clear()
        self._table.clearSpans()
        self._table.setRowCount(_HEADER_ROWS + len(filtered))
        self._table.setColumnCount(self._total_col() + 1)

        def _hdr(text: str, bg: QColor, bold: bool = False) -> QTableWidgetItem:
            it = QTableWidgetItem(text)
            it.setFlags(Qt.ItemFlag.ItemIsEnabled)
            it.setBackground(bg)
            it.setTextAlignment(Qt.AlignmentFlag.AlignCenter)
            if bold:
                f = it.font(); f.setBold(True); it.setFont(f)
            return it

        for c, label in ((0, "Student"), (1, "ID"), (self._total_col(), "Total Net")):
            self._table.setSpan(0, c, _HEADER_ROWS, 1)
            self._table.setItem(0, c, _hdr(label, _BG_MISC, bold=True))

        for si, subject in enumerate(subjects):
            first = _FIXED_COLS + si * _COLS_PER_SUBJECT
            self._table.setSpan(0, first, 1, _COLS_PER_SUBJECT)
            self._table.setItem(0, first, _hdr(subject.name, _BG_SUBJECT, bold=True))
            for fi, which in enumerate(FIELD_ORDER):
                self._table.setItem(1, first + fi, _hdr(which.short_label, _BG_FIELD))
                self._table.setItem(2, first + fi, _hdr("", _BG_COUNT))
            self._table.setItem(1, first + len(FIELD_ORDER), _hdr("Net", _BG_FIELD))
            self._table.setItem(2, first + len(FIELD_ORDER),
                                _hdr(f"/{subject.question_count}", _BG_COUNT))

        for row_idx, student in enumerate(filtered):
            r = _HEADER_ROWS + row_idx
            for c, text in ((0, student.full_name), (1, student.student_id)):
                it = QTableWidgetItem(text)
                it.setFlags(Qt.ItemFlag.ItemIsEnabled | Qt.ItemFlag.ItemIsSelectable)
                self._table.setItem(r, c, it)
            for si, subject in enumerate(subjects):
                sr = self._session.store.get_cell(student.student_id, subject.subject_id)
                for fi, which in enumerate(FIELD_ORDER):
                    it = QTableWidgetItem("" if sr is None else str(sr.get(which)))
                    it.setTextAlignment(Qt.AlignmentFlag.AlignCenter)
                    self._table.setItem(r, _FIXED_COLS + si * _COLS_PER_SUBJECT + fi, it)
                    self._paint_error(it, student.student_id, subject.subject_id, which)
                net_item = QTableWidgetItem()
                net_item.setFlags(Qt.ItemFlag.ItemIsEnabled)
                net_item.setTextAlignment(Qt.AlignmentFlag.AlignCenter)
                net_item.setBackground(_BG_NET)
                self._table.setItem(r, self._net_col(si), net_item)
            total_item = QTableWidgetItem()
            total_item.setFlags(Qt.ItemFlag.ItemIsEnabled | Qt.ItemFlag.ItemIsSelectable)
            total_item.setTextAlignment(Qt.AlignmentFlag.AlignCenter)
            f = total_item.font(); f.setBold(True); total_item.setFont(f)
            self._table.setItem(r, self._total_col(), total_item)
            self._update_row_nets(r, student)

    def _paint_error(self, item: QTableWidgetItem, student_id: str, subject_id: str, which):
        error = self._session.store.cell_error(student_id, subject_id, which)
        if error:
            item.setBackground(_BG_ERROR)
            item.setToolTip(error.message)
        else:
            item.setBackground(QColor(255, 255, 255))
            item.setToolTip("")

    def _update_row_nets(self, row: int, student: Student):
        store = self._session.store
        decimals = self._settings.net_decimals
        for si, subject in enumerate(self._subjects()):
            item = self._table.item(row, self._net_col(si))
            if item is not None:
                has_cell = store.get_cell(student.student_id, subject.subject_id) is not None
                net = store.subject_net(student.student_id, subject.subject_id)
                item.setText(format_net(net, decimals) if has_cell else "")
        total_item = self._table.item(row, self._total_col())
        if total_item is not None:
            total_item.setText(format_net(store.total_net(student.student_id), decimals))

    def _update_status(self):
        if self._session is None:
            self._status.setText("No exam session open.")
            self._save_btn.setEnabled(False)
            return
        store = self._session.store
        parts = [
            f"{self._session.session.name}",
            f"{store.students_with_data()}/{len(store.students)} students "
            f"({store.completion_percentage()}%)",
        ]
        if store.has_blocking_errors():
            parts.append(f"<span style='color:red'>{store.error_count()} error(s), "
                         f"fix them before saving</span>")
        self._status.setText(" · ".join(parts))
        self._save_btn.setEnabled(self._can_save())

    def _on_item_changed(self, item: QTableWidgetItem):
        if self._rebuilding or self._session is None:
            return
        pos = self._cell_position(item.row(), item.column())
        if pos is None:
            return
        student = self._filtered_students()[pos.student_index]
        subject = self._subjects()[pos.subject_index]
        store = self._session.store
        store.set_cell(student.student_id, subject.subject_id, pos.field, item.text())

        self._rebuilding = True
        self._table.blockSignals(True)
        try:
            sr = store.get_cell(student.student_id, subject.subject_id)
            first = _FIXED_COLS + pos.subject_index * _COLS_PER_SUBJECT
            for fi, which in enumerate(FIELD_ORDER):
                cell = self._table.item(item.row(), first + fi)
                if cell is None:
                    continue
                if which is pos.field:
                    cell.setText(str(sr.get(which)))
                self._paint_error(cell, student.student_id, subject.subject_id, which)
            self._update_row_nets(item.row(), student)
        finally:
            self._table.blockSignals(False)
            self._rebuilding = False
        self._update_status()

    def _apply_paste(self):
        if self._session is None:
            return
        result = self._session.paste(self._paste_edit.toPlainText())
        text = result.summary()
        self._paste_result.setToolTip("")
        if result.warnings:
            text += f" · {len(result.warnings)} warning(s)"
            self._paste_result.setToolTip("\n".join(
                f"Line {w.line_number}: {w.message}" for w in result.warnings))
        self._paste_result.setText(text)
        self._paste_edit.clear()
        self._rebuild_table()
        self._tabs.setCurrentIndex(0)

    # ── Keyboard navigation ───────────────────────────────────────────────────

    def eventFilter(self, obj, event):
        if event.type() == QEvent.Type.KeyPress and event.key() in _NAV_KEYS:
            if self.navigate(event):
                return True
        return super().eventFilter(obj, event)

    def navigate(self, event) -> bool:
        """Move focus for a navigation key press; True when the key was consumed."""
        if self._session is None:
            return False
        pos = self._cell_position(self._table.currentRow(), self._table.currentColumn())
        if pos is None:
            return False
        shift = (event.key() == Qt.Key.Key_Backtab
                 or bool(event.modifiers() & Qt.KeyboardModifier.ShiftModifier))
        target = next_position(
            pos, _NAV_KEYS[event.key()],
            student_count=len(self._filtered_students()),
            subject_count=len(self._subjects()),
            shift=shift and _NAV_KEYS[event.key()] is Key.TAB,
        )
        self._table.setFocus()
        if target == pos:
            return True
        row, col = self._table_cell(target)
        # Changing the current cell commits any open editor first.
        self._table.setCurrentCell(row, col)
        item = self._table.item(row, col)
        if item is not None:
            self._table.scrollToItem(item, QAbstractItemView.ScrollHint.EnsureVisible)
            self._table.editItem(item)
        return True
