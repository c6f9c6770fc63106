from __future__ import annotations
from typing import Optional

from PySide6.QtWidgets import (
    QDialog, QVBoxLayout, QHBoxLayout, QLabel, QLineEdit, QPushButton, QMessageBox
)

from ..db import StorageError
from ..engine import format_due, plan_time_edit
from ..parser import parse
from ..repository import Repository


class TaskEditor(QDialog):
    def __init__(self, repo: Repository, task_id: Optional[str] = None, parent=None):
        super().__init__(parent)
        self.repo = repo
        self.task_id = task_id
        self.setWindowTitle("Modifier le rappel" if task_id else "Nouveau rappel")
        self.setMinimumWidth(420)

        layout = QVBoxLayout(self)

        self.content = QLineEdit()
        self.content.setPlaceholderText("ex. dans 10 minutes appeler Marc, vendredi à 14h réunion")
        self.content.textChanged.connect(self._update_preview)
        self.content.returnPressed.connect(self.save)
        layout.addWidget(QLabel("Rappel"))
        layout.addWidget(self.content)

        self.preview = QLabel("")
        layout.addWidget(self.preview)

        btns = QHBoxLayout()
        self.btn_cancel = QPushButton("Annuler")
        self.btn_cancel.clicked.connect(self.reject)
        btns.addWidget(self.btn_cancel)

        self.btn_save = QPushButton("Enregistrer")
        self.btn_save.clicked.connect(self.save)
        btns.addWidget(self.btn_save)
        layout.addLayout(btns)

        if task_id is not None:
            self._load(task_id)

        self._update_preview()

    def _load(self, task_id: str) -> None:
        t = self.repo.get_task(task_id)
        if t is None:
            self.task_id = None
            return
        # trailing space so a "+N" can be typed straight away
        self.content.setText(t.content + " ")

    def _update_preview(self) -> None:
        parsed = parse(self.content.text())
        if parsed is None:
            self.preview.setText("Pas d'heure détectée")
            return
        now = self.repo.clock.now()
        ts = self.repo.resolve_time(parsed.reference, now)
        due_text = format_due(ts, now, self.repo.tz) if ts is not None else None
        if due_text is None:
            self.preview.setText(f"« {parsed.match} » : date inconnue")
            return
        self.preview.setText(f"« {parsed.match} » → {due_text}")

    def save(self) -> None:
        text = self.content.text().strip()
        if not text:
            self.reject()
            return

        try:
            if self.task_id is None:
                self.repo.create_task(text, parse(text))
            else:
                task = self.repo.get_task(self.task_id)
                if task is not None and text != task.content:
                    self.repo.edit_task(self.task_id, text, plan_time_edit(task, text))
        except StorageError as e:
            QMessageBox.warning(self, "Rappel", f"Impossible d'enregistrer : {e}")
            return
        self.accept()
