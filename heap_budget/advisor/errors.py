# heap_budget/advisor/errors.py
from __future__ import annotations


class AdvisorError(Exception):
    """Базовая ошибка advisor'а: всегда знает, какое поле виновато."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message

    @property
    def kind(self) -> str:
        return type(self).__name__


class InvalidInputError(AdvisorError):
    """Нарушено предусловие на входных данных. Исправь вход и повтори."""


class InternalInconsistencyError(AdvisorError):
    """Нарушено постусловие, которое advisor гарантирует сам. Это баг или битый профиль."""


class ProfileCollectionError(Exception):
    """Метрики-бэкенд не вернул данных для профиля."""
