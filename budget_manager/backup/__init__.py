"""Backup export/import package."""

from budget_manager.backup.serializer import (
    BackupImportError,
    BackupSerializer,
    backup_filename,
)

__all__ = ["BackupImportError", "BackupSerializer", "backup_filename"]
