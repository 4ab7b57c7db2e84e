"""Filesystem helpers for Orbit RaaS."""

import logging
import os
import shutil
import sys

from rich.console import Console

from orbitraas.errors import FileSystemError


class FileSystemService:
    """Encapsulates file and directory side effects."""

    def __init__(self, logger: logging.Logger, console: Console):
        self.logger = logger
        self.console = console

    def set_permissions(self, path: str, mode: int):
        if sys.platform == "win32":
            return

        try:
            os.chmod(path, mode)
        except Exception as exc:
            self.logger.warning("Could not set permissions on %s: %s", path, exc)

    def ensure_dir(self, path: str, mode: int = None):
        try:
            os.makedirs(path, exist_ok=True)
        except OSError as exc:
            raise FileSystemError(f"Failed to create directory {path}: {exc}") from exc

        if mode is not None:
            self.set_permissions(path, mode)

    def write_secret_file(self, path: str, content: str, mode: int):
        """Writes content readable only by the owner. Content is never logged."""
        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as file_obj:
                file_obj.write(content)
        except OSError as exc:
            raise FileSystemError(f"Failed to write {os.path.basename(path)}: {exc}") from exc

        # os.open only applies the mode when the file is created
        self.set_permissions(path, mode)
        self.logger.debug("Wrote %s (mode %o)", path, mode)

    def copy_file(self, source: str, destination: str):
        try:
            shutil.copyfile(source, destination)
        except OSError as exc:
            raise FileSystemError(
                f"Failed to copy {os.path.basename(source)} to {destination}: {exc}"
            ) from exc

    def cleanup_dir(self, path: str):
        if os.path.exists(path):
            try:
                shutil.rmtree(path)
                self.logger.debug("Removed directory: %s", path)
            except Exception as exc:
                message = f"Warning: Could not remove {path}: {exc}"
                self.console.print(f"[yellow]{message}[/yellow]")
                self.logger.warning(message)
