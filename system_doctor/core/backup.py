"""Backup of critical directories into the dated backup root."""

import logging
import os
from typing import List, Optional

from .capabilities import FileCopier
from .models import DoctorConfig, StepResult
from .reporter import Reporter


def flatten_backup_name(path: str) -> str:
    """Collapse a path into a single directory name.

    Separators become dashes and one leading dash is dropped, so `/etc`
    becomes `etc` and `/home/ann/.ssh` becomes `home-ann-.ssh`.
    """
    name = os.path.normpath(path).replace(os.sep, '-')
    if name.startswith('-'):
        name = name[1:]
    return name


class BackupStage:
    """Copies each critical directory into the backup root."""

    def __init__(self, config: DoctorConfig, reporter: Reporter, copier: FileCopier):
        self.config = config
        self.reporter = reporter
        self.copier = copier
        self.logger = logging.getLogger(__name__)

    def run(self) -> List[str]:
        """Back up every existing critical directory.

        Returns:
            Destination paths that were written, fully or partially.

        Raises:
            DoctorError: If the backup root itself cannot be created.
        """
        self.reporter.section("Creating Backup of Critical Files")

        backup_root = self.config.backup_root
        if not os.path.isdir(backup_root):
            try:
                os.makedirs(backup_root, exist_ok=True)
            except OSError as e:
                self.reporter.apply(StepResult.fatal(f"Could not create backup directory {backup_root}: {e}"))
            self.reporter.success(f"Created backup directory at {backup_root}")

        written = []
        for directory in self.config.critical_dirs:
            destination = self.backup_directory(directory)
            if destination:
                written.append(destination)

        self.reporter.success(f"Backup completed at {backup_root}")
        return written

    def backup_directory(self, directory: str) -> Optional[str]:
        if not os.path.isdir(directory):
            self.reporter.warning(f"Directory {directory} does not exist, skipping backup")
            return None

        destination = os.path.join(self.config.backup_root, flatten_backup_name(directory))
        self.reporter.note(f"Backing up {directory}...", fg='yellow', mirror=False)
        self.logger.debug(f"Copying {directory} to {destination}")

        self.reporter.apply(self.copier.copy_tree(directory, destination, self.config.backup_excludes))
        return destination
