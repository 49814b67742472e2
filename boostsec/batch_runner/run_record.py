"""Run record directories and the aliases pointing at them."""

import logging
from datetime import datetime
from pathlib import Path

from boostsec.batch_runner.errors import SetupError

logger = logging.getLogger(__name__)

RECORD_NAME_FORMAT = "%Y-%m-%d_%H.%M.%S"
CURRENT_ALIAS = "current"
LATEST_ALIAS = "latest"


def normalize_tag(tag: str | None) -> str | None:
    """Strip the leading dash from ``tag``; empty tags become None."""
    if tag is None:
        return None
    tag = tag.lstrip("-")
    return tag or None


def tag_suffix(tag: str | None) -> str:
    """Suffix appended to record and alias names for ``tag``."""
    tag = normalize_tag(tag)
    return f"-{tag}" if tag else ""


def new_record_name(tag: str | None, now: datetime | None = None) -> str:
    """Return a record directory name, unique per second and tag."""
    if now is None:
        now = datetime.now()
    return now.strftime(RECORD_NAME_FORMAT) + tag_suffix(tag)


def update_alias(results_dir: Path, alias: str, target: Path) -> Path:
    """Point ``results_dir/alias`` at ``target``, replacing any old alias."""
    link = results_dir / alias
    link.unlink(missing_ok=True)
    link.symlink_to(target.name, target_is_directory=True)
    logger.debug(f"{link} -> {target.name}")
    return link


class RunRecord:
    """Files persisted for one test invocation."""

    def __init__(self, path: Path, tag: str | None = None) -> None:
        """Wrap an existing record directory."""
        self.path = path
        self.tag = normalize_tag(tag)

    @classmethod
    def create(
        cls, results_dir: Path, tag: str | None = None, now: datetime | None = None
    ) -> "RunRecord":
        """Create a fresh record directory under ``results_dir``.

        Raises:
            SetupError: If the directory cannot be created or already exists

        """
        path = results_dir / new_record_name(tag, now)
        try:
            path.mkdir(parents=True)
        except OSError as e:
            raise SetupError(f"Failed to create run directory {path}: {e}") from e

        record = cls(path, tag)
        if record.tag:
            record.write("extra-columns", f"Tag\t{record.tag}\n")
        logger.info(f"Created run record {path}")
        return record

    @property
    def suffix(self) -> str:
        """Alias suffix shared by every record of this tag."""
        return tag_suffix(self.tag)

    @property
    def screenshot_path(self) -> Path:
        """Where the failure screenshot is saved."""
        return self.path / "screenshot-clean.png"

    def write(self, name: str, content: str) -> Path:
        """Write ``content`` to the record file ``name``."""
        target = self.path / name
        target.write_text(content, encoding="utf-8")
        return target

    def read(self, name: str) -> str:
        """Return the stripped content of the record file ``name``."""
        return (self.path / name).read_text(encoding="utf-8").strip()

    def write_metadata(self, git_commit: str, test_name: str) -> None:
        """Persist the source revision and repository-relative test path."""
        self.write("git-commit", f"{git_commit}\n")
        self.write("test-name", f"{test_name}\n")

    def write_outcome(self, duration: int, exit_status: int) -> None:
        """Persist the elapsed seconds and exit status of the run."""
        self.write("duration", f"{duration}\n")
        self.write("exit-status", f"{exit_status}\n")

    def mark_current(self) -> Path:
        """Point the ``current`` alias at this record."""
        return update_alias(self.path.parent, CURRENT_ALIAS + self.suffix, self.path)

    def mark_latest(self) -> Path:
        """Point the ``latest`` alias at this record."""
        return update_alias(self.path.parent, LATEST_ALIAS + self.suffix, self.path)
