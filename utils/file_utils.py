"""Local storage of fetched knowledge as markdown files.

Every page or URL becomes one ``<sanitized-title>.md`` file inside its
knowledge base directory. Files are re-derivable from a fresh fetch, so a
same-named file is simply overwritten.
"""

import logging
import re
from pathlib import Path
from typing import Union


logger = logging.getLogger(__name__)


MAX_FILENAME_LENGTH = 200


def sanitize_filename(title: str) -> str:
    """Turn a document title into a safe file stem.

    Args:
        title: Title to convert.

    Returns:
        Filename stem without extension, at most 200 characters.
    """
    clean = (title or "").strip()
    # Characters invalid on common filesystems
    clean = re.sub(r'[<>:"/\\|?*]', "-", clean)
    clean = re.sub(r"\s+", "-", clean)
    clean = re.sub(r"-+", "-", clean)
    clean = clean.strip("-")

    if not clean:
        return "untitled"
    return clean[:MAX_FILENAME_LENGTH]


class LocalContentStore:
    """Writes knowledge base documents under a root directory."""

    def __init__(self, kb_root: Union[str, Path]) -> None:
        """Initialize the store.

        Args:
            kb_root: Directory containing one folder per knowledge base.
        """
        self._kb_root = Path(kb_root).expanduser()

    def kb_dir(self, kb_name: str) -> Path:
        return self._kb_root / kb_name

    def ensure_kb_dir(self, kb_name: str) -> Path:
        """Create the knowledge base directory if needed.

        Returns:
            The directory path.
        """
        path = self.kb_dir(kb_name)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def store(self, kb_name: str, title: str, content: str) -> Path:
        """Store a document as markdown.

        Args:
            kb_name: Knowledge base to store into.
            title: Document title, used for the filename.
            content: Markdown content.

        Returns:
            Path of the written file.
        """
        filepath = self.ensure_kb_dir(kb_name) / f"{sanitize_filename(title)}.md"

        with open(filepath, "w", encoding="utf-8") as f:
            f.write(content or "")

        logger.info(f"Stored '{title}' for KB '{kb_name}' at {filepath}")
        return filepath

    def list_documents(self, kb_name: str) -> list[Path]:
        """List markdown documents of a knowledge base.

        Returns:
            Sorted markdown file paths.
        """
        path = self.kb_dir(kb_name)
        if not path.exists():
            return []
        return sorted(path.glob("*.md"))
