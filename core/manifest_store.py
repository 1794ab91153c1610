"""Per knowledge base manifest persistence.

Each knowledge base directory holds a ``manifest.json`` describing where its
documents came from and the cached per-document metadata (titles, summaries
and content checksums) that make refreshes incremental:

    {
      "version": "1.0",
      "name": "infra",
      "kb_type": "remote",
      "sources": [
        {"type": "confluence", "label": "infra", "pages": [...]},
        {"type": "web", "urls": [...]}
      ]
    }

Sources form a closed union: every site that validates, serializes or merges
them handles both ConfluenceSource and WebSource explicitly.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Sequence, Union

from core.errors import ValidationError


logger = logging.getLogger(__name__)


MANIFEST_VERSION = "1.0"
MANIFEST_FILENAME = "manifest.json"
KB_TYPES = ("local", "remote")

CONFLUENCE = "confluence"
WEB = "web"


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _require_mapping(data: Any, what: str) -> dict:
    if not isinstance(data, dict):
        raise ValidationError(f"{what} must be an object")
    return data


def _require_string(data: dict, key: str, what: str) -> str:
    if key not in data:
        raise ValidationError(f"{what} missing required field: {key}")
    value = data[key]
    if not isinstance(value, (str, int)) or isinstance(value, bool):
        raise ValidationError(f"{what} field '{key}' must be a string")
    return str(value)


def _optional_string(data: dict, key: str, what: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{what} field '{key}' must be a string")
    return value


def _drop_none(data: dict) -> dict:
    return {k: v for k, v in data.items() if v is not None}


@dataclass
class PageEntry:
    """Cached metadata for one Confluence page.

    Attributes:
        id: Confluence page id.
        summary: Short topic summary used by the assistant.
        title: Page title.
        content_checksum: Checksum of the markdown the summary was built from.
    """

    id: str
    summary: str
    title: Optional[str] = None
    content_checksum: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "PageEntry":
        data = _require_mapping(data, "Confluence page")
        return cls(
            id=_require_string(data, "id", "Confluence page"),
            summary=_require_string(data, "summary", "Confluence page"),
            title=_optional_string(data, "title", "Confluence page"),
            content_checksum=_optional_string(data, "content_checksum", "Confluence page"),
        )

    def to_dict(self) -> dict:
        return _drop_none({
            "id": self.id,
            "title": self.title,
            "summary": self.summary,
            "content_checksum": self.content_checksum,
        })


@dataclass
class UrlEntry:
    """Cached metadata for one fetched web page.

    Attributes:
        url: The fetched URL.
        summary: Short topic summary used by the assistant.
        title: Inferred page title.
        last_fetched: UTC timestamp of the last successful fetch.
        content_checksum: Checksum of the markdown the summary was built from.
    """

    url: str
    summary: str
    title: Optional[str] = None
    last_fetched: Optional[str] = None
    content_checksum: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "UrlEntry":
        data = _require_mapping(data, "Web url")
        return cls(
            url=_require_string(data, "url", "Web url"),
            summary=_require_string(data, "summary", "Web url"),
            title=_optional_string(data, "title", "Web url"),
            last_fetched=_optional_string(data, "last_fetched", "Web url"),
            content_checksum=_optional_string(data, "content_checksum", "Web url"),
        )

    def to_dict(self) -> dict:
        return _drop_none({
            "url": self.url,
            "title": self.title,
            "summary": self.summary,
            "last_fetched": self.last_fetched,
            "content_checksum": self.content_checksum,
        })


@dataclass
class ConfluenceSource:
    """Pages discovered through a Confluence label."""

    pages: list[PageEntry] = field(default_factory=list)
    label: Optional[str] = None

    type = CONFLUENCE

    def to_dict(self) -> dict:
        data: dict = {"type": CONFLUENCE}
        if self.label is not None:
            data["label"] = self.label
        data["pages"] = [p.to_dict() for p in self.pages]
        return data


@dataclass
class WebSource:
    """Individually added web pages."""

    urls: list[UrlEntry] = field(default_factory=list)

    type = WEB

    def to_dict(self) -> dict:
        return {"type": WEB, "urls": [u.to_dict() for u in self.urls]}


Source = Union[ConfluenceSource, WebSource]


def parse_source(data: Any) -> Source:
    """Parse and validate one serialized source.

    Args:
        data: Source object as found in manifest JSON.

    Returns:
        ConfluenceSource or WebSource.

    Raises:
        ValidationError: If the structure is invalid or the type unknown.
    """
    data = _require_mapping(data, "Each source")
    if "type" not in data:
        raise ValidationError("Source missing required field: type")

    source_type = data["type"]
    if source_type == CONFLUENCE:
        pages = data.get("pages")
        if not isinstance(pages, list):
            raise ValidationError("Confluence source requires a 'pages' array")
        return ConfluenceSource(
            pages=[PageEntry.from_dict(p) for p in pages],
            label=_optional_string(data, "label", "Confluence source"),
        )
    if source_type == WEB:
        urls = data.get("urls")
        if not isinstance(urls, list):
            raise ValidationError("Web source requires a 'urls' array")
        return WebSource(urls=[UrlEntry.from_dict(u) for u in urls])

    raise ValidationError(f"Unknown source type: {source_type}")


def parse_sources(sources: Any) -> list[Source]:
    """Validate a list of sources given as dicts or Source objects.

    Source objects are round-tripped through their serialized form so that
    hand-built instances get the same checks as JSON input.
    """
    if not isinstance(sources, (list, tuple)):
        raise ValidationError("Sources must be an array")

    parsed: list[Source] = []
    for source in sources:
        if isinstance(source, (ConfluenceSource, WebSource)):
            source = source.to_dict()
        parsed.append(parse_source(source))
    return parsed


def _validate_kb_type(kb_type: Any) -> str:
    if kb_type not in KB_TYPES:
        raise ValidationError(f"kb_type must be one of {', '.join(KB_TYPES)}, got: {kb_type}")
    return kb_type


@dataclass
class Manifest:
    """A knowledge base's record of sources and cached metadata."""

    name: str
    kb_type: str
    sources: list[Source]
    version: str = MANIFEST_VERSION
    created: Optional[str] = None
    last_updated: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "Manifest":
        """Parse a manifest document.

        A manifest without ``kb_type`` predates local knowledge bases and is
        read as remote.

        Raises:
            ValidationError: On any schema violation.
        """
        data = _require_mapping(data, "Manifest")
        for required in ("version", "name", "sources"):
            if required not in data:
                raise ValidationError(f"Missing required field: {required}")

        if data["version"] != MANIFEST_VERSION:
            raise ValidationError(f"Unsupported manifest version: {data['version']}")

        return cls(
            name=_require_string(data, "name", "Manifest"),
            kb_type=_validate_kb_type(data.get("kb_type", "remote")),
            sources=parse_sources(data["sources"]),
            version=data["version"],
            created=_optional_string(data, "created", "Manifest"),
            last_updated=_optional_string(data, "last_updated", "Manifest"),
        )

    def to_dict(self) -> dict:
        return _drop_none({
            "version": self.version,
            "name": self.name,
            "kb_type": self.kb_type,
            "created": self.created,
            "last_updated": self.last_updated,
            "sources": [s.to_dict() for s in self.sources],
        })


class ManifestStore:
    """Reads and writes ``manifest.json`` for each knowledge base.

    There is no locking: a single writer is assumed and the last write wins.
    """

    def __init__(self, kb_root: Union[str, Path]) -> None:
        """Initialize the store.

        Args:
            kb_root: Directory containing one folder per knowledge base.
        """
        self._kb_root = Path(kb_root).expanduser()

    @property
    def kb_root(self) -> Path:
        return self._kb_root

    def kb_dir(self, kb_name: str) -> Path:
        """Directory of a knowledge base, following a symlinked folder."""
        path = self._kb_root / kb_name
        if path.is_symlink():
            return path.resolve()
        return path

    def manifest_path(self, kb_name: str) -> Path:
        return self.kb_dir(kb_name) / MANIFEST_FILENAME

    def exists(self, kb_name: str) -> bool:
        return self.manifest_path(kb_name).exists()

    def create(
        self,
        kb_name: str,
        sources: Sequence[Union[Source, dict]],
        kb_type: str = "local",
    ) -> Path:
        """Create (or overwrite) a manifest.

        Args:
            kb_name: Knowledge base name.
            sources: Sources to record.
            kb_type: "local" or "remote".

        Returns:
            Path of the written manifest.

        Raises:
            ValidationError: If sources or kb_type are invalid.
        """
        parsed = parse_sources(sources)
        now = _timestamp()
        manifest = Manifest(
            name=kb_name,
            kb_type=_validate_kb_type(kb_type),
            sources=parsed,
            created=now,
            last_updated=now,
        )
        path = self._write(kb_name, manifest)
        logger.info(f"Created knowledge manifest for KB '{kb_name}'")
        return path

    def update(
        self,
        kb_name: str,
        sources: Sequence[Union[Source, dict]],
        kb_type: Optional[str] = None,
    ) -> Path:
        """Replace the sources of a manifest.

        The whole ``sources`` array is replaced; callers merge by source type
        beforehand. The existing ``kb_type`` is kept unless overridden.

        Raises:
            ValidationError: If sources or kb_type are invalid.
        """
        parsed = parse_sources(sources)
        if kb_type is not None:
            _validate_kb_type(kb_type)

        existing = self.read(kb_name)
        if existing is None:
            return self.create(kb_name, parsed, kb_type or "local")

        manifest = Manifest(
            name=existing.name,
            kb_type=kb_type or existing.kb_type,
            sources=parsed,
            created=existing.created,
            last_updated=_timestamp(),
        )
        path = self._write(kb_name, manifest)
        logger.info(f"Updated knowledge manifest for KB '{kb_name}' ({len(parsed)} sources)")
        return path

    def read(self, kb_name: str) -> Optional[Manifest]:
        """Read a manifest, treating anything unreadable as absent.

        Returns:
            Manifest, or None if missing, malformed or invalid.
        """
        path = self.manifest_path(kb_name)
        if not path.exists():
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return Manifest.from_dict(data)
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid manifest for KB '{kb_name}': {e}")
            return None
        except UnicodeDecodeError as e:
            logger.warning(f"Manifest for KB '{kb_name}' is not valid UTF-8: {e}")
            return None
        except ValidationError as e:
            logger.warning(f"Manifest validation failed for KB '{kb_name}': {e}")
            return None
        except OSError as e:
            logger.warning(f"Could not read manifest for KB '{kb_name}': {e}")
            return None

    def sources_of(self, kb_name: str) -> list[Source]:
        manifest = self.read(kb_name)
        return manifest.sources if manifest else []

    def kb_type_of(self, kb_name: str) -> Optional[str]:
        manifest = self.read(kb_name)
        return manifest.kb_type if manifest else None

    def list_kbs(self) -> list[str]:
        """List knowledge bases that have a manifest file.

        Returns:
            Sorted knowledge base names.
        """
        if not self._kb_root.is_dir():
            return []
        return sorted(
            entry.name
            for entry in self._kb_root.iterdir()
            if entry.is_dir() and (entry / MANIFEST_FILENAME).exists()
        )

    def _write(self, kb_name: str, manifest: Manifest) -> Path:
        path = self.manifest_path(kb_name)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(manifest.to_dict(), f, indent=2)
            f.write("\n")
        return path
