"""Manifest-aware knowledge base synchronization.

Coordinates the Confluence and web syncers with the manifest:

- refresh: replay every source recorded in the manifest, or discover pages
  through a label named after the KB when there is no manifest yet
- add_url: fetch one page and append it to the KB's web source
- refresh_all: refresh every KB with a manifest, collecting failures

Fresh entries of a refreshed source type replace the stored ones in place;
sources of other types are written back untouched.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from config.settings import Settings, get_settings
from core.confluence_source import ConfluenceClient, ConfluenceSyncer
from core.errors import KBSyncError, ValidationError
from core.html_transform import TitleGenerator
from core.manifest_store import (
    CONFLUENCE,
    WEB,
    ConfluenceSource,
    Manifest,
    ManifestStore,
    Source,
    UrlEntry,
    WebSource,
)
from core.summarizer import Summarizer, get_summarizer
from core.summary_cache import SummaryCache
from core.web_source import WebFetcher, WebSyncer
from utils.file_utils import LocalContentStore
from utils.logging_utils import configure_logging, log_refresh_all_summary


logger = logging.getLogger(__name__)


SOURCE_TYPES = (CONFLUENCE, WEB)


def normalize_kb_name(name: str) -> str:
    """Normalize a KB name: trimmed, lower case, spaces as hyphens."""
    return name.strip().lower().replace(" ", "-")


def count_documents(source: Source) -> int:
    if isinstance(source, ConfluenceSource):
        return len(source.pages)
    if isinstance(source, WebSource):
        return len(source.urls)
    raise ValidationError(f"Unknown source: {source!r}")


@dataclass
class RefreshResult:
    """Result of refreshing one knowledge base.

    Attributes:
        kb_name: Normalized KB name.
        pages_count: Documents fetched in this pass.
        sources: Sources written to the manifest.
        from_manifest: False when the label-discovery fallback was used.
    """

    kb_name: str
    pages_count: int
    sources: list[Source]
    from_manifest: bool = True


@dataclass
class KBFailure:
    """A knowledge base that failed during refresh-all."""

    kb_name: str
    error: str


@dataclass
class RefreshAllReport:
    """Aggregate result of refresh-all.

    Attributes:
        attempted: KBs processed.
        succeeded: KBs refreshed without error.
        failed: KBs that raised a configuration, remote or validation error.
        total_pages: Documents fetched across all successful KBs.
        failures: Name and message of each failed KB.
    """

    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    total_pages: int = 0
    failures: list[KBFailure] = field(default_factory=list)


@dataclass
class KBInfo:
    """Overview of one knowledge base for listings."""

    name: str
    kb_type: Optional[str]
    pages: int
    urls: int


class SyncOrchestrator:
    """Runs refreshes and URL additions against the manifest store."""

    def __init__(
        self,
        manifest_store: ManifestStore,
        confluence: ConfluenceSyncer,
        web: WebSyncer,
    ) -> None:
        self._manifests = manifest_store
        self._confluence = confluence
        self._web = web

    def refresh(self, kb_name: str, source_types: Optional[Iterable[str]] = None) -> RefreshResult:
        """Refresh one knowledge base.

        Args:
            kb_name: KB name, normalized before use.
            source_types: Limit a manifest-aware refresh to these types.
                All types are refreshed by default.

        Returns:
            RefreshResult for the KB.

        Raises:
            ConfigurationError: If Confluence credentials are missing.
            RemoteError: On any failed fetch.
            ValidationError: On an invalid source type or manifest content.
        """
        kb_name = normalize_kb_name(kb_name)
        manifest = self._manifests.read(kb_name)

        if manifest is None:
            logger.info(f"No manifest found for KB '{kb_name}', falling back to label-based search")
            return self._refresh_by_label(kb_name)

        logger.info(f"Refreshing KB '{kb_name}' from knowledge manifest")
        return self._refresh_from_manifest(kb_name, manifest, source_types)

    def _refresh_from_manifest(
        self,
        kb_name: str,
        manifest: Manifest,
        source_types: Optional[Iterable[str]],
    ) -> RefreshResult:
        wanted = set(source_types) if source_types is not None else set(SOURCE_TYPES)
        unknown = wanted - set(SOURCE_TYPES)
        if unknown:
            raise ValidationError(f"Unknown source type: {', '.join(sorted(unknown))}")

        merged: list[Source] = []
        pages_count = 0
        for source in manifest.sources:
            if source.type not in wanted:
                merged.append(source)
                continue

            fresh = self._refresh_source(kb_name, source)
            pages_count += count_documents(fresh)
            merged.append(fresh)

        self._manifests.update(kb_name, merged)
        self._log_result(kb_name, pages_count)
        return RefreshResult(kb_name=kb_name, pages_count=pages_count, sources=merged)

    def _refresh_source(self, kb_name: str, source: Source) -> Source:
        if isinstance(source, ConfluenceSource):
            return self._confluence.sync(kb_name, source.label or kb_name, source.pages)
        if isinstance(source, WebSource):
            return self._web.sync(kb_name, source.urls)
        raise ValidationError(f"Unknown source: {source!r}")

    def _refresh_by_label(self, kb_name: str) -> RefreshResult:
        source = self._confluence.sync(kb_name, kb_name)

        if not source.pages:
            logger.info(
                f"No pages found for KB '{kb_name}'. "
                f"Make sure pages are labeled with '{kb_name}' in Confluence."
            )
            return RefreshResult(kb_name=kb_name, pages_count=0, sources=[], from_manifest=False)

        self._manifests.create(kb_name, [source], kb_type="remote")
        self._log_result(kb_name, len(source.pages))
        return RefreshResult(
            kb_name=kb_name,
            pages_count=len(source.pages),
            sources=[source],
            from_manifest=False,
        )

    def add_url(self, kb_name: str, url: str) -> UrlEntry:
        """Fetch one URL and append it to the KB's web source.

        The URL is appended even if already present. Confluence sources are
        left untouched. A KB without a manifest gets a new one.

        Returns:
            The new UrlEntry.

        Raises:
            ValidationError: If the URL is not http(s) or the manifest is invalid.
            RemoteError: If the fetch fails.
        """
        kb_name = normalize_kb_name(kb_name)
        manifest = self._manifests.read(kb_name)
        if manifest is None and self._manifests.exists(kb_name):
            raise ValidationError(f"Manifest for KB '{kb_name}' is invalid, refusing to overwrite it")

        entry = self._web.fetch_url(kb_name, url)

        if manifest is None:
            self._manifests.create(kb_name, [WebSource(urls=[entry])], kb_type="remote")
            logger.info(f"Added URL to new KB '{kb_name}': {url}")
            return entry

        sources = list(manifest.sources)
        web_source = next((s for s in sources if isinstance(s, WebSource)), None)
        if web_source is not None:
            web_source.urls.append(entry)
        else:
            sources.append(WebSource(urls=[entry]))

        self._manifests.update(kb_name, sources)
        logger.info(f"Successfully added URL to KB '{kb_name}': {url}")
        return entry

    def refresh_all(self) -> RefreshAllReport:
        """Refresh every KB with a manifest, one at a time.

        Configuration, remote and validation errors are recorded per KB
        and do not stop the batch.

        Returns:
            RefreshAllReport with counts and failures.
        """
        report = RefreshAllReport()
        kb_names = self._manifests.list_kbs()
        if not kb_names:
            logger.info("No knowledge bases found to refresh.")
            return report

        logger.info(f"Starting refresh for {len(kb_names)} KB(s)...")
        for kb_name in kb_names:
            report.attempted += 1
            try:
                manifest = self._manifests.read(kb_name)
                if manifest is None:
                    raise ValidationError(f"Manifest for KB '{kb_name}' is missing or invalid")
                result = self._refresh_from_manifest(kb_name, manifest, None)
            except KBSyncError as e:
                logger.error(f"Failed to refresh KB '{kb_name}': {e}")
                report.failed += 1
                report.failures.append(KBFailure(kb_name=kb_name, error=str(e)))
                continue

            report.succeeded += 1
            report.total_pages += result.pages_count

        log_refresh_all_summary(report)
        return report

    def list_kbs(self) -> list[KBInfo]:
        """Describe every KB with a readable manifest."""
        infos = []
        for kb_name in self._manifests.list_kbs():
            manifest = self._manifests.read(kb_name)
            sources = manifest.sources if manifest else []
            infos.append(
                KBInfo(
                    name=kb_name,
                    kb_type=manifest.kb_type if manifest else None,
                    pages=sum(len(s.pages) for s in sources if isinstance(s, ConfluenceSource)),
                    urls=sum(len(s.urls) for s in sources if isinstance(s, WebSource)),
                )
            )
        return infos

    @staticmethod
    def _log_result(kb_name: str, pages_count: int) -> None:
        if pages_count:
            logger.info(f"Successfully refreshed {pages_count} pages for KB '{kb_name}'")
        else:
            logger.info(f"No pages refreshed for KB '{kb_name}'")


def build_orchestrator(
    settings: Optional[Settings] = None,
    summarizer: Optional[Summarizer] = None,
) -> SyncOrchestrator:
    """Wire the sync components from settings.

    Args:
        settings: Optional settings override.
        summarizer: Optional summarizer override; resolved from settings otherwise.

    Returns:
        Ready-to-use SyncOrchestrator.
    """
    settings = settings or get_settings()
    summarizer = summarizer or get_summarizer(settings)

    content_store = LocalContentStore(settings.kb_root_path)
    summary_cache = SummaryCache(summarizer)

    return SyncOrchestrator(
        manifest_store=ManifestStore(settings.kb_root_path),
        confluence=ConfluenceSyncer(
            ConfluenceClient(settings.confluence_config()),
            content_store,
            summary_cache,
        ),
        web=WebSyncer(
            WebFetcher(),
            content_store,
            summary_cache,
            TitleGenerator(summarizer),
        ),
    )


def main() -> None:
    """CLI entrypoint for manual sync operations."""
    import argparse
    import sys

    settings = get_settings()
    configure_logging(settings.log_level)

    parser = argparse.ArgumentParser(
        description="Sync Confluence and web knowledge into local knowledge bases",
        prog="syncKb",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    refresh_parser = subparsers.add_parser("refresh", help="Refresh one knowledge base")
    refresh_parser.add_argument("kb", help="Knowledge base name")
    refresh_parser.add_argument(
        "--type",
        dest="source_types",
        action="append",
        choices=SOURCE_TYPES,
        help="Only refresh sources of this type (repeatable)",
    )

    subparsers.add_parser("refresh-all", help="Refresh every knowledge base")

    add_url_parser = subparsers.add_parser("add-url", help="Add a web page to a knowledge base")
    add_url_parser.add_argument("kb", help="Knowledge base name")
    add_url_parser.add_argument("url", help="http(s) URL to fetch")

    subparsers.add_parser("list", help="List knowledge bases")

    args = parser.parse_args()
    orchestrator = build_orchestrator(settings)

    try:
        if args.command == "refresh":
            result = orchestrator.refresh(args.kb, args.source_types)
            print(f"\n{result.kb_name}:")
            print(f"  Pages: {result.pages_count}")
            print(f"  Sources: {len(result.sources)}")

        elif args.command == "refresh-all":
            report = orchestrator.refresh_all()
            print(f"\nSuccessful: {report.succeeded}/{report.attempted} KBs")
            print(f"Total pages: {report.total_pages}")
            for failure in report.failures:
                print(f"  Failed {failure.kb_name}: {failure.error}")
            if report.failed:
                sys.exit(1)

        elif args.command == "add-url":
            entry = orchestrator.add_url(args.kb, args.url)
            print(f"Added '{entry.title}' to {normalize_kb_name(args.kb)}")

        elif args.command == "list":
            kbs = orchestrator.list_kbs()
            if not kbs:
                print("No knowledge bases found.")
            for kb in kbs:
                print(f"  {kb.name} ({kb.kb_type or 'invalid manifest'}): {kb.pages} pages, {kb.urls} urls")

    except KBSyncError as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
