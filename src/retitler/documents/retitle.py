"""Generate titles for documents and rename them.

Documents are processed strictly one at a time so only one generation
request is ever in flight against a backend.
"""

import logging
from pathlib import PurePosixPath

from retitler.config import DuplicateSettings
from retitler.core.duplicates import detect_title_duplicates, remove_matches, select_matches
from retitler.core.generator import TitleGenerator
from retitler.documents.store import DocumentStore
from retitler.models.documents import RetitleOutcome, RetitleStatus
from retitler.utils.errors import ValidationError, log_error
from retitler.utils.retry import RetryError, retry_with_backoff

# Give up disambiguating "<title> N" names after this many attempts
MAX_NAME_SUFFIX = 1000


def _with_stem(path: PurePosixPath, stem: str) -> PurePosixPath:
    try:
        return path.with_name(f"{stem}{path.suffix}")
    except ValueError as e:
        raise ValidationError(f"Title is not a valid file name: {stem!r}") from e


class Retitler:
    """Orchestrates read -> generate -> deduplicate -> rename for documents."""

    def __init__(
        self,
        store: DocumentStore,
        generator: TitleGenerator,
        duplicates: DuplicateSettings | None = None,
        max_attempts: int = 1,
        retry_base_delay: float = 1.0,
        logger: logging.Logger | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            store: Where documents are read, written and renamed.
            generator: Produces titles from document content.
            duplicates: Duplicate-title removal settings. None disables removal.
            max_attempts: Generation attempts per document for retryable failures.
            retry_base_delay: Base backoff delay between attempts, in seconds.
            logger: Logger to report to. Defaults to the module logger.
        """
        self.store = store
        self.generator = generator
        self.duplicates = duplicates
        self.max_attempts = max_attempts
        self.retry_base_delay = retry_base_delay
        self.logger = logger or logging.getLogger(__name__)

    async def process_file(self, path: str) -> RetitleOutcome:
        """Retitle one document. Failures are reported on the outcome."""
        try:
            content = await self.store.read_content(path)
            if not content.strip():
                raise ValidationError("Document is empty. Cannot generate title.")

            title = await self._generate(content)
            removed = await self._remove_duplicates(path, title, content)

            new_path = await self._target_path(path, title)
            if new_path == path:
                self.logger.info(f"Generated title is the same as the current one: {path}")
                return RetitleOutcome(
                    path=path,
                    new_path=path,
                    title=title,
                    status=RetitleStatus.UNCHANGED,
                    duplicates_removed=removed,
                )

            await self.store.rename(path, new_path)
            self.logger.info(f"Renamed {path} -> {new_path}")
            return RetitleOutcome(
                path=path,
                new_path=new_path,
                title=title,
                status=RetitleStatus.RENAMED,
                duplicates_removed=removed,
            )

        except Exception as e:
            cause = e.original_error if isinstance(e, RetryError) else e
            error = log_error(cause, self.logger, path=path)
            return RetitleOutcome(
                path=path,
                status=RetitleStatus.FAILED,
                error_code=error.code,
                error=error.user_message,
            )

    async def process_many(self, paths: list[str]) -> list[RetitleOutcome]:
        """Retitle documents sequentially, continuing past failures."""
        outcomes = []
        total = len(paths)
        for index, path in enumerate(paths, start=1):
            outcomes.append(await self.process_file(path))
            self.logger.info(f"Generating titles: {index}/{total}")
        return outcomes

    async def _generate(self, content: str) -> str:
        if self.max_attempts > 1:
            return await retry_with_backoff(
                self._generate_once,
                content,
                max_attempts=self.max_attempts,
                base_delay=self.retry_base_delay,
            )
        return await self._generate_once(content)

    async def _generate_once(self, content: str) -> str:
        result = await self.generator.generate(content)
        return result.unwrap()

    async def _remove_duplicates(self, path: str, title: str, content: str) -> int:
        settings = self.duplicates
        if settings is None or not settings.enabled:
            return 0

        matches = detect_title_duplicates(
            title,
            content,
            settings.sensitivity,
            thresholds=settings.thresholds(),
            plain_text_window=settings.plain_text_window,
        )
        matches = select_matches(
            matches,
            exact_only=settings.remove_policy == "exact",
            exact_threshold=settings.exact_match_threshold,
        )
        if not matches:
            return 0

        updated = remove_matches(content, matches, settings.max_leading_blank_lines)
        if updated == content:
            return 0

        await self.store.write_content(path, updated)
        self.logger.debug(f"Removed {len(matches)} duplicate title line(s) from {path}")
        return len(matches)

    async def _target_path(self, path: str, title: str) -> str:
        """Same directory and extension, with a numeric suffix on collision."""
        current = PurePosixPath(path)
        candidate = _with_stem(current, title)
        if candidate.as_posix() == path:
            return path

        suffix = 0
        while await self.store.exists(candidate.as_posix()):
            suffix += 1
            if suffix > MAX_NAME_SUFFIX:
                raise ValidationError(f"No free name for title {title!r}")
            candidate = _with_stem(current, f"{title} {suffix}")
            if candidate.as_posix() == path:
                return path
        return candidate.as_posix()
