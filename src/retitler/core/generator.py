"""Title generation with a bounded refinement step.

TitleGenerator runs a small state machine per call:

    VALIDATING -> DRAFTING -> NORMALIZING -> CHECK_LENGTH
        -> (REFINING -> NORMALIZING -> CHECK_LENGTH)? -> POST_PROCESSING -> DONE

Any failure moves to FAILED. At most one refinement is attempted, so a
title costs at most two backend calls. Over-length results after
refinement are handled by the final truncation, not by another call.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from retitler.config import GenerationConfig
from retitler.core.backends import describe, validate_endpoint
from retitler.core.normalizer import normalize_response
from retitler.core.title_utils import sanitize_filename, substitute, truncate_title
from retitler.core.transport import BackendClient
from retitler.utils.errors import (
    ErrorCode,
    GenerationError,
    TitleGeneratorError,
    log_error,
)

MAX_MODEL_CALLS = 2


class GenerationState(str, Enum):
    """States of a single title generation."""

    VALIDATING = "validating"
    DRAFTING = "drafting"
    NORMALIZING = "normalizing"
    CHECK_LENGTH = "check_length"
    REFINING = "refining"
    POST_PROCESSING = "post_processing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class GenerationResult:
    """Outcome of one generation: a title or the error that stopped it."""

    title: str = ""
    error: TitleGeneratorError | None = None
    model_calls: int = 0
    refined: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.title)

    @property
    def error_code(self) -> ErrorCode | None:
        return self.error.code if self.error else None

    @property
    def retryable(self) -> bool:
        return self.error is not None and self.error.retryable

    def unwrap(self) -> str:
        """Return the title or raise the stored error."""
        if self.error is not None:
            raise self.error
        return self.title


def build_prompt(prompt: str, content: str = "") -> str:
    """Join a prompt and the document content the way every backend receives it."""
    return f"{prompt}\n\n{content}".strip()


def post_process(title: str, config: GenerationConfig) -> str:
    """Apply case, filename sanitization and the final length cut."""
    if config.lowercase_titles:
        title = title.lower()
    if config.strip_forbidden_chars:
        title = sanitize_filename(title)
    return truncate_title(title, config.max_title_length)


class TitleGenerator:
    """Turns document content into a short, filesystem-legal title.

    The generator holds no per-call state and reads a fresh configuration
    snapshot for every call. It assumes at most one generation in flight.
    """

    def __init__(
        self,
        client: BackendClient,
        get_config: Callable[[], GenerationConfig],
        logger: logging.Logger | None = None,
    ):
        """Initialize the generator.

        Args:
            client: Sends generation requests to backends.
            get_config: Returns the current configuration snapshot.
            logger: Logger to report progress to. Defaults to the module logger.
        """
        self.client = client
        self.get_config = get_config
        self.logger = logger or logging.getLogger(__name__)

    async def generate(
        self, content: str, config: GenerationConfig | None = None
    ) -> GenerationResult:
        """Generate a title for a document.

        Never raises for backend or configuration problems; those are
        returned on the result with their error code.

        Args:
            content: Full document text.
            config: Configuration snapshot. Taken from get_config() if omitted.

        Returns:
            GenerationResult with the final title or the error.
        """
        config = config or self.get_config()
        result = GenerationResult()
        state = GenerationState.VALIDATING
        raw = ""
        draft = ""
        title = ""

        try:
            while state != GenerationState.DONE:
                self.logger.debug(
                    f"Title generation state: {state.value}",
                    extra={"backend": config.backend, "state": state.value},
                )

                if state == GenerationState.VALIDATING:
                    descriptor = describe(config.backend)
                    validate_endpoint(descriptor, config.endpoint())
                    state = GenerationState.DRAFTING

                elif state == GenerationState.DRAFTING:
                    prompt = substitute(config.prompt, max_length=config.max_title_length)
                    body = content[: config.max_content_length]
                    raw = await self._call(build_prompt(prompt, body), config, result)
                    state = GenerationState.NORMALIZING

                elif state == GenerationState.NORMALIZING:
                    title = normalize_response(raw)
                    self.logger.debug(f"Normalized title: {title!r}")
                    if not title:
                        if not result.refined:
                            raise GenerationError(
                                "Backend returned no usable title", backend=config.backend
                            )
                        self.logger.warning(
                            "Refinement produced no usable title, keeping the draft",
                            extra={"backend": config.backend},
                        )
                        title = draft
                    state = GenerationState.CHECK_LENGTH

                elif state == GenerationState.CHECK_LENGTH:
                    if len(title) <= config.max_title_length or result.refined:
                        state = GenerationState.POST_PROCESSING
                    else:
                        state = GenerationState.REFINING

                elif state == GenerationState.REFINING:
                    self.logger.info(
                        f"Title is {len(title)} characters, over the limit of "
                        f"{config.max_title_length}; refining",
                        extra={"backend": config.backend},
                    )
                    draft = title
                    result.refined = True
                    prompt = substitute(
                        config.refine_prompt,
                        max_length=config.max_title_length,
                        title=title,
                    )
                    raw = await self._call(build_prompt(prompt), config, result)
                    state = GenerationState.NORMALIZING

                elif state == GenerationState.POST_PROCESSING:
                    title = post_process(title, config)
                    state = GenerationState.DONE

        except Exception as e:
            result.error = log_error(e, self.logger, backend=config.backend, state=state.value)
            return result

        result.title = title
        self.logger.info(
            f"Generated title: {title!r}",
            extra={"backend": config.backend, "state": state.value},
        )
        return result

    async def _call(
        self, prompt: str, config: GenerationConfig, result: GenerationResult
    ) -> str:
        if result.model_calls >= MAX_MODEL_CALLS:
            raise GenerationError(
                f"Model call budget of {MAX_MODEL_CALLS} exhausted", backend=config.backend
            )
        result.model_calls += 1
        return await self.client.send_generation_request(config.backend, prompt, config)
