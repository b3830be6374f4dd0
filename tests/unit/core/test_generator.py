"""Tests for the title generator and its refinement step."""

import logging

import httpx
import pytest

from retitler.core.generator import (
    MAX_MODEL_CALLS,
    GenerationResult,
    TitleGenerator,
    build_prompt,
    post_process,
)
from retitler.utils.errors import (
    ApiError,
    ErrorCode,
    GenerationError,
    NetworkError,
)

LONG_TITLE = "A very long title that keeps going well past the configured limit"


class TestBuildPrompt:
    """Tests for build_prompt function."""

    def test_prompt_and_content(self):
        """Test prompt and content are separated by a blank line."""
        assert build_prompt("Make a title.", "Body text") == "Make a title.\n\nBody text"

    def test_prompt_only(self):
        """Test a prompt without content has no trailing blank lines."""
        assert build_prompt("Shorten this.") == "Shorten this."


class TestPostProcess:
    """Tests for post_process function."""

    def test_lowercase_and_sanitize(self, config_factory):
        """Test case folding happens before character sanitization."""
        config = config_factory(lowercase_titles=True)
        assert post_process("What: Is/This?", config) == "what isthis"

    def test_keeps_case_by_default(self, config_factory):
        """Test titles keep their case unless lowercasing is enabled."""
        assert post_process("Mixed Case", config_factory()) == "Mixed Case"

    def test_sanitization_can_be_disabled(self, config_factory):
        """Test forbidden characters survive when stripping is disabled."""
        config = config_factory(strip_forbidden_chars=False)
        assert post_process("A: B", config) == "A: B"

    def test_truncates_last(self, config_factory):
        """Test the final title respects the length limit."""
        config = config_factory(max_title_length=10)
        assert len(post_process(LONG_TITLE, config)) <= 10


class TestGenerate:
    """Tests for TitleGenerator.generate."""

    @pytest.mark.asyncio
    async def test_end_to_end_without_refinement(self, config_factory, make_client):
        """Test a short labelled reply becomes the final title in one call."""
        client = make_client(generation=['Here\'s the title: "Local Model Server Setup"'])
        config = config_factory(max_title_length=30)
        generator = TitleGenerator(client, lambda: config)

        result = await generator.generate(
            "This note explains how to configure a local model server."
        )

        assert result.ok
        assert result.title == "Local Model Server Setup"
        assert result.model_calls == 1
        assert result.refined is False
        assert len(client.prompts) == 1

    @pytest.mark.asyncio
    async def test_refinement_is_bounded(self, config_factory, make_client):
        """Test an always over-length backend costs exactly two calls."""
        client = make_client(generation=[LONG_TITLE])
        config = config_factory(max_title_length=20)
        generator = TitleGenerator(client, lambda: config)

        result = await generator.generate("Some document text")

        assert result.ok
        assert len(client.prompts) == MAX_MODEL_CALLS == 2
        assert result.model_calls == 2
        assert result.refined is True
        assert len(result.title) <= 20
        assert result.title == "A very long title"

    @pytest.mark.asyncio
    async def test_refinement_shortens_title(self, config_factory, make_client):
        """Test a successful refinement replaces the draft."""
        client = make_client(generation=[LONG_TITLE, "Short Title"])
        config = config_factory(max_title_length=20)
        generator = TitleGenerator(client, lambda: config)

        result = await generator.generate("Some document text")

        assert result.title == "Short Title"
        assert result.refined is True
        assert LONG_TITLE in client.prompts[1]
        assert "20" in client.prompts[1]

    @pytest.mark.asyncio
    async def test_empty_refinement_keeps_draft(self, config_factory, make_client):
        """Test an unusable refinement falls back to the truncated draft."""
        client = make_client(generation=[LONG_TITLE, ""])
        config = config_factory(max_title_length=20)
        generator = TitleGenerator(client, lambda: config)

        result = await generator.generate("Some document text")

        assert result.ok
        assert result.title == "A very long title"

    @pytest.mark.asyncio
    async def test_content_is_sliced(self, config_factory, make_client):
        """Test only max_content_length characters are sent."""
        client = make_client(generation=["Title"])
        config = config_factory(max_content_length=100)
        generator = TitleGenerator(client, lambda: config)

        await generator.generate("x" * 5000)

        assert "x" * 100 in client.prompts[0]
        assert "x" * 101 not in client.prompts[0]

    @pytest.mark.asyncio
    async def test_prompt_carries_max_length(self, config_factory, make_client):
        """Test the prompt template is filled with the length limit."""
        client = make_client(generation=["Title"])
        config = config_factory(max_title_length=42)
        generator = TitleGenerator(client, lambda: config)

        await generator.generate("Body")

        assert "42 characters" in client.prompts[0]
        assert client.prompts[0].endswith("Body")

    @pytest.mark.asyncio
    async def test_reads_fresh_config_each_call(self, config_factory, make_client):
        """Test the configuration snapshot is taken per call."""
        client = make_client(generation=["Mixed Case Title"])
        configs = [config_factory(), config_factory(lowercase_titles=True)]
        generator = TitleGenerator(client, lambda: configs[0])

        first = await generator.generate("Body")
        configs.pop(0)
        second = await generator.generate("Body")

        assert first.title == "Mixed Case Title"
        assert second.title == "mixed case title"

    @pytest.mark.asyncio
    async def test_explicit_config_wins(self, config_factory, make_client):
        """Test a config passed to generate() overrides get_config."""
        client = make_client(generation=["Mixed Case"])
        generator = TitleGenerator(client, config_factory)

        result = await generator.generate("Body", config_factory(lowercase_titles=True))

        assert result.title == "mixed case"


class TestGenerateFailures:
    """Tests for failure handling in TitleGenerator.generate."""

    @pytest.mark.asyncio
    async def test_missing_credential_never_calls_backend(self, unconfigured_openai, make_client):
        """Test a configuration error stops before any network call."""
        client = make_client(generation=["unused"])
        generator = TitleGenerator(client, lambda: unconfigured_openai)

        result = await generator.generate("Body")

        assert result.error_code == ErrorCode.CONFIGURATION_ERROR
        assert "API key" in result.error.user_message
        assert result.retryable is False
        assert client.prompts == []
        assert result.model_calls == 0

    @pytest.mark.asyncio
    async def test_unsupported_backend(self, config_factory, make_client):
        """Test an unknown backend fails without a call."""
        client = make_client(generation=["unused"])
        generator = TitleGenerator(client, lambda: config_factory("carrier-pigeon"))

        result = await generator.generate("Body")

        assert result.error_code == ErrorCode.UNSUPPORTED_BACKEND
        assert client.prompts == []

    @pytest.mark.asyncio
    async def test_api_error_is_reported(self, config_factory, make_client):
        """Test backend HTTP errors come back on the result, not raised."""
        error = ApiError("Ollama API error (500): boom", backend="ollama", status_code=500)
        client = make_client(generation=[error])
        generator = TitleGenerator(client, config_factory)

        result = await generator.generate("Body")

        assert not result.ok
        assert result.error_code == ErrorCode.API_ERROR
        assert result.retryable is True
        assert result.title == ""

    @pytest.mark.asyncio
    async def test_timeout_is_reported(self, config_factory, make_client):
        """Test timeouts are reported with the TIMEOUT code."""
        client = make_client(generation=[NetworkError("timed out", backend="ollama", timeout=True)])
        generator = TitleGenerator(client, config_factory)

        result = await generator.generate("Body")

        assert result.error_code == ErrorCode.TIMEOUT
        assert result.retryable is True

    @pytest.mark.asyncio
    async def test_raw_transport_errors_are_wrapped(self, config_factory, make_client):
        """Test raw httpx exceptions are converted into the error taxonomy."""
        client = make_client(generation=[httpx.ConnectError("connection refused")])
        generator = TitleGenerator(client, config_factory)

        result = await generator.generate("Body")

        assert isinstance(result.error, NetworkError)
        assert result.error.backend == "ollama"

    @pytest.mark.asyncio
    async def test_empty_reply_is_generation_error(self, config_factory, make_client):
        """Test a successful but empty completion is a generation error."""
        client = make_client(generation=["   "])
        generator = TitleGenerator(client, config_factory)

        result = await generator.generate("Body")

        assert result.error_code == ErrorCode.GENERATION_ERROR
        assert result.model_calls == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_logged_with_traceback(
        self, config_factory, make_client, caplog
    ):
        """Test a bug in the call path is reported as internal and logged with its traceback."""
        client = make_client(generation=[RuntimeError("boom")])
        logger = logging.getLogger("test.generator")
        generator = TitleGenerator(client, config_factory, logger=logger)

        with caplog.at_level(logging.ERROR, logger="test.generator"):
            result = await generator.generate("Body")

        assert result.error_code == ErrorCode.INTERNAL_ERROR
        records = [r for r in caplog.records if r.name == "test.generator"]
        assert records[0].exc_info is not None
        assert records[0].state == "drafting"
        assert records[0].backend == "ollama"

    @pytest.mark.asyncio
    async def test_call_budget_is_enforced(self, config_factory, make_client):
        """Test no backend call is made once the budget is spent."""
        client = make_client(generation=["unused"])
        generator = TitleGenerator(client, config_factory)
        result = GenerationResult(model_calls=MAX_MODEL_CALLS)

        with pytest.raises(GenerationError, match="budget"):
            await generator._call("Prompt", config_factory(), result)

        assert client.prompts == []


class TestGenerationResult:
    """Tests for GenerationResult."""

    def test_unwrap_returns_title(self):
        """Test unwrap returns the title on success."""
        assert GenerationResult(title="Done").unwrap() == "Done"

    def test_unwrap_raises_error(self):
        """Test unwrap raises the stored error."""
        result = GenerationResult(error=GenerationError("nothing usable"))
        with pytest.raises(GenerationError):
            result.unwrap()

    def test_empty_title_is_not_ok(self):
        """Test a result with no title and no error is not ok."""
        assert GenerationResult().ok is False
