"""Unit tests for retry_async, throttled_gather and the embedding / vision retry wrappers."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.services.ingestion.embedding_generator import EmbeddingGenerator
from src.services.ingestion.image_text_extractor import ImageTextExtractor
from src.utils.concurrency import throttled_gather
from src.utils.errors import EmbeddingError, RateLimitError, VisionExtractionError
from src.utils.retry import is_rate_limited, retry_async
from tests.conftest import MockEmbeddingProvider, ScriptedVisionProvider

# ---------------------------------------------------------------------------
# retry_async
# ---------------------------------------------------------------------------


class TestRetryAsync:
    @pytest.mark.asyncio
    async def test_returns_first_success(self) -> None:
        operation = AsyncMock(return_value="ok")

        result = await retry_async(operation, is_retryable=is_rate_limited, delay_seconds=0)

        assert result == "ok"
        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_retries_transient_errors(self) -> None:
        operation = AsyncMock(side_effect=[RateLimitError(), RateLimitError(), "done"])

        result = await retry_async(
            operation, is_retryable=is_rate_limited, max_attempts=3, delay_seconds=0
        )

        assert result == "done"
        assert operation.await_count == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self) -> None:
        operation = AsyncMock(side_effect=RateLimitError(message="busy"))

        with pytest.raises(RateLimitError, match="busy"):
            await retry_async(operation, is_retryable=is_rate_limited, max_attempts=3, delay_seconds=0)
        assert operation.await_count == 3

    @pytest.mark.asyncio
    async def test_terminal_errors_are_not_retried(self) -> None:
        operation = AsyncMock(side_effect=EmbeddingError(message="bad input"))

        with pytest.raises(EmbeddingError):
            await retry_async(operation, is_retryable=is_rate_limited, max_attempts=5, delay_seconds=0)
        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_waits_fixed_delay_between_attempts(self) -> None:
        operation = AsyncMock(side_effect=[RateLimitError(), RateLimitError(), 1])

        with patch("src.utils.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            await retry_async(operation, is_retryable=is_rate_limited, delay_seconds=10.0)

        assert [c.args[0] for c in sleep.await_args_list] == [10.0, 10.0]

    @pytest.mark.asyncio
    async def test_rejects_zero_attempts(self) -> None:
        with pytest.raises(ValueError):
            await retry_async(AsyncMock(), is_retryable=is_rate_limited, max_attempts=0)


# ---------------------------------------------------------------------------
# throttled_gather
# ---------------------------------------------------------------------------


class TestThrottledGather:
    @pytest.mark.asyncio
    async def test_results_keep_input_order(self) -> None:
        async def delayed(value: int, delay: float) -> int:
            await asyncio.sleep(delay)
            return value

        results = await throttled_gather(
            [delayed(1, 0.03), delayed(2, 0), delayed(3, 0.01)],
            semaphore=asyncio.Semaphore(2),
        )

        assert results == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self) -> None:
        running = 0
        peak = 0

        async def tracked() -> None:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1

        await throttled_gather([tracked() for _ in range(8)], semaphore=asyncio.Semaphore(3))

        assert peak == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bounded", [True, False])
    async def test_first_failure_cancels_running_siblings(self, bounded: bool) -> None:
        cancelled: list[int] = []

        async def stalls(index: int) -> None:
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                cancelled.append(index)
                raise

        async def fails() -> None:
            await asyncio.sleep(0)
            raise EmbeddingError(message="model unloaded")

        with pytest.raises(EmbeddingError, match="model unloaded"):
            await throttled_gather(
                [stalls(0), fails(), stalls(2)],
                semaphore=asyncio.Semaphore(3) if bounded else None,
            )

        assert sorted(cancelled) == [0, 2]


# ---------------------------------------------------------------------------
# ImageTextExtractor
# ---------------------------------------------------------------------------


class TestImageTextExtractor:
    @pytest.mark.asyncio
    async def test_returns_provider_text(self) -> None:
        provider = ScriptedVisionProvider(default_text="Invoice 42")
        extractor = ImageTextExtractor(provider, retry_delay=0)

        assert await extractor.extract_text(b"png", "image/png") == "Invoice 42"
        assert provider.calls == [(b"png", "image/png")]

    @pytest.mark.asyncio
    async def test_rate_limit_twice_then_success(self) -> None:
        provider = ScriptedVisionProvider(script=[RateLimitError(), RateLimitError(), "late text"])
        extractor = ImageTextExtractor(provider, max_attempts=3, retry_delay=0)

        assert await extractor.extract_text(b"img", "image/png") == "late text"
        assert len(provider.calls) == 3

    @pytest.mark.asyncio
    async def test_rate_limit_exhaustion_surfaces(self) -> None:
        provider = ScriptedVisionProvider(script=[RateLimitError()] * 3)
        extractor = ImageTextExtractor(provider, max_attempts=3, retry_delay=0)

        with pytest.raises(RateLimitError):
            await extractor.extract_text(b"img", "image/png")
        assert len(provider.calls) == 3

    @pytest.mark.asyncio
    async def test_other_errors_fail_immediately(self) -> None:
        provider = ScriptedVisionProvider(script=[VisionExtractionError(message="model crashed")])
        extractor = ImageTextExtractor(provider, retry_delay=0)

        with pytest.raises(VisionExtractionError):
            await extractor.extract_text(b"img", "image/png")
        assert len(provider.calls) == 1


# ---------------------------------------------------------------------------
# EmbeddingGenerator
# ---------------------------------------------------------------------------


class TestEmbeddingGenerator:
    @pytest.mark.asyncio
    async def test_returns_provider_vector(self) -> None:
        provider = MockEmbeddingProvider(dim=8)
        generator = EmbeddingGenerator(provider, retry_delay=0)

        vector = await generator.generate_embedding("hello")

        assert len(vector) == 8
        assert vector == await provider.embed_single("hello")
        assert provider.calls == ["hello", "hello"]

    @pytest.mark.asyncio
    async def test_retries_rate_limits(self) -> None:
        provider = MagicMock()
        provider.get_provider_name.return_value = "flaky"
        provider.embed_single = AsyncMock(side_effect=[RateLimitError(), [0.1, 0.2]])

        generator = EmbeddingGenerator(provider, max_attempts=3, retry_delay=0)

        assert await generator.generate_embedding("x") == [0.1, 0.2]
        assert provider.embed_single.await_count == 2

    @pytest.mark.asyncio
    async def test_terminal_error_propagates(self) -> None:
        provider = MagicMock()
        provider.get_provider_name.return_value = "broken"
        provider.embed_single = AsyncMock(side_effect=EmbeddingError(message="dimension mismatch"))

        with pytest.raises(EmbeddingError, match="dimension mismatch"):
            await EmbeddingGenerator(provider, retry_delay=0).generate_embedding("x")
        assert provider.embed_single.await_count == 1
