"""
Tests for the embedder: fallback hash, primary strategy with a fake model, recovery.
"""

from __future__ import annotations

import asyncio
import time
from typing import List

import numpy as np
import pytest
from conftest import make_chunk

from textbook_rag.errors import EmptyTextError
from textbook_rag.rag import (
    EmbeddingConfig,
    EmbeddingMode,
    Embedder,
    FallbackStrategy,
    PrimaryStrategy,
    fallback_embed,
    validate_embedding,
)

DIM = 384


class FakeModel:
    """Stands in for a SentenceTransformer: one-hot vector keyed on text length."""

    def __init__(self, dimension: int = DIM):
        self.dimension = dimension
        self.encoded: List[List[str]] = []

    def get_sentence_embedding_dimension(self) -> int:
        return self.dimension

    def encode(self, texts, **kwargs):
        self.encoded.append(list(texts))
        out = np.zeros((len(texts), self.dimension), dtype=np.float32)
        for i, t in enumerate(texts):
            out[i, len(t) % self.dimension] = 1.0
        return out


class CountingLoader:
    def __init__(self, model=None, error: Exception | None = None, delay: float = 0.05):
        self.model = model or FakeModel()
        self.error = error
        self.delay = delay
        self.calls = 0

    def __call__(self, config: EmbeddingConfig):
        self.calls += 1
        time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.model


def _primary(loader: CountingLoader, **config_kwargs) -> Embedder:
    config = EmbeddingConfig(model_identifier="fake-model", **config_kwargs)
    return Embedder(config, strategy=PrimaryStrategy(loader=loader))


def test_fallback_embed_is_deterministic_and_normalised():
    a = fallback_embed("Working capital measures liquidity")
    b = fallback_embed("Working capital measures liquidity")
    assert a.shape == (DIM,)
    assert a.dtype == np.float32
    np.testing.assert_array_equal(a, b)
    assert np.linalg.norm(a) == pytest.approx(1.0, abs=1e-5)
    assert not np.allclose(a, fallback_embed("Depreciation of fixed assets"))


def test_fallback_embed_without_tokens_is_still_unit_length():
    v = fallback_embed("a an")
    assert np.linalg.norm(v) == pytest.approx(1.0, abs=1e-5)
    assert np.allclose(v, v[0])


def test_fallback_embed_case_insensitive():
    np.testing.assert_array_equal(fallback_embed("Balance Sheet"), fallback_embed("balance sheet"))


def test_validate_embedding():
    assert validate_embedding(fallback_embed("valid text here"), DIM)
    assert not validate_embedding(np.zeros(10, dtype=np.float32), DIM)
    assert not validate_embedding(np.array([], dtype=np.float32), DIM)
    bad = fallback_embed("valid text here").copy()
    bad[3] = np.nan
    assert not validate_embedding(bad, DIM)


def test_strategy_follows_configured_mode():
    assert isinstance(Embedder(EmbeddingConfig(mode=EmbeddingMode.FALLBACK)).strategy, FallbackStrategy)
    assert isinstance(Embedder(EmbeddingConfig(mode="primary")).strategy, PrimaryStrategy)


@pytest.mark.anyio
async def test_fallback_mode_embeds_without_model(fallback_embedder: Embedder):
    vec = await fallback_embedder.embed("What is working capital?")
    assert vec.strategy == "fallback"
    assert vec.embed_version == "test-model"
    np.testing.assert_array_equal(vec.values, fallback_embed("What is working capital?"))


@pytest.mark.anyio
async def test_fallback_strategy_never_loads_a_model(fallback_embedder: Embedder):
    await fallback_embedder.preload()
    assert fallback_embedder.model_info()["loaded"] is False
    with pytest.raises(RuntimeError, match="FallbackStrategy does not load a model"):
        await fallback_embedder._get_model()


@pytest.mark.anyio
async def test_empty_text_raises(fallback_embedder: Embedder):
    with pytest.raises(EmptyTextError):
        await fallback_embedder.embed("   ")
    with pytest.raises(EmptyTextError):
        await fallback_embedder.embed_many(["fine text", ""])


@pytest.mark.anyio
async def test_primary_batches_preserve_order():
    loader = CountingLoader(delay=0)
    embedder = _primary(loader, batch_size=2)
    texts = ["a" * n for n in (3, 5, 7, 11, 13)]
    vectors = await embedder.embed_many(texts, ids=[f"c{i}" for i in range(5)])
    assert [v.id for v in vectors] == ["c0", "c1", "c2", "c3", "c4"]
    assert [int(np.argmax(v.values)) for v in vectors] == [3, 5, 7, 11, 13]
    assert [len(batch) for batch in loader.model.encoded] == [2, 2, 1]
    assert all(v.strategy == "primary" for v in vectors)


@pytest.mark.anyio
async def test_concurrent_first_calls_share_one_model_load():
    loader = CountingLoader(delay=0.1)
    embedder = _primary(loader)
    vectors = await asyncio.gather(*(embedder.embed(f"query number {i}") for i in range(5)))
    assert loader.calls == 1
    assert all(v.strategy == "primary" for v in vectors)
    assert embedder.model_info()["loaded"] is True


@pytest.mark.anyio
async def test_load_failure_falls_back_and_is_not_retried():
    loader = CountingLoader(error=OSError("model download failed"), delay=0)
    embedder = _primary(loader)
    first = await embedder.embed("current assets and liabilities")
    second = await embedder.embed("inventory turnover ratio")
    assert first.strategy == "fallback"
    assert second.strategy == "fallback"
    np.testing.assert_array_equal(first.values, fallback_embed("current assets and liabilities"))
    assert loader.calls == 1


@pytest.mark.anyio
async def test_model_with_wrong_dimension_falls_back():
    loader = CountingLoader(model=FakeModel(dimension=16), delay=0)
    embedder = _primary(loader)
    vec = await embedder.embed("net present value")
    assert vec.strategy == "fallback"
    assert vec.dimension == DIM


@pytest.mark.anyio
async def test_embed_chunks_maps_ids(fallback_embedder: Embedder):
    chunks = [make_chunk("c1", "first chunk text"), make_chunk("c2", "second chunk text")]
    vectors = await fallback_embedder.embed_chunks(chunks)
    assert set(vectors) == {"c1", "c2"}
    assert vectors["c1"].id == "c1"
