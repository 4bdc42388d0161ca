"""Tests for service wiring."""

import pytest

from khub.services import build_services

from conftest import FakeLLM


class _Model:
    def encode(self, texts, normalize_embeddings=True):
        return [[1.0, 0.0] for _ in texts]


def test_embedding_usage_is_metered(config, records):
    cfg = dict(
        config,
        storage_backend="memory",
        embedding_model="intfloat/e5-small-v2",
        pricing={"intfloat/e5-small-v2": {"input": 2.0}},
    )
    services = build_services(cfg, records=records, llm=FakeLLM())
    services.embedder._model = _Model()

    services.embedder.embed_batch(["a" * 40, "b" * 40])
    services.embedder.embed("c" * 8)

    assert services.usage.calls == 2
    assert services.usage.tokens == 22
    assert services.usage.cost_usd == pytest.approx(22 / 1_000_000 * 2.0)


def test_injected_embedder_is_not_metered(config, records, embedder):
    services = build_services(dict(config, storage_backend="memory"), records=records,
                              embedder=embedder, llm=FakeLLM())
    services.embedder.embed("hello")
    assert services.usage.calls == 0
