import asyncio
import json

import numpy as np
import pytest

from conftest import FakeElement, FakePage, make_field, make_probe
from formfill.adapters.registry import AdapterRegistry
from formfill.form_detection import FIELD_QUERY
from formfill.form_models import DetectionMethod, FieldType
from formfill.learning_store import LearnedEntry, MemoryLearningStore
from formfill.reconciliation import detect_all_fields
from formfill.similarity import (
    FileModelProvider,
    LoadState,
    PretrainedModel,
    SimilarityModelCache,
    SoftmaxModel,
    char_ngrams,
    configure_similarity,
    get_similarity_cache,
    invalidate_classifier,
    record_correction,
    reload_classifier,
    similarity_classifier,
    vectorize,
)

LABELS = ["email", "cpf"]


def _tiny_model() -> PretrainedModel:
    grams = {"email": char_ngrams("email"), "cpf": char_ngrams("cpf")}
    vocab = {}
    for words in grams.values():
        for gram in words:
            vocab.setdefault(gram, len(vocab))
    weights = np.zeros((len(vocab), len(LABELS)), dtype=np.float32)
    for column, label in enumerate(LABELS):
        for gram in grams[label]:
            weights[vocab[gram], column] = 5.0
    bias = np.zeros(len(LABELS), dtype=np.float32)
    return PretrainedModel(model=SoftmaxModel(weights, bias), vocab=vocab, labels=list(LABELS))


class CountingProvider:
    def __init__(self, fail=False):
        self.loads = 0
        self.fail = fail

    async def load(self):
        self.loads += 1
        await asyncio.sleep(0.01)
        if self.fail:
            raise OSError("model files missing")
        return _tiny_model()


def test_char_ngrams_pad_and_normalise():
    assert char_ngrams("CPF") == ["_cp", "cpf", "pf_"]
    assert char_ngrams("e_mail")[:2] == ["_e ", "e m"]


def test_vectorize_is_unit_length():
    model = _tiny_model()
    vector = vectorize("email", model.vocab)
    assert np.linalg.norm(vector) == pytest.approx(1.0)
    assert not vectorize("zzzz", model.vocab).any()


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_load():
    provider = CountingProvider()
    cache = SimilarityModelCache(provider=provider)

    results = await asyncio.gather(*(cache.ensure_loaded() for _ in range(5)))

    assert results == [True] * 5
    assert provider.loads == 1
    assert cache.state is LoadState.LOADED


@pytest.mark.asyncio
async def test_failed_load_abstains_for_the_session():
    provider = CountingProvider(fail=True)
    cache = SimilarityModelCache(provider=provider)

    assert await cache.ensure_loaded() is False
    assert await cache.ensure_loaded() is False
    assert provider.loads == 1
    assert cache.state is LoadState.FAILED
    assert cache.classify("email") is None


@pytest.mark.asyncio
async def test_missing_provider_means_no_opinion():
    cache = SimilarityModelCache()
    assert await cache.ensure_loaded() is False


@pytest.mark.asyncio
async def test_model_prediction_and_threshold():
    cache = SimilarityModelCache(provider=CountingProvider())
    await cache.ensure_loaded()

    result = cache.classify("email")
    assert result.field_type is FieldType.EMAIL
    assert result.confidence > 0.9
    assert cache.classify("zzzz") is None
    assert cache.classify("") is None


@pytest.mark.asyncio
async def test_learned_entries_take_priority_and_reload_after_invalidate():
    store = MemoryLearningStore([LearnedEntry("cpf", FieldType.RG)])
    cache = SimilarityModelCache(provider=CountingProvider(), store=store)
    await cache.ensure_loaded()

    assert cache.learned_count == 1
    learned = cache.classify("cpf")
    assert learned.field_type is FieldType.RG
    assert learned.confidence == pytest.approx(1.0, abs=1e-5)

    await store.store_learned_entry("email", FieldType.USERNAME)
    cache.invalidate()
    assert cache.learned_count == 0
    await cache.ensure_loaded()
    assert cache.learned_count == 2
    assert cache.classify("email").field_type is FieldType.USERNAME


@pytest.mark.asyncio
async def test_classifier_uses_configured_cache():
    configure_similarity(provider=CountingProvider())
    field = make_field(label="Email")

    assert similarity_classifier.detect(field) is None
    result = await similarity_classifier.detect_async(field)
    assert result.field_type is FieldType.EMAIL
    assert similarity_classifier.detect(make_field(label="CPF")).field_type is FieldType.CPF

    invalidate_classifier()
    assert await reload_classifier() is True
    assert get_similarity_cache().state is LoadState.LOADED


@pytest.mark.asyncio
async def test_file_model_provider(tmp_path):
    model = _tiny_model()
    (tmp_path / "vocab.json").write_text(json.dumps(model.vocab), encoding="utf-8")
    (tmp_path / "labels.json").write_text(json.dumps(model.labels), encoding="utf-8")
    np.savez(tmp_path / "weights.npz", weights=model.model.weights, bias=model.model.bias)

    loaded = await FileModelProvider(tmp_path).load()

    assert loaded.labels == LABELS
    assert loaded.model.weights.shape == (len(model.vocab), len(LABELS))


@pytest.mark.asyncio
async def test_file_model_provider_rejects_mismatched_shapes(tmp_path):
    (tmp_path / "vocab.json").write_text(json.dumps({"abc": 0}), encoding="utf-8")
    (tmp_path / "labels.json").write_text(json.dumps(LABELS), encoding="utf-8")
    np.savez(tmp_path / "weights.npz", weights=np.zeros((3, 2)), bias=np.zeros(2))

    with pytest.raises(ValueError):
        await FileModelProvider(tmp_path).load()


@pytest.mark.asyncio
async def test_sync_detection_loads_the_model_first():
    provider = CountingProvider()
    configure_similarity(provider=provider)
    page = FakePage({FIELD_QUERY: [FakeElement(make_probe(label="Emial", selector="#e"))]})

    [field] = await detect_all_fields(page, registry=AdapterRegistry([]))

    assert provider.loads == 1
    assert field.detection_method is DetectionMethod.SIMILARITY
    assert field.field_type is FieldType.EMAIL


@pytest.mark.asyncio
async def test_correction_is_stamped_and_wins_next_time():
    store = MemoryLearningStore()
    configure_similarity(provider=CountingProvider(), store=store)
    field = make_field(label="Email")
    assert (await similarity_classifier.detect_async(field)).field_type is FieldType.EMAIL

    assert await record_correction(field, FieldType.USERNAME) is True

    assert field.field_type is FieldType.USERNAME
    assert field.detection_method is DetectionMethod.USER_OVERRIDE
    assert field.detection_confidence == 1.0
    assert [entry.signals for entry in await store.get_learned_entries()] == ["email"]
    again = await similarity_classifier.detect_async(make_field(label="Email"))
    assert again.field_type is FieldType.USERNAME


@pytest.mark.asyncio
async def test_correction_without_store_is_applied_but_not_kept():
    field = make_field(label="Apelido")
    assert await record_correction(field, FieldType.FIRST_NAME) is False
    assert field.detection_method is DetectionMethod.USER_OVERRIDE
