import pytest

from conftest import make_field
from formfill.field_classifier import FieldClassifier, html_fallback_classifier
from formfill.form_models import ClassifierResult, DetectionMethod, FieldType
from formfill.pipeline import (
    ALL_CLASSIFIERS,
    DetectionPipeline,
    build_classifiers_from_settings,
    get_active_classifiers,
    get_active_pipeline,
    set_active_classifiers,
)


def _fixed(name, field_type, confidence=0.9):
    return FieldClassifier(
        name=name, detect=lambda field: ClassifierResult(field_type, confidence)
    )


def _abstain(name):
    return FieldClassifier(name=name, detect=lambda field: None)


def _broken(name):
    def detect(field):
        raise RuntimeError("boom")

    return FieldClassifier(name=name, detect=detect)


def test_first_concrete_answer_wins():
    pipeline = DetectionPipeline(
        [
            _fixed(DetectionMethod.KEYWORD, FieldType.CPF, 1.0),
            _fixed(DetectionMethod.SIMILARITY, FieldType.EMAIL, 0.99),
            html_fallback_classifier,
        ]
    )
    result = pipeline.run(make_field())
    assert result.field_type is FieldType.CPF
    assert result.method is DetectionMethod.KEYWORD
    assert result.confidence == 1.0


def test_unknown_and_abstention_let_the_chain_continue():
    pipeline = DetectionPipeline(
        [
            _fixed(DetectionMethod.EXACT_TYPE, FieldType.UNKNOWN),
            _abstain(DetectionMethod.KEYWORD),
            _fixed(DetectionMethod.SIMILARITY, FieldType.PHONE, 0.7),
            html_fallback_classifier,
        ]
    )
    result = pipeline.run(make_field())
    assert result.field_type is FieldType.PHONE
    assert result.method is DetectionMethod.SIMILARITY


def test_failing_classifier_counts_as_abstention():
    pipeline = DetectionPipeline(
        [_broken(DetectionMethod.KEYWORD), _fixed(DetectionMethod.SIMILARITY, FieldType.CITY)]
    )
    assert pipeline.run(make_field()).field_type is FieldType.CITY


def test_fallback_supplies_final_answer():
    pipeline = DetectionPipeline([_abstain(DetectionMethod.KEYWORD), html_fallback_classifier])
    result = pipeline.run(make_field(input_type="text"))
    assert result.field_type is FieldType.UNKNOWN
    assert result.method is DetectionMethod.HTML_FALLBACK
    assert result.confidence == 0.1


def test_default_result_when_nothing_answers():
    result = DetectionPipeline([_abstain(DetectionMethod.KEYWORD)]).run(make_field())
    assert result.field_type is FieldType.UNKNOWN
    assert result.method is DetectionMethod.HTML_FALLBACK


def test_classify_mutates_field():
    field = make_field(label="CPF")
    DetectionPipeline(ALL_CLASSIFIERS).classify(field)
    assert field.field_type is FieldType.CPF
    assert field.detection_method is DetectionMethod.KEYWORD
    assert field.detection_duration_ms is not None


@pytest.mark.asyncio
async def test_async_only_strategies_run_only_in_async_mode():
    async def detect_async(field):
        return ClassifierResult(FieldType.COMPANY, 0.8)

    oracle = FieldClassifier(
        name=DetectionMethod.ORACLE, detect=lambda field: None, detect_async=detect_async
    )
    pipeline = DetectionPipeline([oracle, html_fallback_classifier])

    assert pipeline.run(make_field()).method is DetectionMethod.HTML_FALLBACK
    result = await pipeline.run_async(make_field())
    assert result.field_type is FieldType.COMPANY
    assert result.method is DetectionMethod.ORACLE


@pytest.mark.asyncio
async def test_failing_async_strategy_is_absorbed():
    async def detect_async(field):
        raise TimeoutError("slow")

    oracle = FieldClassifier(
        name=DetectionMethod.ORACLE, detect=lambda field: None, detect_async=detect_async
    )
    result = await DetectionPipeline([oracle, html_fallback_classifier]).run_async(make_field())
    assert result.method is DetectionMethod.HTML_FALLBACK


def test_reordering_and_removal():
    pipeline = DetectionPipeline(ALL_CLASSIFIERS)
    reordered = pipeline.with_order(["keyword", DetectionMethod.EXACT_TYPE, "nope"])
    assert reordered.names == [DetectionMethod.KEYWORD, DetectionMethod.EXACT_TYPE]
    trimmed = pipeline.without("oracle", DetectionMethod.SIMILARITY)
    assert DetectionMethod.ORACLE not in trimmed.names
    assert DetectionMethod.SIMILARITY not in trimmed.names
    extra = _fixed(DetectionMethod.USER_OVERRIDE, FieldType.RG)
    assert pipeline.insert_before("keyword", extra).names[1] is DetectionMethod.USER_OVERRIDE


def test_build_from_settings_appends_fallback_once():
    classifiers = build_classifiers_from_settings(
        [
            {"name": "keyword", "enabled": True},
            {"name": "exact-type", "enabled": True},
            {"name": "similarity", "enabled": False},
            {"name": "keyword", "enabled": True},
            {"name": "mystery", "enabled": True},
        ]
    )
    assert [c.name for c in classifiers] == [
        DetectionMethod.KEYWORD,
        DetectionMethod.EXACT_TYPE,
        DetectionMethod.HTML_FALLBACK,
    ]


def test_build_from_settings_keeps_explicit_fallback_position():
    classifiers = build_classifiers_from_settings(
        [{"name": "html-fallback", "enabled": True}, {"name": "keyword", "enabled": True}]
    )
    assert [c.name for c in classifiers] == [
        DetectionMethod.HTML_FALLBACK,
        DetectionMethod.KEYWORD,
    ]


def test_active_classifiers_round_trip():
    set_active_classifiers([html_fallback_classifier])
    assert get_active_classifiers() == [html_fallback_classifier]
    assert get_active_pipeline().names == [DetectionMethod.HTML_FALLBACK]
