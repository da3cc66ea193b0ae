import pytest

from conftest import FakeElement, FakePage, make_probe
from formfill.form_detection import (
    FIELD_QUERY,
    FIELD_PROBE_SCRIPT,
    build_native_field,
    collect_native_fields,
    detect_native_fields_async,
    is_fillable,
    scan_native_fields,
    stream_native_fields,
)
from formfill.form_models import DetectionMethod, FieldType


def _page(*probes):
    return FakePage({FIELD_QUERY: [FakeElement(probe) for probe in probes]})


@pytest.mark.parametrize(
    "overrides",
    [
        {"type": "hidden"},
        {"type": "submit"},
        {"type": "file"},
        {"disabled": True},
        {"visible": False},
        {"inCustomWidget": True},
        {"tag": "button"},
    ],
)
def test_is_fillable_rejects(overrides):
    assert not is_fillable(make_probe(**overrides))


def test_is_fillable_accepts_visible_text_input():
    assert is_fillable(make_probe())
    assert is_fillable(make_probe(tag="select", type="select-one"))


def test_build_native_field_maps_probe():
    probe = make_probe(
        label="Estado",
        name="uf",
        required=True,
        maxLength=2,
        options=[{"label": "São Paulo", "value": "SP"}, {"label": "", "value": ""}],
    )
    field = build_native_field(None, probe, order=3)
    assert field.label == "Estado"
    assert field.required is True
    assert field.max_length == 2
    assert [opt.value for opt in field.options] == ["SP", ""]
    assert field.order == 3
    assert field.signal_text == "estado uf"
    assert field.field_type is FieldType.UNKNOWN


@pytest.mark.asyncio
async def test_collect_filters_and_dedupes_in_document_order():
    page = _page(
        make_probe(selector="#a", path="p > a", label="Nome"),
        make_probe(selector="#hidden", path="p > h", type="hidden"),
        make_probe(selector="#b", path="p > b", label="E-mail"),
        make_probe(selector="#a2", path="p > a"),
        make_probe(selector="#w", path="p > w", inCustomWidget=True),
    )
    fields = await collect_native_fields(page)
    assert [field.selector for field in fields] == ["#a", "#b"]
    assert [field.order for field in fields] == [0, 1]
    assert all(field.field_type is FieldType.UNKNOWN for field in fields)


@pytest.mark.asyncio
async def test_probe_failure_skips_only_that_element():
    class Exploding(FakeElement):
        async def evaluate(self, script, arg=None):
            raise RuntimeError("detached")

    page = FakePage(
        {FIELD_QUERY: [Exploding(), FakeElement(make_probe(selector="#ok", path="p > ok"))]}
    )
    fields = await collect_native_fields(page)
    assert [field.selector for field in fields] == ["#ok"]


@pytest.mark.asyncio
async def test_scan_native_fields_email_input():
    page = _page(make_probe(type="email", selector="#email", path="p > email"))
    [field] = await scan_native_fields(page)
    assert field.field_type is FieldType.EMAIL
    assert field.detection_method is DetectionMethod.EXACT_TYPE
    assert field.detection_confidence == 1.0


@pytest.mark.asyncio
async def test_access_patterns_share_order():
    probes = [
        make_probe(selector="#cpf", path="p > cpf", label="CPF"),
        make_probe(selector="#city", path="p > city", label="Cidade"),
        make_probe(selector="#tel", path="p > tel", type="tel"),
    ]
    scanned = await scan_native_fields(_page(*probes))
    listed = await detect_native_fields_async(_page(*probes))
    streamed = [field async for field in stream_native_fields(_page(*probes))]

    expected = ["#cpf", "#city", "#tel"]
    assert [f.selector for f in scanned] == expected
    assert [f.selector for f in listed] == expected
    assert [f.selector for f in streamed] == expected
    assert [f.field_type for f in streamed] == [FieldType.CPF, FieldType.CITY, FieldType.PHONE]


def test_field_script_reads_the_reflected_input_type():
    # the property maps type="foo" and a missing attribute to "text"
    assert "tag === 'input' ? el.type" in FIELD_PROBE_SCRIPT
