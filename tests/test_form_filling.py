import pytest

from conftest import FakeElement, FakePage, make_custom_field, make_field
from formfill.adapters.base import AdapterDescriptor
from formfill.adapters.registry import AdapterRegistry
from formfill.form_filling import fill_fields, mask_value, sample_value
from formfill.form_models import FieldType, OptionMetadata


def _refusing_registry():
    async def fill(node, value):
        return False

    async def build(node, info):
        return None

    return AdapterRegistry(
        [AdapterDescriptor("antd-select", ".ant-select", lambda info: True, build, fill)]
    )


@pytest.mark.asyncio
async def test_fills_native_text_select_and_checkbox():
    text = FakeElement()
    select = FakeElement()
    checkbox = FakeElement(checked=False)
    fields = [
        make_field(element=text, selector="#name", label="Nome", field_type=FieldType.NAME),
        make_field(
            element=select,
            selector="#uf",
            tag="select",
            input_type=None,
            options=[OptionMetadata("Selecione", ""), OptionMetadata("São Paulo", "SP")],
        ),
        make_field(element=checkbox, selector="#terms", input_type="checkbox"),
    ]
    values = {"#name": "Maria", "#uf": "são paulo", "#terms": True}

    results = await fill_fields(FakePage(), fields, lambda field: values[field.selector])

    assert [result.success for result in results] == [True, True, True]
    assert text.filled == ["Maria"]
    assert select.selected == [{"value": "SP", "index": None}]
    assert checkbox.checked is True


@pytest.mark.asyncio
async def test_unknown_option_falls_back_to_first_valid_index():
    select = FakeElement()
    field = make_field(
        element=select,
        tag="select",
        input_type=None,
        options=[OptionMetadata("Selecione", ""), OptionMetadata("Rio", "RJ")],
    )
    await fill_fields(FakePage(), [field], lambda field: "Atlantis")
    assert select.selected == [{"value": None, "index": 1}]


@pytest.mark.asyncio
async def test_failures_are_reported_and_the_pass_continues():
    async def generate(field):
        if field.selector == "#boom":
            raise RuntimeError("generator crashed")
        if field.selector == "#none":
            return None
        return "value"

    ok = FakeElement()
    fields = [
        make_field(element=FakeElement(), selector="#boom"),
        make_field(element=FakeElement(), selector="#none"),
        make_custom_field("Estado", FieldType.SELECT, "body > div"),
        make_field(element=ok, selector="#ok"),
    ]

    results = await fill_fields(FakePage(), fields, generate, registry=_refusing_registry())

    assert [result.success for result in results] == [False, False, False, True]
    assert results[0].error == "generator crashed"
    assert results[1].error == "no value generated"
    assert results[2].adapter == "antd-select"
    assert ok.filled == ["value"]


@pytest.mark.asyncio
async def test_read_only_optional_field_is_skipped_quietly():
    element = FakeElement(editable=False)
    [result] = await fill_fields(FakePage(), [make_field(element=element)], lambda f: "x")
    assert result.success is True
    assert element.filled == []


def test_sample_values():
    assert sample_value(make_field(field_type=FieldType.EMAIL)) == "john.doe@example.com"
    assert sample_value(make_field(field_type=FieldType.DESCRIPTION)) == "autofilled"
    select = make_field(options=[OptionMetadata("-", ""), OptionMetadata("Sim", "1")])
    assert sample_value(select) == "1"


def test_mask_value():
    assert mask_value(FieldType.PASSWORD, "hunter2") == "***"
    assert mask_value(FieldType.TEXT, "short") == "short"
    assert mask_value(FieldType.TEXT, "a much longer free text value") == "a much l…"
    assert mask_value(FieldType.CHECKBOX, True) == "true"
    assert mask_value(FieldType.TEXT, None) == ""
