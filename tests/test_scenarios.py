"""Whole-page flows over page doubles."""

import asyncio

import pytest

from conftest import FakeElement, FakePage, make_probe
from formfill.adapters.registry import AdapterRegistry
from formfill.adapters.select2 import select2_adapter
from formfill.dom_watcher import DomWatcher, WatcherConfig
from formfill.form_detection import FIELD_QUERY
from formfill.form_models import DetectionMethod, FieldType
from formfill.reconciliation import detect_all_fields, detect_all_fields_async


@pytest.mark.asyncio
async def test_single_email_input():
    page = FakePage({FIELD_QUERY: [FakeElement(make_probe(type="email", selector="#e"))]})
    [field] = await detect_all_fields(page, registry=AdapterRegistry([]))
    assert field.field_type is FieldType.EMAIL
    assert field.detection_method is DetectionMethod.EXACT_TYPE
    assert field.detection_confidence == 1.0


@pytest.mark.asyncio
async def test_unclassifiable_fields_end_low_confidence():
    wrapper_path = "html > body > span.select2"
    wrapper = FakeElement(
        probe=make_probe(tag="select", type=None, selector="#s2", path=wrapper_path, label="Qwerty"),
        identity={"tag": "span", "classes": ["select2", "select2-container"], "path": wrapper_path},
    )
    native = FakeElement(make_probe(selector="#q", path="html > body > input", label="Zxcvb"))
    page = FakePage({FIELD_QUERY: [native], select2_adapter.selector: [wrapper]})

    fields = await detect_all_fields_async(page, registry=AdapterRegistry([select2_adapter]))

    by_selector = {field.selector: field for field in fields}
    plain, custom = by_selector["#q"], by_selector["#s2"]
    assert plain.field_type is FieldType.UNKNOWN
    assert plain.detection_method is DetectionMethod.HTML_FALLBACK
    assert plain.detection_confidence <= 0.5
    assert custom.field_type is FieldType.UNKNOWN
    assert custom.detection_method is DetectionMethod.CUSTOM_SELECT
    assert custom.detection_confidence <= 0.5


@pytest.mark.asyncio
async def test_two_inputs_appearing_fire_one_plus_two_notification():
    first = FakeElement(make_probe(selector="#a", path="body > a", label="Nome"))
    page = FakePage({FIELD_QUERY: [first]})
    deltas = []
    watcher = DomWatcher(page, scan=lambda: detect_all_fields(page, registry=AdapterRegistry([])))
    await watcher.start(deltas.append, config=WatcherConfig(debounce_ms=20))

    page.selectors[FIELD_QUERY] = [
        first,
        FakeElement(make_probe(selector="#b", path="body > b", label="CPF")),
        FakeElement(make_probe(selector="#c", path="body > c", type="email")),
    ]
    page.emit([{"type": "childList", "added": 1, "removed": 0, "ownUi": False}])
    page.emit([{"type": "childList", "added": 1, "removed": 0, "ownUi": False}])
    await asyncio.sleep(0.15)

    assert deltas == [2]
    watcher.stop()
