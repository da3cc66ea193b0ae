import asyncio

import pytest

from conftest import FakePage, make_field
from formfill.dom_watcher import (
    DISCONNECT_SCRIPT,
    OBSERVER_SCRIPT,
    DomWatcher,
    WatcherConfig,
    build_signature,
    is_relevant_mutation,
)
from formfill.form_models import FieldType

DEBOUNCE_MS = 20
SETTLE = DEBOUNCE_MS * 5 / 1000.0

ADDED = {"type": "childList", "added": 1, "removed": 0, "ownUi": False}


def _field(selector, field_type=FieldType.TEXT):
    field = make_field(selector=selector, dom_path=f"body > {selector}")
    field.field_type = field_type
    return field


class Scanner:
    def __init__(self, *fields):
        self.fields = list(fields)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return list(self.fields)


async def _watch(page, scanner, callback=None, auto_refill=False, refill=None):
    watcher = DomWatcher(page, scan=scanner, refill=refill)
    await watcher.start(callback, auto_refill=auto_refill, config=WatcherConfig(DEBOUNCE_MS))
    return watcher


def test_signature_is_order_independent():
    a, b = _field("#a"), _field("#b", FieldType.EMAIL)
    assert build_signature([a, b]) == build_signature([b, a]) == "#a:text|#b:email"


@pytest.mark.parametrize(
    "record,relevant",
    [
        (ADDED, True),
        ({"type": "childList", "added": 0, "removed": 0}, False),
        ({**ADDED, "ownUi": True}, False),
        ({"type": "attributes", "attributeName": "style", "formContent": True}, True),
        ({"type": "attributes", "attributeName": "style", "formContent": False}, False),
        ({"type": "attributes", "attributeName": "data-x", "formContent": True}, False),
        ({"type": "characterData"}, False),
    ],
)
def test_relevance_filter(record, relevant):
    assert is_relevant_mutation(record) is relevant


@pytest.mark.asyncio
async def test_burst_of_mutations_fires_once_with_delta():
    page = FakePage()
    scanner = Scanner(_field("#a"))
    deltas = []
    watcher = await _watch(page, scanner, deltas.append)

    scanner.fields = [_field("#a"), _field("#b"), _field("#c")]
    for _ in range(5):
        page.emit([ADDED])
    await asyncio.sleep(SETTLE)

    assert deltas == [2]
    assert watcher.last_signature == "#a:text|#b:text|#c:text"
    watcher.stop()


@pytest.mark.asyncio
async def test_unchanged_signature_does_not_notify():
    page = FakePage()
    scanner = Scanner(_field("#a"))
    deltas = []
    watcher = await _watch(page, scanner, deltas.append)

    page.emit([ADDED])
    await asyncio.sleep(SETTLE)

    assert deltas == []
    assert scanner.calls == 2
    watcher.stop()


@pytest.mark.asyncio
async def test_type_change_notifies_with_zero_delta():
    page = FakePage()
    scanner = Scanner(_field("#a"))
    deltas = []
    watcher = await _watch(page, scanner, deltas.append)

    scanner.fields = [_field("#a", FieldType.CPF)]
    page.emit([ADDED])
    await asyncio.sleep(SETTLE)

    assert deltas == [0]
    watcher.stop()


@pytest.mark.asyncio
async def test_async_callback_is_awaited():
    page = FakePage()
    scanner = Scanner()
    seen = asyncio.Event()

    async def callback(delta):
        seen.set()

    watcher = await _watch(page, scanner, callback)
    scanner.fields = [_field("#a")]
    page.emit([ADDED])
    await asyncio.wait_for(seen.wait(), timeout=1)
    watcher.stop()


@pytest.mark.asyncio
async def test_irrelevant_and_own_ui_mutations_are_ignored():
    page = FakePage()
    scanner = Scanner(_field("#a"))
    deltas = []
    watcher = await _watch(page, scanner, deltas.append)

    scanner.fields = [_field("#a"), _field("#b")]
    page.emit([{**ADDED, "ownUi": True}, {"type": "attributes", "attributeName": "title"}])
    await asyncio.sleep(SETTLE)

    assert deltas == []
    assert scanner.calls == 1
    watcher.stop()


@pytest.mark.asyncio
async def test_mutations_during_fill_are_ignored():
    page = FakePage()
    scanner = Scanner(_field("#a"))
    deltas = []
    watcher = await _watch(page, scanner, deltas.append)

    watcher.set_filling_in_progress(True)
    scanner.fields = [_field("#a"), _field("#b")]
    page.emit([ADDED])
    await asyncio.sleep(SETTLE)

    assert deltas == []
    watcher.stop()


@pytest.mark.asyncio
async def test_auto_refill_only_fills_new_fields():
    page = FakePage()
    scanner = Scanner(_field("#a"))
    refilled = []

    async def refill(fields):
        refilled.append([field.selector for field in fields])

    watcher = await _watch(page, scanner, auto_refill=True, refill=refill)
    scanner.fields = [_field("#a"), _field("#b")]
    page.emit([ADDED])
    await asyncio.sleep(SETTLE)

    assert refilled == [["#b"]]
    assert not watcher._filling
    watcher.stop()


@pytest.mark.asyncio
async def test_no_refill_on_removal():
    page = FakePage()
    scanner = Scanner(_field("#a"), _field("#b"))
    refilled, deltas = [], []

    async def refill(fields):
        refilled.append(fields)

    watcher = await _watch(page, scanner, deltas.append, auto_refill=True, refill=refill)
    scanner.fields = [_field("#a")]
    page.emit([{"type": "childList", "added": 0, "removed": 1}])
    await asyncio.sleep(SETTLE)

    assert deltas == [-1]
    assert refilled == []
    watcher.stop()


@pytest.mark.asyncio
async def test_start_twice_is_a_no_op():
    page = FakePage()
    scanner = Scanner()
    watcher = await _watch(page, scanner)
    await watcher.start()

    assert watcher.is_active()
    assert len(page.bindings) == 1
    assert scanner.calls == 1
    watcher.stop()


@pytest.mark.asyncio
async def test_stop_cancels_pending_flush_and_is_idempotent():
    page = FakePage()
    scanner = Scanner(_field("#a"))
    deltas = []
    watcher = await _watch(page, scanner, deltas.append)

    scanner.fields = [_field("#a"), _field("#b")]
    page.emit([ADDED])
    watcher.stop()
    watcher.stop()
    await asyncio.sleep(SETTLE)

    assert not watcher.is_active()
    assert deltas == []
    assert scanner.calls == 1


@pytest.mark.asyncio
async def test_restart_reuses_binding():
    page = FakePage()
    scanner = Scanner(_field("#a"))
    deltas = []
    watcher = await _watch(page, scanner, deltas.append)
    watcher.stop()
    await watcher.start(deltas.append, config=WatcherConfig(DEBOUNCE_MS))

    scanner.fields = [_field("#a"), _field("#b")]
    page.emit([ADDED])
    await asyncio.sleep(SETTLE)

    assert len(page.bindings) == 1
    assert deltas == [1]
    watcher.stop()


@pytest.mark.asyncio
async def test_failed_callback_does_not_stop_watching():
    page = FakePage()
    scanner = Scanner()
    calls = []

    def callback(delta):
        calls.append(delta)
        raise RuntimeError("ui gone")

    watcher = await _watch(page, scanner, callback)
    scanner.fields = [_field("#a")]
    page.emit([ADDED])
    await asyncio.sleep(SETTLE)
    scanner.fields = [_field("#a"), _field("#b")]
    page.emit([ADDED])
    await asyncio.sleep(SETTLE)

    assert calls == [1, 1]
    assert watcher.is_active()
    watcher.stop()


@pytest.mark.asyncio
async def test_immediate_restart_disconnects_before_observing_again():
    page = FakePage()
    scanner = Scanner(_field("#a"))
    watcher = await _watch(page, scanner)
    watcher.stop()
    await watcher.start(config=WatcherConfig(DEBOUNCE_MS))

    scripts = [script for script, _ in page.evaluated]
    assert scripts == [OBSERVER_SCRIPT, DISCONNECT_SCRIPT, OBSERVER_SCRIPT]
    assert watcher.is_active()
    watcher.stop()
