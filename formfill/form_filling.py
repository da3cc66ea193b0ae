"""Apply generated values to detected fields."""

from __future__ import annotations

import inspect
import logging
from dataclasses import asdict, dataclass
from typing import Awaitable, Callable, List, Optional, Sequence, Union

from playwright.async_api import ElementHandle, Page

from .adapters.registry import DEFAULT_REGISTRY, AdapterRegistry
from .form_models import CandidateField, FieldType, OptionMetadata

FillValue = Union[str, bool, None]
ValueGenerator = Callable[[CandidateField], Union[FillValue, Awaitable[FillValue]]]

GENERIC_PLACEHOLDER = "autofilled"
TRUTHY_VALUES = {"true", "1", "on", "yes", "sim"}

SAMPLE_VALUES = {
    FieldType.EMAIL: "john.doe@example.com",
    FieldType.PHONE: "+5511987654321",
    FieldType.MOBILE: "+5511987654321",
    FieldType.WHATSAPP: "+5511987654321",
    FieldType.NAME: "John Doe",
    FieldType.FULL_NAME: "John Doe",
    FieldType.FIRST_NAME: "John",
    FieldType.LAST_NAME: "Doe",
    FieldType.CPF: "529.982.247-25",
    FieldType.CNPJ: "11.222.333/0001-81",
    FieldType.CEP: "01310-100",
    FieldType.ZIP_CODE: "10001",
    FieldType.DATE: "2024-01-15",
    FieldType.BIRTH_DATE: "1990-05-20",
    FieldType.NUMBER: "42",
    FieldType.PASSWORD: "Str0ng!Passw0rd",
    FieldType.CONFIRM_PASSWORD: "Str0ng!Passw0rd",
    FieldType.WEBSITE: "https://example.com",
    FieldType.URL: "https://example.com",
    FieldType.CITY: "Sao Paulo",
    FieldType.STATE: "SP",
    FieldType.COUNTRY: "Brasil",
    FieldType.COMPANY: "Example Ltda",
    FieldType.CHECKBOX: "true",
}

SENSITIVE_TYPES = {
    FieldType.EMAIL,
    FieldType.PASSWORD,
    FieldType.CONFIRM_PASSWORD,
    FieldType.CREDIT_CARD_NUMBER,
    FieldType.CREDIT_CARD_CVV,
    FieldType.OTP,
    FieldType.CPF,
    FieldType.CNPJ,
}


@dataclass(slots=True)
class FieldFillResult:
    selector: str
    field_name: str
    field_type: str
    adapter: Optional[str]
    success: bool
    preview: str
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


def sample_value(field: CandidateField) -> str:
    """Fixed example value per type, for demos and smoke runs."""
    if field.options:
        for option in field.options:
            if option.value:
                return option.value
    return SAMPLE_VALUES.get(field.field_type, GENERIC_PLACEHOLDER)


async def fill_fields(
    page: Page,
    fields: Sequence[CandidateField],
    generate: ValueGenerator,
    registry: Optional[AdapterRegistry] = None,
    logger: Optional[logging.Logger] = None,
) -> List[FieldFillResult]:
    """Fill every field; a failing field is reported and the pass continues."""
    logger = logger or logging.getLogger(__name__)
    registry = registry or DEFAULT_REGISTRY
    results: List[FieldFillResult] = []
    for field in fields:
        field_name = field.canonical_name()
        value: FillValue = None
        try:
            value = generate(field)
            if inspect.isawaitable(value):
                value = await value
            if value is None:
                results.append(_result(field, field_name, None, False, "no value generated"))
                continue
            if field.adapter_name:
                success = await registry.fill(field, str(value), page)
                error = None if success else "adapter could not fill"
            else:
                await _fill_native(page, field, value, logger)
                success, error = True, None
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to fill %s: %s", field_name, exc)
            success, error = False, str(exc)
        else:
            logger.debug(
                "Filled %s (%s) success=%s", field_name, field.field_type.value, success
            )
        results.append(_result(field, field_name, value, success, error))
    filled = sum(1 for result in results if result.success)
    logger.info("Filled %s/%s fields", filled, len(results))
    return results


def _result(
    field: CandidateField,
    field_name: str,
    value: FillValue,
    success: bool,
    error: Optional[str],
) -> FieldFillResult:
    return FieldFillResult(
        selector=field.selector,
        field_name=field_name,
        field_type=field.field_type.value,
        adapter=field.adapter_name,
        success=success,
        preview=mask_value(field.field_type, value),
        error=error,
    )


async def _resolve_handle(page: Page, field: CandidateField) -> ElementHandle:
    if field.element is not None:
        return field.element
    handle = await page.query_selector(field.selector)
    if handle is None:
        raise ValueError(f"Element {field.selector} not found")
    return handle


def _match_option(options: Sequence[OptionMetadata], value: str) -> Optional[OptionMetadata]:
    wanted = value.strip().lower()
    for option in options:
        if option.value == value:
            return option
    for option in options:
        if option.label.strip().lower() == wanted:
            return option
    return None


async def _fill_native(
    page: Page, field: CandidateField, value: FillValue, logger: logging.Logger
) -> None:
    handle = await _resolve_handle(page, field)
    tag = (field.tag or "").lower()
    input_type = (field.input_type or "text").lower()

    if tag == "select":
        option = _match_option(field.options, str(value))
        if option is not None:
            await handle.select_option(value=option.value)
        else:
            valid = [index for index, opt in enumerate(field.options) if opt.value]
            await handle.select_option(index=valid[0] if valid else 0)
        return

    if input_type in {"checkbox", "radio"}:
        should_check = input_type == "radio" or _truthy(value)
        if await handle.is_checked() == should_check:
            return
        try:
            await handle.set_checked(should_check)
        except Exception as exc:  # noqa: BLE001
            logger.debug("set_checked failed on %s, forcing: %s", field.selector, exc)
            await handle.evaluate(
                """
                (el, checked) => {
                    el.checked = checked;
                    el.dispatchEvent(new Event('input', { bubbles: true }));
                    el.dispatchEvent(new Event('change', { bubbles: true }));
                }
                """,
                should_check,
            )
        return

    if not await handle.is_editable():
        if field.required:
            raise ValueError("Field not editable")
        return

    await handle.fill(str(value))


def _truthy(value: FillValue) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUTHY_VALUES


def mask_value(field_type: FieldType, value: FillValue) -> str:
    if value is None:
        return ""
    if field_type in SENSITIVE_TYPES:
        return "***"
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value)
    if len(text) > 18:
        return f"{text[:8]}…"
    return text


__all__ = [
    "FieldFillResult",
    "SAMPLE_VALUES",
    "sample_value",
    "fill_fields",
    "mask_value",
]
