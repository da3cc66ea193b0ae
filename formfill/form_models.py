"""Data models shared across field detection helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from playwright.async_api import ElementHandle


class FieldType(str, Enum):
    CPF = "cpf"
    CNPJ = "cnpj"
    CPF_CNPJ = "cpf-cnpj"
    RG = "rg"
    PASSPORT = "passport"
    CNH = "cnh"
    PIS = "pis"
    NATIONAL_ID = "national-id"
    TAX_ID = "tax-id"
    NAME = "name"
    FIRST_NAME = "first-name"
    LAST_NAME = "last-name"
    FULL_NAME = "full-name"
    BIRTH_DATE = "birth-date"
    EMAIL = "email"
    PHONE = "phone"
    MOBILE = "mobile"
    WHATSAPP = "whatsapp"
    WEBSITE = "website"
    URL = "url"
    ADDRESS = "address"
    STREET = "street"
    HOUSE_NUMBER = "house-number"
    COMPLEMENT = "complement"
    NEIGHBORHOOD = "neighborhood"
    CITY = "city"
    STATE = "state"
    COUNTRY = "country"
    CEP = "cep"
    ZIP_CODE = "zip-code"
    DATE = "date"
    START_DATE = "start-date"
    END_DATE = "end-date"
    DUE_DATE = "due-date"
    MONEY = "money"
    PRICE = "price"
    AMOUNT = "amount"
    CREDIT_CARD_NUMBER = "credit-card-number"
    CREDIT_CARD_EXPIRATION = "credit-card-expiration"
    CREDIT_CARD_CVV = "credit-card-cvv"
    PIX_KEY = "pix-key"
    NUMBER = "number"
    COMPANY = "company"
    JOB_TITLE = "job-title"
    DEPARTMENT = "department"
    USERNAME = "username"
    PASSWORD = "password"
    CONFIRM_PASSWORD = "confirm-password"
    OTP = "otp"
    VERIFICATION_CODE = "verification-code"
    PRODUCT = "product"
    SKU = "sku"
    QUANTITY = "quantity"
    COUPON = "coupon"
    TEXT = "text"
    DESCRIPTION = "description"
    NOTES = "notes"
    SEARCH = "search"
    SELECT = "select"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    FILE = "file"
    UNKNOWN = "unknown"


class FieldCategory(str, Enum):
    DOCUMENT = "document"
    PERSONAL = "personal"
    CONTACT = "contact"
    ADDRESS = "address"
    FINANCIAL = "financial"
    PROFESSIONAL = "professional"
    AUTHENTICATION = "authentication"
    ECOMMERCE = "ecommerce"
    GENERIC = "generic"
    SYSTEM = "system"
    UNKNOWN = "unknown"


class DetectionMethod(str, Enum):
    EXACT_TYPE = "exact-type"
    KEYWORD = "keyword"
    SIMILARITY = "similarity"
    ORACLE = "oracle"
    HTML_FALLBACK = "html-fallback"
    CUSTOM_SELECT = "custom-select"
    INTERACTIVE = "interactive"
    USER_OVERRIDE = "user-override"


GENERIC_TYPES: FrozenSet[FieldType] = frozenset({FieldType.TEXT, FieldType.UNKNOWN})

FIELD_TYPES_BY_CATEGORY: Dict[FieldCategory, List[FieldType]] = {
    FieldCategory.DOCUMENT: [
        FieldType.CPF,
        FieldType.CNPJ,
        FieldType.CPF_CNPJ,
        FieldType.RG,
        FieldType.PASSPORT,
        FieldType.CNH,
        FieldType.PIS,
        FieldType.NATIONAL_ID,
        FieldType.TAX_ID,
    ],
    FieldCategory.PERSONAL: [
        FieldType.NAME,
        FieldType.FIRST_NAME,
        FieldType.LAST_NAME,
        FieldType.FULL_NAME,
        FieldType.BIRTH_DATE,
    ],
    FieldCategory.CONTACT: [
        FieldType.EMAIL,
        FieldType.PHONE,
        FieldType.MOBILE,
        FieldType.WHATSAPP,
        FieldType.WEBSITE,
        FieldType.URL,
    ],
    FieldCategory.ADDRESS: [
        FieldType.ADDRESS,
        FieldType.STREET,
        FieldType.HOUSE_NUMBER,
        FieldType.COMPLEMENT,
        FieldType.NEIGHBORHOOD,
        FieldType.CITY,
        FieldType.STATE,
        FieldType.COUNTRY,
        FieldType.CEP,
        FieldType.ZIP_CODE,
    ],
    FieldCategory.FINANCIAL: [
        FieldType.MONEY,
        FieldType.PRICE,
        FieldType.AMOUNT,
        FieldType.CREDIT_CARD_NUMBER,
        FieldType.CREDIT_CARD_EXPIRATION,
        FieldType.CREDIT_CARD_CVV,
        FieldType.PIX_KEY,
        FieldType.NUMBER,
    ],
    FieldCategory.PROFESSIONAL: [
        FieldType.JOB_TITLE,
        FieldType.DEPARTMENT,
    ],
    FieldCategory.AUTHENTICATION: [
        FieldType.USERNAME,
        FieldType.PASSWORD,
        FieldType.CONFIRM_PASSWORD,
        FieldType.OTP,
        FieldType.VERIFICATION_CODE,
    ],
    FieldCategory.ECOMMERCE: [
        FieldType.COMPANY,
        FieldType.PRODUCT,
        FieldType.SKU,
        FieldType.QUANTITY,
        FieldType.COUPON,
    ],
    FieldCategory.GENERIC: [
        FieldType.DATE,
        FieldType.START_DATE,
        FieldType.END_DATE,
        FieldType.DUE_DATE,
        FieldType.TEXT,
        FieldType.DESCRIPTION,
        FieldType.NOTES,
    ],
    FieldCategory.SYSTEM: [
        FieldType.SEARCH,
        FieldType.SELECT,
        FieldType.CHECKBOX,
        FieldType.RADIO,
        FieldType.FILE,
    ],
}


def infer_category_from_type(field_type: FieldType) -> FieldCategory:
    for category, types in FIELD_TYPES_BY_CATEGORY.items():
        if field_type in types:
            return category
    return FieldCategory.UNKNOWN


def is_generic(field_type: FieldType) -> bool:
    return field_type in GENERIC_TYPES


def parse_field_type(value: object) -> Optional[FieldType]:
    """Return the FieldType named by ``value`` or ``None`` when it is not one."""
    if isinstance(value, FieldType):
        return value
    try:
        return FieldType(str(value).strip().lower())
    except ValueError:
        return None


@dataclass(slots=True, frozen=True)
class ClassifierResult:
    field_type: FieldType
    confidence: float


@dataclass(slots=True, frozen=True)
class PipelineResult:
    field_type: FieldType
    method: DetectionMethod
    confidence: float
    duration_ms: float = 0.0


@dataclass(slots=True)
class OptionMetadata:
    label: str
    value: str


@dataclass(slots=True)
class CandidateField:
    """One interactive control found on the page.

    ``element`` is owned by the page and never copied. ``selector`` re-resolves
    to it for the lifetime of the page, ``dom_path`` is the full structural path
    used as the node identity inside a single scan.
    """

    element: Optional[ElementHandle]
    selector: str
    dom_path: str
    tag: str
    input_type: Optional[str] = None
    field_type: FieldType = FieldType.UNKNOWN
    category: FieldCategory = FieldCategory.UNKNOWN
    label: Optional[str] = None
    name: Optional[str] = None
    identifier: Optional[str] = None
    placeholder: Optional[str] = None
    autocomplete: Optional[str] = None
    required: bool = False
    options: List[OptionMetadata] = field(default_factory=list)
    pattern: Optional[str] = None
    max_length: Optional[int] = None
    min_length: Optional[int] = None
    html_snippet: Optional[str] = None
    context_html: Optional[str] = None
    order: int = 0
    signal_text: str = ""
    adapter_name: Optional[str] = None
    detection_method: Optional[DetectionMethod] = None
    detection_confidence: Optional[float] = None
    detection_duration_ms: Optional[float] = None

    def canonical_name(self) -> str:
        for candidate in (
            self.label,
            self.name,
            self.identifier,
            self.placeholder,
        ):
            if candidate:
                return candidate
        return f"field_{self.order}"

    def apply_result(self, result: PipelineResult) -> None:
        self.field_type = result.field_type
        self.category = infer_category_from_type(result.field_type)
        self.detection_method = result.method
        self.detection_confidence = result.confidence
        self.detection_duration_ms = result.duration_ms

    def to_dict(self) -> Dict[str, object]:
        return {
            "selector": self.selector,
            "tag": self.tag,
            "input_type": self.input_type,
            "field_type": self.field_type.value,
            "category": self.category.value,
            "label": self.label,
            "name": self.name,
            "id": self.identifier,
            "placeholder": self.placeholder,
            "autocomplete": self.autocomplete,
            "required": self.required,
            "signals": self.signal_text,
            "adapter": self.adapter_name,
            "method": self.detection_method.value if self.detection_method else None,
            "confidence": self.detection_confidence,
            "duration_ms": self.detection_duration_ms,
        }


__all__ = [
    "FieldType",
    "FieldCategory",
    "DetectionMethod",
    "GENERIC_TYPES",
    "FIELD_TYPES_BY_CATEGORY",
    "infer_category_from_type",
    "is_generic",
    "parse_field_type",
    "ClassifierResult",
    "PipelineResult",
    "OptionMetadata",
    "CandidateField",
]
