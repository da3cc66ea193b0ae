"""Keyword heuristics mapping label/name signals to semantic field types."""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional, Pattern, Sequence, Tuple

from .field_classifier import FieldClassifier
from .form_models import CandidateField, ClassifierResult, DetectionMethod, FieldType
from .signals import build_signals

WHOLE_WORD_CONFIDENCE = 1.0
PARTIAL_CONFIDENCE = 0.85

_SEPARATORS = re.compile(r"[*\-_./\\|]+")
_SPACES = re.compile(r"\s+")


@dataclass(slots=True, frozen=True)
class KeywordRule:
    field_type: FieldType
    # matched anywhere in the text
    keywords: Tuple[str, ...] = ()
    # matched only as standalone words
    words: Tuple[str, ...] = ()


KEYWORD_RULES: List[KeywordRule] = [
    KeywordRule(FieldType.CPF_CNPJ, ("cpf cnpj", "cpfcnpj", "cpf ou cnpj", "cnpj cpf")),
    KeywordRule(
        FieldType.CONFIRM_PASSWORD,
        (
            "confirm password",
            "confirmar senha",
            "confirme a senha",
            "confirme sua senha",
            "repetir senha",
            "repeat password",
            "retype password",
            "password confirmation",
            "confirmar contrasena",
            "password again",
        ),
    ),
    KeywordRule(
        FieldType.BIRTH_DATE,
        (
            "data de nascimento",
            "nascimento",
            "birth date",
            "birthdate",
            "birthday",
            "date of birth",
            "fecha de nacimiento",
            "nacimiento",
        ),
        ("dob", "dtnasc"),
    ),
    KeywordRule(
        FieldType.CREDIT_CARD_NUMBER,
        ("card number", "numero do cartao", "numero de tarjeta", "cardnumber", "cc number"),
    ),
    KeywordRule(
        FieldType.CREDIT_CARD_EXPIRATION,
        ("validade", "expiration", "expiry", "vencimento do cartao", "cc exp"),
    ),
    KeywordRule(FieldType.CREDIT_CARD_CVV, ("security code", "codigo de seguranca"), ("cvv", "cvc", "cvv2")),
    KeywordRule(FieldType.CNPJ, (), ("cnpj",)),
    KeywordRule(FieldType.CPF, (), ("cpf",)),
    KeywordRule(FieldType.RG, ("identidade",), ("rg",)),
    KeywordRule(FieldType.CNH, ("carteira de motorista", "habilitacao"), ("cnh",)),
    KeywordRule(FieldType.PIS, ("pasep",), ("pis", "nis")),
    KeywordRule(FieldType.PASSPORT, ("passport", "passaporte", "pasaporte")),
    KeywordRule(FieldType.PIX_KEY, ("chave pix",), ("pix",)),
    KeywordRule(FieldType.EMAIL, ("email", "e mail", "correo"), ("mail",)),
    KeywordRule(FieldType.WHATSAPP, ("whatsapp", "whats", "zap")),
    KeywordRule(FieldType.MOBILE, ("celular", "mobile", "movil", "cellphone"), ("cel", "cell")),
    KeywordRule(FieldType.PHONE, ("telefone", "phone", "telefono", "fone"), ("tel", "ddd")),
    KeywordRule(FieldType.CEP, (), ("cep",)),
    KeywordRule(FieldType.ZIP_CODE, ("zip code", "zipcode", "postal code", "postcode", "codigo postal"), ("zip",)),
    KeywordRule(
        FieldType.HOUSE_NUMBER,
        ("numero da casa", "numero do endereco", "house number", "street number"),
        ("numero", "num", "nro"),
    ),
    KeywordRule(FieldType.COMPLEMENT, ("complemento", "complement", "apartment", "apartamento"), ("apto", "apt")),
    KeywordRule(FieldType.NEIGHBORHOOD, ("bairro", "neighborhood", "neighbourhood", "barrio", "district")),
    KeywordRule(FieldType.STREET, ("logradouro", "street", "avenida", "calle"), ("rua", "av")),
    KeywordRule(FieldType.CITY, ("cidade", "municipio", "ciudad"), ("city", "town")),
    KeywordRule(FieldType.STATE, ("estado", "provincia", "province"), ("state", "uf", "region")),
    KeywordRule(FieldType.COUNTRY, ("country",), ("pais", "nation")),
    KeywordRule(FieldType.ADDRESS, ("endereco", "address", "direccion")),
    KeywordRule(
        FieldType.FIRST_NAME,
        ("first name", "firstname", "given name", "primeiro nome", "nombre de pila"),
        ("fname",),
    ),
    KeywordRule(
        FieldType.LAST_NAME,
        ("last name", "lastname", "surname", "sobrenome", "apellido", "family name"),
        ("lname",),
    ),
    KeywordRule(FieldType.FULL_NAME, ("full name", "fullname", "nome completo", "nombre completo")),
    KeywordRule(FieldType.COMPANY, ("empresa", "company", "razao social", "organization", "organizacao")),
    KeywordRule(FieldType.JOB_TITLE, ("cargo", "job title", "jobtitle", "occupation", "profissao", "puesto")),
    KeywordRule(FieldType.DEPARTMENT, ("departamento", "department", "setor")),
    KeywordRule(FieldType.PASSWORD, ("password", "senha", "contrasena", "passcode"), ("pwd", "pass")),
    KeywordRule(FieldType.USERNAME, ("username", "user name", "usuario", "login"), ("user",)),
    KeywordRule(FieldType.OTP, ("one time", "onetime"), ("otp", "token", "2fa")),
    KeywordRule(
        FieldType.VERIFICATION_CODE,
        ("verification code", "codigo de verificacao", "codigo de verificacion", "confirmation code"),
    ),
    KeywordRule(FieldType.COUPON, ("coupon", "cupom", "cupon", "voucher", "promo code")),
    KeywordRule(FieldType.SKU, (), ("sku",)),
    KeywordRule(FieldType.QUANTITY, ("quantidade", "quantity", "cantidad"), ("qty", "qtd")),
    KeywordRule(FieldType.PRICE, ("preco", "price", "precio")),
    KeywordRule(FieldType.AMOUNT, ("amount", "montante", "monto")),
    KeywordRule(FieldType.MONEY, ("valor", "salario", "salary", "renda", "income")),
    KeywordRule(FieldType.PRODUCT, ("produto", "product", "producto")),
    KeywordRule(FieldType.WEBSITE, ("website", "homepage", "sitio web"), ("site", "url")),
    KeywordRule(FieldType.SEARCH, ("search", "pesquisa", "buscar", "busca", "pesquisar")),
    KeywordRule(FieldType.START_DATE, ("data inicial", "data de inicio", "start date", "fecha de inicio")),
    KeywordRule(FieldType.END_DATE, ("data final", "data de termino", "end date", "fecha de fin")),
    KeywordRule(FieldType.DUE_DATE, ("data de vencimento", "vencimento", "due date")),
    KeywordRule(FieldType.DATE, (), ("data", "date", "fecha")),
    KeywordRule(FieldType.NAME, (), ("nome", "name", "nombre")),
    KeywordRule(FieldType.DESCRIPTION, ("descricao", "description", "descripcion")),
    KeywordRule(FieldType.NOTES, ("observacao", "observacoes", "notes", "notas"), ("obs",)),
    KeywordRule(FieldType.TEXT, ("mensagem", "message", "mensaje", "comentario", "comment", "feedback")),
]


def normalize_text(text: str) -> str:
    """Lowercase, drop diacritics and turn separator punctuation into spaces."""
    decomposed = unicodedata.normalize("NFD", text.lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _SPACES.sub(" ", _SEPARATORS.sub(" ", stripped)).strip()


@lru_cache(maxsize=512)
def _word_pattern(word: str) -> Pattern[str]:
    return re.compile(rf"(?<![a-z0-9]){re.escape(word)}(?![a-z0-9])")


def _match_rule(rule: KeywordRule, text: str) -> Optional[float]:
    for word in rule.words:
        if _word_pattern(word).search(text):
            return WHOLE_WORD_CONFIDENCE
    for keyword in rule.keywords:
        if _word_pattern(keyword).search(text):
            return WHOLE_WORD_CONFIDENCE
        if keyword in text:
            return PARTIAL_CONFIDENCE
    return None


def match_keywords(
    signals: str, rules: Sequence[KeywordRule] = KEYWORD_RULES
) -> Optional[ClassifierResult]:
    """Return the first rule matching ``signals``; ``None`` when nothing matches."""
    text = normalize_text(signals or "")
    if not text:
        return None
    for rule in rules:
        confidence = _match_rule(rule, text)
        if confidence is not None:
            return ClassifierResult(field_type=rule.field_type, confidence=confidence)
    return None


def _detect_keyword(field: CandidateField) -> Optional[ClassifierResult]:
    if not field.signal_text:
        field.signal_text = build_signals(field)
    return match_keywords(field.signal_text)


keyword_classifier = FieldClassifier(
    name=DetectionMethod.KEYWORD,
    detect=_detect_keyword,
)


__all__ = [
    "KeywordRule",
    "KEYWORD_RULES",
    "WHOLE_WORD_CONFIDENCE",
    "PARTIAL_CONFIDENCE",
    "normalize_text",
    "match_keywords",
    "keyword_classifier",
]
