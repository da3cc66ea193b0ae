"""Normalised signal text shared by every text-based classifier."""

from __future__ import annotations

from typing import List

from .form_models import CandidateField


def build_signals(field: CandidateField) -> str:
    pieces: List[str] = []
    for value in (
        field.label,
        field.name,
        field.identifier,
        field.placeholder,
        field.autocomplete,
    ):
        if value:
            pieces.append(value.lower())
    return " ".join(pieces)


__all__ = ["build_signals"]
