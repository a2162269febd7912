import re
import unicodedata
from typing import Optional


def normalize_spaces(value: object) -> str:
    return re.sub(r"\s+", " ", str(value or "").strip())


def normalize_lookup_text(value: object) -> str:
    normalized = normalize_spaces(value).lower()
    without_accents = unicodedata.normalize("NFD", normalized)
    without_accents = "".join(ch for ch in without_accents if unicodedata.category(ch) != "Mn")
    without_accents = without_accents.replace("-", " ").replace("_", " ")
    return re.sub(r"\s+", " ", without_accents).strip()


def clean_optional_text(value: object) -> Optional[str]:
    text = normalize_spaces(value)
    return text or None
