"""Language helpers for the platform's numeric language identifiers."""

from __future__ import annotations

LTR = "ltr"
RTL = "rtl"

DEFAULT_LANGUAGE_CODE = "en"

LANGUAGE_CODES = {
    1: "en",
    2: "fr",
    3: "it",
    4: "de",
    5: "es",
    6: "pt-PT",
    7: "ru",
    8: "zh-Hant",
    9: "ja",
    10: "ko",
    11: "en",  # "Other"
    12: "zh-Hans",
    13: "nl",
    14: "pl",
    15: "ro",
    16: "ar",
    17: "he",
    18: "fil",
    19: "vi",
    20: "id",
    21: "hi",
    22: "ms",
    23: "tr",
    24: "cs",
    25: "ml",
    26: "sv",
    27: "no",
    28: "hu",
    29: "da",
    30: "el",
    31: "fa",
    32: "th",
    33: "is",
    34: "fi",
    35: "et",
    36: "lv",
    37: "lt",
    38: "ca",
    39: "bs",
    40: "sr",
    41: "hr",
    42: "sl",
    43: "bg",
    44: "sk",
    45: "be",
    46: "uk",
    47: "bn",
    48: "ur",
    49: "ta",
    50: "sw",
    51: "af",
    52: "pt-BR",
    53: "gu",
    54: "or",
    55: "pa",
    56: "as",
    57: "mr",
}

RTL_LANGUAGE_IDS = frozenset({16, 17, 31, 48})
RTL_LANGUAGE_CODES = frozenset({"ar", "he", "fa", "ur"})


def language_code(language_id: int) -> str:
    """Map a platform language id to an IETF language tag (``en`` if unknown)."""

    return LANGUAGE_CODES.get(language_id, DEFAULT_LANGUAGE_CODE)


def direction_for_language_id(language_id: int) -> str:
    return RTL if language_id in RTL_LANGUAGE_IDS else LTR


def direction_for_language_code(code: str) -> str:
    return RTL if code in RTL_LANGUAGE_CODES else LTR


__all__ = [
    "LTR",
    "RTL",
    "direction_for_language_code",
    "direction_for_language_id",
    "language_code",
]
