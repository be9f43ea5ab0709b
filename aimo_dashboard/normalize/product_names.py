"""Display formatting for raw product names.

Upstream product names look like ``"Valio kevytmaito 1 | ESL"``: a lower-case
name with an optional size token, followed by an optional pipe-delimited
attribute list.  ``format_product_name`` turns that into
``"Valio Kevytmaito 1L (ESL)"``.
"""

import re

SIZE_PATTERN = re.compile(r"(\d+(?:[.,]\d+)?)(?:\s*(l|g|kg|dl|ml))?\b", re.IGNORECASE)
ATTRIBUTE_SPLIT_PATTERN = re.compile(r"[\s,]+")
WORD_SPLIT_PATTERN = re.compile(r"\s+")

ACRONYMS = frozenset({"UHT", "ESL", "AI", "API", "SKU", "EAN", "VAT"})

# A bare number below this is assumed to be a volume in liters
MAX_IMPLICIT_LITERS = 100


def format_product_name(product_name: str) -> str:
    """Format a raw product name as ``"Title Case Name SizeUNIT (Attribute, Attribute)"``.

    Examples:
        "Valio kevytmaito 1 | ESL" -> "Valio Kevytmaito 1L (ESL)"
        "Valio suurtalous kuohukerma 1,75 | laktoositon" -> "Valio Suurtalous Kuohukerma 1,75L (Laktoositon)"
        "Valio vispikerma 1 | UHT laktoositon" -> "Valio Vispikerma 1L (UHT, Laktoositon)"
    """
    if not product_name:
        return product_name

    main_part, _, attributes_part = product_name.partition("|")
    formatted_main = _format_main_part(main_part.strip())
    formatted_attributes = _format_attributes(attributes_part.strip())

    if formatted_attributes:
        return f"{formatted_main} {formatted_attributes}"
    return formatted_main


def _format_size(match: re.Match[str]) -> str:
    value = match.group(1).replace(",", ".")
    unit = (match.group(2) or "").upper()
    if not unit and 0 < float(value) < MAX_IMPLICIT_LITERS:
        unit = "L"
    return value.replace(".", ",") + unit


def _format_main_part(main_part: str) -> str:
    if not main_part:
        return ""
    return _to_title_case(SIZE_PATTERN.sub(_format_size, main_part, count=1))


def _format_attributes(attributes_part: str) -> str:
    if not attributes_part:
        return ""
    attributes = [_to_title_case(attr) for attr in ATTRIBUTE_SPLIT_PATTERN.split(attributes_part) if attr]
    return f"({', '.join(attributes)})" if attributes else ""


def _title_word(word: str) -> str:
    upper = word.upper()
    if upper in ACRONYMS:
        return upper
    if word[0].isdigit():
        # Size tokens such as "1,75L" keep their formatted unit
        return word
    return word[0].upper() + word[1:].lower()


def _to_title_case(text: str) -> str:
    return " ".join(_title_word(word) for word in WORD_SPLIT_PATTERN.split(text) if word)
