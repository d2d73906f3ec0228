"""Extraction of labeled fields from OCR text."""

from dataclasses import dataclass
from typing import Optional

from src.core.backends.base import OCRResponse

FIRST_NAME_LABEL = "FN"
LAST_NAME_LABEL = "LN"


@dataclass
class ParsedDescription:
    """Fields read off a cover image, plus the raw text they came from."""
    first_name: Optional[str]
    last_name: Optional[str]
    tokens: list[str]

    @property
    def text(self) -> str:
        """Flattened OCR text as stored in the book description."""
        return "\n".join(self.tokens)


def flatten_annotations(responses: list[OCRResponse]) -> list[str]:
    """Walk OCR responses into a flat, ordered list of strings."""
    return [text.description for res in responses for text in res.text_annotations]


def try_extract_field(tokens: list[str], label: str) -> Optional[str]:
    """
    Return the token following the first occurrence of label.

    Args:
        tokens: Flattened OCR text
        label: Literal label token, e.g. "FN"

    Returns:
        The value after the label, or None if the label is missing or is
        the last token
    """
    try:
        index = tokens.index(label)
    except ValueError:
        return None
    if index + 1 >= len(tokens):
        return None
    return tokens[index + 1]


def parse_description(responses: list[OCRResponse]) -> ParsedDescription:
    """Flatten OCR output and pick out the first- and last-name fields."""
    tokens = flatten_annotations(responses)
    return ParsedDescription(
        first_name=try_extract_field(tokens, FIRST_NAME_LABEL),
        last_name=try_extract_field(tokens, LAST_NAME_LABEL),
        tokens=tokens,
    )
