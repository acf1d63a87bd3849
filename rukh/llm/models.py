"""
Model choice - The closed set of providers a request may name.

Raw strings from the request are parsed once at the HTTP edge; past that
point only ModelChoice values (or None for "unspecified") travel inward.
"""
from enum import Enum
from typing import Optional


class ModelChoice(str, Enum):
    MISTRAL = "mistral"
    ANTHROPIC = "anthropic"

    @property
    def other(self) -> "ModelChoice":
        """The provider tried when this one fails."""
        return ModelChoice.ANTHROPIC if self is ModelChoice.MISTRAL else ModelChoice.MISTRAL


def parse_model_choice(raw: Optional[str]) -> Optional[ModelChoice]:
    """
    Parse a request's model name.

    Returns:
        The matching ModelChoice, or None when the name is empty or unknown
    """
    if not raw:
        return None
    try:
        return ModelChoice(raw.strip().lower())
    except ValueError:
        return None
