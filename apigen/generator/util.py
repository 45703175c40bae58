"""Name helpers shared by the generators."""

import re

_WORD_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def to_pascal_case(name: str) -> str:
    """Convert snake_case (or already Pascal) names to PascalCase."""
    return "".join(part[:1].upper() + part[1:] for part in name.split("_") if part)


def to_snake_case(name: str) -> str:
    """Convert PascalCase or camelCase names to snake_case."""
    return _WORD_BOUNDARY.sub("_", name).lower()


def to_upper_snake_case(name: str) -> str:
    return to_snake_case(name).upper()
