"""Shared Pydantic base and numeric coercion for stored records."""

from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class RecordModel(BaseModel):
    """Base model for persisted records.

    Fields are snake_case in Python and camelCase on disk (``betName``,
    ``backOdds``), and either spelling is accepted on input.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_record(self) -> dict[str, Any]:
        """Serialize for storage: camelCase keys, absent optionals omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def to_decimal(value: Any) -> Decimal | None:
    """Coerce a user-supplied number to Decimal.

    Returns None for anything that is not a finite number: None, booleans,
    empty or non-numeric strings, NaN and infinities.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, int):
        number = Decimal(value)
    elif isinstance(value, float):
        number = Decimal(repr(value))
    elif isinstance(value, str):
        text = value.strip().lstrip("£$€")
        if not text:
            return None
        try:
            number = Decimal(text)
        except InvalidOperation:
            return None
    else:
        return None

    if not number.is_finite():
        return None
    return number
