"""Base Model Module."""

import json
from datetime import datetime
from typing import Any, Literal

from sqlalchemy.orm import DeclarativeBase

from drupal2wp.exceptions import UnsupportedModeError


def generic_serialize(obj: Any) -> Any:
    """Convert a column value to a JSON-serializable format.

    Args:
        obj: The object to convert.

    Returns:
        A JSON-serializable representation of the object.
    """
    if obj is None or isinstance(obj, bool | int | float | str):
        return obj
    if isinstance(obj, datetime):
        return obj.isoformat()
    return str(obj)


class Base(DeclarativeBase):
    """Base class for all mapping database models."""

    def model_dump(
        self,
        *,
        mode: Literal["json", "python"] | str = "python",
        exclude_none: bool = False,
    ) -> dict[str, Any]:
        """Dump the mapped columns to a dictionary.

        Imitates the behavior of Pydantic's model_dump method.

        Raises:
            UnsupportedModeError: If ``mode`` is neither "python" nor "json".
        """
        result = {
            column.key: getattr(self, column.key)
            for column in self.__table__.columns
            if not (exclude_none and getattr(self, column.key) is None)
        }
        if mode == "python":
            return result
        if mode == "json":
            return json.loads(json.dumps(result, default=generic_serialize))
        raise UnsupportedModeError(f"Unsupported mode: {mode}")
