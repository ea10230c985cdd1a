"""
Base Schema Classes

Requests serialize to the relay's {"type", "data"} envelope. Notices are
built from the data part of an inbound envelope and checked against the
fields their dataclass declares, so a handler never sees a notice whose
required fields are missing or of the wrong shape.
"""

import json
from dataclasses import MISSING, asdict, fields
from typing import Any, Dict, TypeVar

T = TypeVar("T", bound="BaseNotice")


class BaseRequest:
    """Outbound message; subclasses are dataclasses naming their wire type."""

    def to_dict(self) -> Dict[str, Any]:
        """
        Build the envelope.

        Returns:
            {"type": ..., "data": {...}}, or only the type for a request
            without fields
        """
        if hasattr(self, "__dataclass_fields__") and fields(self):
            return {"type": self._message_type, "data": asdict(self)}
        return {"type": self._message_type}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @property
    def _message_type(self) -> str:
        raise NotImplementedError("Subclasses must define _message_type")


class BaseNotice:
    """
    Inbound message pushed by the relay or read from the polling log.

    Fields without a default are required. A required field annotated as
    a dictionary must arrive as a JSON object.
    """

    message_type: str = ""

    @classmethod
    def from_dict(cls: type[T], data: Dict[str, Any]) -> T:
        """
        Create a notice from a full envelope or from its bare data part.

        Raises:
            ValueError: If the data is not an object or a required field
                is missing or malformed
        """
        if not isinstance(data, dict):
            raise ValueError(f"{cls.message_type} data must be an object")
        return cls._from_data(data.get("data", data))

    @classmethod
    def from_json(cls: type[T], json_str: str) -> T:
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def _from_data(cls: type[T], data: Dict[str, Any]) -> T:
        if not isinstance(data, dict):
            raise ValueError(f"{cls.message_type} data must be an object")

        values = {}
        for field in fields(cls):
            value = data.get(field.name)
            required = field.default is MISSING and field.default_factory is MISSING
            if required and value is None:
                raise ValueError(f"{cls.message_type} is missing {field.name}")
            if value is not None and _expects_object(field.type) and not isinstance(
                value, dict
            ):
                raise ValueError(f"{cls.message_type} {field.name} must be an object")
            values[field.name] = value if value is not None or required else field.default
        return cls(**values)


def _expects_object(annotation) -> bool:
    return getattr(annotation, "__origin__", None) is dict or annotation is dict
