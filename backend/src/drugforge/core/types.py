"""Field type registry: storage, UI defaults, and value coercion."""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable

# Values accepted in property bags and filters. Nested containers are rejected.
SCALAR_TYPES = (str, int, float, bool, type(None))


@dataclass
class UIDefaults:
    display_component: str
    edit_component: str
    filter_component: str
    alignment: str = "left"
    format: str | None = None


@dataclass
class FieldType:
    name: str
    storage_type: str
    ui: UIDefaults
    coerce: Callable[[Any], Any]
    is_text: bool = True
    is_numeric: bool = False


def _to_text(value: Any) -> str:
    if isinstance(value, bool):
        raise TypeError("expected text, got boolean")
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value
    raise TypeError(f"expected text, got {type(value).__name__}")


def _to_integer(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"{value!r} is not a whole number")
        return int(value)
    if isinstance(value, str):
        return int(value.strip())
    raise TypeError(f"expected integer, got {type(value).__name__}")


def _to_number(value: Any) -> float | int:
    if isinstance(value, bool):
        raise TypeError("expected number, got boolean")
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        return float(value.strip())
    raise TypeError(f"expected number, got {type(value).__name__}")


_TRUE = {"true", "1", "yes", "y", "t"}
_FALSE = {"false", "0", "no", "n", "f"}


def _to_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
    raise ValueError(f"{value!r} is not a boolean")


def _to_date(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"expected ISO date string, got {type(value).__name__}")
    # Accept full timestamps but store only the date part
    text = value.strip()
    if len(text) > 10:
        return datetime.fromisoformat(text).date().isoformat()
    return date.fromisoformat(text).isoformat()


def _to_datetime(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"expected ISO datetime string, got {type(value).__name__}")
    return datetime.fromisoformat(value.strip()).isoformat()


_TEXT_UI = UIDefaults(
    display_component="Text",
    edit_component="TextInput",
    filter_component="Select",
)

FIELD_TYPES: dict[str, FieldType] = {
    "uuid": FieldType(
        name="uuid",
        storage_type="TEXT",
        ui=UIDefaults(
            display_component="Text",
            edit_component="Hidden",
            filter_component="TextInput",
        ),
        coerce=_to_text,
    ),
    "key": FieldType(
        name="key",
        storage_type="TEXT",  # Sequence-based keys like "GEN-00001"
        ui=UIDefaults(
            display_component="Text",
            edit_component="ReadOnly",
            filter_component="TextInput",
        ),
        coerce=_to_text,
    ),
    "string": FieldType(
        name="string",
        storage_type="TEXT",
        ui=_TEXT_UI,
        coerce=_to_text,
    ),
    "text": FieldType(
        name="text",
        storage_type="TEXT",
        ui=UIDefaults(
            display_component="Text",
            edit_component="TextArea",
            filter_component="TextInput",
        ),
        coerce=_to_text,
    ),
    "picklist": FieldType(
        name="picklist",
        storage_type="TEXT",
        ui=UIDefaults(
            display_component="Badge",
            edit_component="Select",
            filter_component="Select",
        ),
        coerce=_to_text,
    ),
    "integer": FieldType(
        name="integer",
        storage_type="INTEGER",
        ui=UIDefaults(
            display_component="Text",
            edit_component="NumberInput",
            filter_component="Select",
            alignment="right",
        ),
        coerce=_to_integer,
        is_text=False,
        is_numeric=True,
    ),
    "number": FieldType(
        name="number",
        storage_type="REAL",
        ui=UIDefaults(
            display_component="Text",
            edit_component="NumberInput",
            filter_component="Select",
            alignment="right",
        ),
        coerce=_to_number,
        is_text=False,
        is_numeric=True,
    ),
    "boolean": FieldType(
        name="boolean",
        storage_type="INTEGER",  # 0/1
        ui=UIDefaults(
            display_component="Badge",
            edit_component="Checkbox",
            filter_component="Select",
        ),
        coerce=_to_boolean,
        is_text=False,
    ),
    "date": FieldType(
        name="date",
        storage_type="TEXT",  # ISO format
        ui=UIDefaults(
            display_component="Text",
            edit_component="DatePicker",
            filter_component="Select",
            format="MMM D, YYYY",
        ),
        coerce=_to_date,
        is_text=False,
    ),
    "datetime": FieldType(
        name="datetime",
        storage_type="TEXT",  # ISO format
        ui=UIDefaults(
            display_component="Text",
            edit_component="DateTimePicker",
            filter_component="Select",
            format="MMM D, YYYY h:mm A",
        ),
        coerce=_to_datetime,
        is_text=False,
    ),
}


def is_known_type(type_name: str) -> bool:
    return type_name in FIELD_TYPES


def get_field_type(type_name: str) -> FieldType:
    """Get field type definition, defaulting to string if unknown."""
    return FIELD_TYPES.get(type_name, FIELD_TYPES["string"])


def get_storage_type(type_name: str) -> str:
    """Column storage class (TEXT, INTEGER, REAL) for a field type."""
    return get_field_type(type_name).storage_type


def coerce_value(type_name: str, value: Any) -> Any:
    """Convert a scalar request value to the Python value stored for ``type_name``.

    ``None`` passes through unchanged. Dicts, lists, and other non-scalar
    values raise TypeError; malformed scalars raise ValueError.
    """
    if value is None:
        return None
    if not isinstance(value, SCALAR_TYPES):
        raise TypeError(f"expected a scalar value, got {type(value).__name__}")
    return get_field_type(type_name).coerce(value)
