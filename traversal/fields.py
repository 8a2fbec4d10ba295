"""
Field Descriptors Module
Maps source columns and computed expressions to output property names
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

LONG = "long"
DATE = "date"
STRING = "string"

SELECT_EXPRESSION_PREFIX = "SelectExpression"


@dataclass(frozen=True)
class Field:
    """A column (or aliased expression) and the properties it populates"""
    column: str
    value_type: str = STRING
    property_names: Tuple[str, ...] = ()
    alias: Optional[str] = None
    selected: bool = True

    @property
    def key(self) -> str:
        """Column name under which the value appears in a result row"""
        return self.alias or self.column

    @property
    def select_item(self) -> str:
        if self.alias:
            return f"({self.column}) {self.alias}"
        return self.column


# DataID, ModifyDate, SubType and PermID are required by the traversal
# queries; the rest feed the document properties.
DEFAULT_FIELDS: Tuple[Field, ...] = (
    Field("DataID", LONG, ("ID", "docid")),
    Field("ModifyDate", DATE, ("ModifyDate", "lastModified")),
    Field("MimeType", STRING, ("MimeType", "mimetype")),
    Field("DComment", STRING, ("Comment",)),
    Field("CreateDate", DATE, ("CreateDate",)),
    Field("OwnerName", STRING, ("CreatedBy",)),
    Field("Name", STRING, ("Name",)),
    Field("SubType", LONG, ("SubType",)),
    Field("OwnerID", LONG, ("VolumeID",)),
    Field("UserID", STRING, ("UserID",)),
    Field("DataSize", LONG),
    Field("PermID", LONG),
)


def build_fields(select_expressions: Optional[Dict[str, str]] = None,
                 defaults: Sequence[Field] = DEFAULT_FIELDS) -> Tuple[Field, ...]:
    """
    Combine the default fields with configured computed expressions

    Args:
        select_expressions: Mapping of property name to SQL expression
        defaults: Static field set

    Returns:
        Tuple of fields, defaults first

    Raises:
        ValueError: if a default column collides with the alias prefix
    """
    prefix = SELECT_EXPRESSION_PREFIX.lower()
    for f in defaults:
        if f.key.lower().startswith(prefix):
            raise ValueError(f"Field '{f.key}' collides with the reserved prefix {SELECT_EXPRESSION_PREFIX}")

    fields = list(defaults)
    for i, (prop, expression) in enumerate(sorted((select_expressions or {}).items())):
        fields.append(Field(expression, STRING, (prop,), alias=f"{SELECT_EXPRESSION_PREFIX}{i}"))
    return tuple(fields)


def select_list(fields: Sequence[Field]) -> List[str]:
    return [f.select_item for f in fields if f.selected]


def to_properties(fields: Sequence[Field], records, row: int) -> Dict[str, Any]:
    """Map one result row to a {property name: value} dictionary"""
    properties = {}
    for f in fields:
        if not f.property_names or not records.has_column(f.key):
            continue
        if f.value_type == LONG:
            value = records.to_integer(row, f.key)
        elif f.value_type == DATE:
            value = records.to_date(row, f.key)
        else:
            value = records.to_string(row, f.key)
        for name in f.property_names:
            properties[name] = value
    return properties
