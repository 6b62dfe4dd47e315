"""Field collection data model."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field as PydanticField

from core.utils.errors import FieldIndexError, LastFieldError

FieldKey = Literal["label", "value"]

DEFAULT_LABELS: tuple[str, ...] = ("MAC Address", "Serial Number")

# Characters removed by a browser String.prototype.trim(). Unlike str.strip(),
# this includes U+FEFF and excludes the \x1c-\x1f separators and U+0085.
TRIM_CHARACTERS = (
    "\t\n\v\f\r \u00a0\u1680\u2000\u2001\u2002\u2003\u2004\u2005\u2006"
    "\u2007\u2008\u2009\u200a\u2028\u2029\u202f\u205f\u3000\ufeff"
)


class Field(BaseModel):
    """Single label/value entry, stored verbatim."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    label: str = ""
    value: str = ""

    def is_valid(self) -> bool:
        return bool(self.label.strip(TRIM_CHARACTERS)) and bool(
            self.value.strip(TRIM_CHARACTERS)
        )


class FieldCollection(BaseModel):
    """Ordered, immutable snapshot of fields.

    Mutators never touch the receiver; each returns a new collection.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    fields: tuple[Field, ...] = PydanticField(default_factory=tuple)

    @classmethod
    def default(cls) -> FieldCollection:
        return cls(fields=tuple(Field(label=label) for label in DEFAULT_LABELS))

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[str, str]]) -> FieldCollection:
        return cls(fields=tuple(Field(label=label, value=value) for label, value in pairs))

    def __len__(self) -> int:
        return len(self.fields)

    def __getitem__(self, index: int) -> Field:
        return self.fields[self._check_index(index)]

    @property
    def can_remove(self) -> bool:
        return len(self.fields) > 1

    def add_field(self) -> FieldCollection:
        return FieldCollection(fields=(*self.fields, Field()))

    def remove_field(self, index: int) -> FieldCollection:
        position = self._check_index(index)
        if not self.can_remove:
            raise LastFieldError()
        return FieldCollection(fields=self.fields[:position] + self.fields[position + 1 :])

    def update_field(self, index: int, key: str, new_value: str) -> FieldCollection:
        position = self._check_index(index)
        if key not in ("label", "value"):
            raise ValueError(f"Unsupported field key: {key}")
        updated = self.fields[position].model_copy(update={key: new_value})
        return FieldCollection(
            fields=self.fields[:position] + (updated,) + self.fields[position + 1 :]
        )

    def reset(self) -> FieldCollection:
        return FieldCollection.default()

    def _check_index(self, index: int) -> int:
        # Negative indexes are misuse, not Python-style addressing from the end.
        if not 0 <= index < len(self.fields):
            raise FieldIndexError(index, len(self.fields))
        return index
