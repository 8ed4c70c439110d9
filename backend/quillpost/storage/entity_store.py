from __future__ import annotations

import logging
from typing import Any, Generic, Mapping, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from quillpost.errors import NotFound, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class EntityStore(Generic[T]):
    """Records of one entity type keyed by an integer identity.

    Identities start at 1 and only ever grow; a deleted id is never handed
    out again. The store does no locking of its own, callers serialize
    writes.
    """

    def __init__(self, model: type[T], label: str | None = None) -> None:
        self._model = model
        self._label = label or model.__name__
        self._rows: dict[int, T] = {}
        self._next_id = 1

    def __len__(self) -> int:
        return len(self._rows)

    def insert(self, data: BaseModel | Mapping[str, Any]) -> T:
        values = data.model_dump() if isinstance(data, BaseModel) else dict(data)
        values.pop("id", None)
        row = self._model.model_validate({**values, "id": self._next_id})
        self._rows[row.id] = row
        self._next_id += 1
        logger.debug("Inserted %s id=%s", self._label, row.id)
        return row

    def get_by_id(self, id: int) -> T | None:
        return self._rows.get(id)

    def update(self, id: int, fields: Mapping[str, Any]) -> T:
        current = self._rows.get(id)
        if current is None:
            raise NotFound(f"{self._label} not found")
        changes = {k: v for k, v in fields.items() if k != "id"}
        try:
            row = self._model.model_validate({**current.model_dump(), **changes})
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e
        self._rows[id] = row
        logger.debug("Updated %s id=%s fields=%s", self._label, id, sorted(changes))
        return row

    def delete(self, id: int) -> bool:
        removed = self._rows.pop(id, None) is not None
        if removed:
            logger.debug("Deleted %s id=%s", self._label, id)
        return removed

    def all(self) -> tuple[T, ...]:
        # Snapshot in insertion order; safe to iterate while the store changes.
        return tuple(self._rows.values())
