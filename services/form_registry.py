"""Form reference registry: read path for per-form configuration."""

from __future__ import annotations

from pydantic import ValidationError as PydanticValidationError

from errors import FormNotFoundError, ValidationError
from infrastructure.storage.protocol import Partition, StorageBackend
from schemas.models.form import FormReference
from shared.logging import get_logger

log = get_logger(__name__)


class FormRegistry:
    def __init__(self, storage: StorageBackend) -> None:
        self._storage = storage

    async def get_form(self, key: str) -> FormReference:
        """Return the form stored under *key*.

        Raises:
            FormNotFoundError: no form is stored under *key*.
            ValidationError: the stored document is not a valid FormReference.
        """
        raw = await self._storage.get(Partition.FORMS, key)
        if raw is None:
            log.info("form_not_found", form_key=key)
            raise FormNotFoundError(key)
        try:
            return FormReference.model_validate_json(raw)
        except PydanticValidationError as e:
            log.error("form_reference_invalid", form_key=key, errors=e.error_count())
            raise ValidationError("Form misconfigured", details={"key": key})

    async def push_form(self, key: str, form: FormReference) -> None:
        """Store *form* under *key*, replacing any previous version."""
        await self._storage.put(
            Partition.FORMS, key, form.model_dump_json(exclude_none=True)
        )
        log.info("form_pushed", form_key=key)
