# PolicyGuard - Security Compliance Monitoring Engine
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Base Pydantic model configuration for all engine records.

Every persisted record (violations, reports, alerts, incidents) is an
immutable model; "mutations" such as acknowledging an alert produce a new
instance via ``model_copy``. Records travel to the key-value store as JSON
lists built with :meth:`BaseModelConfig.to_record` and come back through
:meth:`BaseModelConfig.from_records`.
"""

import logging
from collections.abc import Iterable
from typing import Any, TypeVar

from beartype import beartype
from pydantic import BaseModel, ConfigDict, ValidationError

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound="BaseModelConfig")


@beartype
class BaseModelConfig(BaseModel):
    """Immutable, strictly validated record."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    def to_record(self) -> dict[str, Any]:
        """JSON-compatible dict for storage."""
        return self.model_dump(mode="json")

    @classmethod
    def from_records(cls: type[RecordT], raw: Iterable[Any]) -> list[RecordT]:
        """Validate stored records, skipping malformed entries with a warning."""
        records: list[RecordT] = []
        for item in raw:
            try:
                records.append(cls.model_validate(item))
            except ValidationError as e:
                logger.warning("Skipping malformed %s record: %s", cls.__name__, e)
        return records
