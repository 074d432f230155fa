"""Turn an untyped payload into a fully populated domain result."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from pydantic import BaseModel, ValidationError
from pydantic.alias_generators import to_snake

from health_agent.errors import SchemaViolation
from health_agent.models import TaskKind
from health_agent.pipeline.normalize import coerce_optional_text
from health_agent.tasks import task_spec

logger = logging.getLogger(__name__)


def _lookup(payload: Mapping[str, Any], field: str) -> Any:
    if field in payload:
        return payload[field]
    return payload.get(to_snake(field))


def validate(kind: TaskKind | str, payload: Any) -> BaseModel:
    """Validate ``payload`` against the result model for ``kind``.

    Optional fields fall back to typed defaults; a missing or sentinel
    identity field raises ``SchemaViolation``. The output is a fixed point:
    validating its ``model_dump(by_alias=True, mode="json")`` again returns an
    equal object.
    """

    spec = task_spec(kind)
    if not isinstance(payload, Mapping):
        raise SchemaViolation("payload", "Generated result is not a JSON object.")

    for field in spec.required:
        if coerce_optional_text(_lookup(payload, field)) is None:
            logger.info("Result for %s missing required field %s", spec.kind.value, field)
            raise SchemaViolation(field)

    try:
        return spec.model.model_validate(dict(payload))
    except ValidationError as exc:
        error = exc.errors()[0]
        location = ".".join(str(part) for part in error.get("loc", ())) or spec.kind.value
        logger.info("Result for %s failed validation at %s: %s", spec.kind.value, location, error.get("msg"))
        raise SchemaViolation(location, f"Generated result has an invalid '{location}'.") from exc
