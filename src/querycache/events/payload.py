"""Parsing of externally delivered change-data-capture payloads.

Expected structure (extra fields are ignored):

    {
      "payload": {
        "ChangeEventHeader": {
          "entityName": "Account",
          "changeType": "UPDATE",
          "recordIds": ["001xx000003DGb2AAG"]
        }
      }
    }

Gap events (``GAP_CREATE``, ``GAP_UPDATE``, ...) are mapped to their base
change type. ``GAP_OVERFLOW`` carries no usable record ids and becomes an
update of the whole entity.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from querycache.errors import ValidationError
from querycache.events.schemas import ChangeEvent, ChangeKind, ChangeOrigin
from querycache.security.webhook import SECRET_BODY_FIELD

logger = logging.getLogger(__name__)

CHANGE_TYPES: dict[str, ChangeKind] = {
    "CREATE": ChangeKind.CREATED,
    "UPDATE": ChangeKind.UPDATED,
    "DELETE": ChangeKind.DELETED,
    "UNDELETE": ChangeKind.RESTORED,
}

GAP_PREFIX = "GAP_"
GAP_OVERFLOW = "GAP_OVERFLOW"


class ChangeEventHeader(BaseModel):
    """CDC change event header."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    entity_name: str | None = Field(default=None, alias="entityName")
    change_type: str = Field(default="UPDATE", alias="changeType")
    record_ids: list[str] = Field(default_factory=list, alias="recordIds")


class ChangePayload(BaseModel):
    """Inner CDC payload."""

    model_config = ConfigDict(extra="allow")

    header: ChangeEventHeader | None = Field(default=None, alias="ChangeEventHeader")


class ChangeNotification(BaseModel):
    """Top-level CDC webhook body."""

    model_config = ConfigDict(extra="allow")

    payload: ChangePayload | None = None


def _redacted(payload: Any) -> Any:
    if isinstance(payload, dict) and SECRET_BODY_FIELD in payload:
        return {**payload, SECRET_BODY_FIELD: "***"}
    return payload


def _reject(message: str, payload: Any) -> ValidationError:
    logger.warning(
        f"Change notification rejected: {message}", extra={"payload": _redacted(payload)}
    )
    return ValidationError(message, payload=payload)


def change_kind(change_type: str) -> tuple[ChangeKind, bool]:
    """Map a CDC change type to a ChangeKind.

    Returns the kind and whether the record ids should be discarded.

    Raises:
        ValidationError: if the change type is not recognised
    """
    normalized = change_type.strip().upper()
    if normalized == GAP_OVERFLOW:
        return ChangeKind.UPDATED, True
    if normalized.startswith(GAP_PREFIX):
        normalized = normalized[len(GAP_PREFIX) :]

    kind = CHANGE_TYPES.get(normalized)
    if kind is None:
        raise ValidationError(f"Invalid CDC payload: unknown changeType '{change_type}'")
    return kind, False


def parse_change_payload(payload: Any) -> ChangeEvent:
    """Build an external ChangeEvent from a webhook body.

    Raises:
        ValidationError: if the header or entity name is missing, or the
            payload does not match the expected shape
    """
    if not isinstance(payload, dict):
        raise _reject("Invalid CDC payload: expected a JSON object", payload)

    try:
        notification = ChangeNotification.model_validate(payload)
    except PydanticValidationError as e:
        raise _reject(f"Invalid CDC payload: {e.errors()[0]['msg']}", payload) from e

    header = notification.payload.header if notification.payload else None
    if header is None:
        raise _reject("Invalid CDC payload: missing ChangeEventHeader", payload)

    if not header.entity_name:
        raise _reject("Invalid CDC payload: missing entityName", payload)

    try:
        kind, discard_ids = change_kind(header.change_type)
    except ValidationError as e:
        raise _reject(str(e), payload) from e

    record_ids = () if discard_ids else tuple(header.record_ids)
    return ChangeEvent(
        entity=header.entity_name,
        kind=kind,
        record_ids=record_ids,
        origin=ChangeOrigin.EXTERNAL,
    )
