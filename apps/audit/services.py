from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction

from .models import AuditLog

logger = logging.getLogger(__name__)


def _jsonable(value: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not value:
        return {}
    return json.loads(json.dumps(value, cls=DjangoJSONEncoder))


def record_audit(
    *,
    action: str,
    entity_type: str,
    entity_id,
    user_id: Optional[str] = None,
    changes: Optional[Dict[str, Any]] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Optional[AuditLog]:
    """Write an audit record. Never raises: audit failures must not break the caller."""
    try:
        with transaction.atomic():
            return AuditLog.objects.create(
                action=action,
                entity_type=entity_type,
                entity_id=str(entity_id),
                user_id=str(user_id or ""),
                changes=_jsonable(changes),
                metadata=_jsonable(metadata),
            )
    except Exception:
        logger.exception("[AUDIT] Failed to record %s for %s %s", action, entity_type, entity_id)
        return None
