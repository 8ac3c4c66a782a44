from typing import Any, Dict

from app.utils.exceptions import AuthorizationError
from app.utils.logging_config import get_logger

logger = get_logger(__name__)


def require_owner(principal_id: str, resource: Dict[str, Any], owner_field: str, resource_type: str) -> None:
    """Only the owner of record may mutate a job or revoke an endorsement."""
    if resource.get(owner_field) != principal_id:
        logger.warning(
            f"Rejected {resource_type} mutation by non-owner",
            extra={"principal_id": principal_id, "owner_field": owner_field}
        )
        raise AuthorizationError(
            f"Only the owner of this {resource_type} may modify it",
            resource=resource_type
        )
