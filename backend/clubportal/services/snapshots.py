"""JSON snapshots of committed rows for the change feed"""

from typing import Any, Dict

from clubportal.schemas.auth import UserInfo
from clubportal.schemas.contribution import ContributionResponse
from clubportal.schemas.department import DepartmentResponse
from clubportal.schemas.join_request import JoinRequestResponse
from clubportal.schemas.project import ProjectResponse, ReviewResponse
from clubportal.services.change_feed import ChangeFeed, ChangeOperation

SNAPSHOT_SCHEMAS = {
    "users": UserInfo,
    "departments": DepartmentResponse,
    "projects": ProjectResponse,
    "contributions": ContributionResponse,
    "join_requests": JoinRequestResponse,
    "reviews": ReviewResponse,
}


def snapshot(collection: str, instance: Any) -> Dict[str, Any]:
    """Serialize a row the way the REST API renders it"""
    schema = SNAPSHOT_SCHEMAS[collection]
    return schema.model_validate(instance).model_dump(mode="json")


def publish_instance(
    feed: ChangeFeed,
    collection: str,
    instance: Any,
    operation: str = ChangeOperation.MODIFIED,
) -> None:
    """Publish a committed row; must only be called after commit"""
    feed.publish_document(
        collection,
        instance.id,
        None if operation == ChangeOperation.REMOVED else snapshot(collection, instance),
        operation=operation,
        version=getattr(instance, "version", None),
    )
