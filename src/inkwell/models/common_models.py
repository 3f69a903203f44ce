"""
# Common API Models

Shared building blocks for every InkWell request and response model.

- **`CamelModel`**: base model whose JSON keys are camelCase (`isPublished`, `readTime`) while
  Python attributes and MongoDB fields stay snake_case. Input accepts both spellings.
- **Pagination**: list endpoints answer `{<items>: [...], pagination: {...}}` where the total key
  is named after the resource (`totalPosts`, `totalComments`, `totalReplies`, `totalUsers`,
  `totalBookmarks`).
- **Errors**: `{message, errors?: [{field, message, value}]}`.
"""

import math
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serializing to camelCase JSON and accepting either key style on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def id_str(value: Any) -> Optional[str]:
    """Render an ObjectId (or anything with an id) as a string; `None` stays `None`."""
    if value is None:
        return None
    return str(value)


def id_list(values: Optional[List[Any]]) -> List[str]:
    return [str(v) for v in values or []]


def is_object_id(value: Any) -> bool:
    return isinstance(value, ObjectId) or (isinstance(value, str) and ObjectId.is_valid(value))


def not_null(value: Any) -> Any:
    """Before-validator for optional update fields that may be omitted but never set to null."""
    if value is None:
        raise ValueError("Cannot be null")
    return value


def build_pagination(page: int, limit: int, total: int, label: str) -> Dict[str, Any]:
    """
    Pagination block for list responses.

    Args:
        page (int): 1-based page number.
        limit (int): Page size.
        total (int): Total matching items.
        label (str): Resource label used in the total key, e.g. `"Posts"` -> `totalPosts`.
    """
    return {
        "currentPage": page,
        "totalPages": math.ceil(total / limit) if limit else 0,
        f"total{label}": total,
        "hasNextPage": page * limit < total,
        "hasPrevPage": page > 1,
    }


class ErrorDetail(BaseModel):
    """A single field-level validation or conflict error."""

    field: str
    message: str
    value: Optional[Any] = None


class ErrorResponse(BaseModel):
    """Error envelope returned by every failing endpoint."""

    message: str
    errors: Optional[List[ErrorDetail]] = None
    stack: Optional[str] = Field(None, description="Traceback, only outside production")

    model_config = {
        "json_schema_extra": {
            "example": {
                "message": "Validation failed",
                "errors": [{"field": "title", "message": "Title must be between 1 and 200 characters", "value": ""}],
            }
        }
    }
