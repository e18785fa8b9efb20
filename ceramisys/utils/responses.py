import math
from typing import Any, Optional


def ok(data: Any = None, message: str = "تمت العملية بنجاح") -> dict:
    """Standard success envelope."""
    return {"success": True, "message": message, "data": data}


def fail(message: str, data: Any = None) -> dict:
    return {"success": False, "message": message, "data": data}


def paginated(items, total: int, page: int, limit: int, extra: Optional[dict] = None) -> dict:
    body = {
        "items": items,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if limit else 0,
        },
    }
    if extra:
        body.update(extra)
    return body
