# Offset pagination shared by list endpoints: page/limit in, items plus a pagination block out.
from __future__ import annotations

import math
from typing import Any, List, Tuple

from sqlalchemy.orm import Query

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def paginate(q: Query, page: int, limit: int) -> Tuple[List[Any], dict]:
    """Run `q` for one page; `page` is 1-based. The query must already be ordered."""
    total = q.order_by(None).count()
    items = q.offset((page - 1) * limit).limit(limit).all()
    return items, {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": math.ceil(total / limit) if limit else 0,
    }
