"""Limit/offset paging shared by the list endpoints.

Out-of-range values are clamped rather than rejected; only non-integers are
an error (ValueError, turned into a 400 by the caller).
"""
from typing import Any, Dict, List, Mapping, Tuple

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def normalize_pagination(limit_raw, offset_raw) -> Tuple[int, int]:
    try:
        limit = int(limit_raw) if limit_raw not in (None, '') else DEFAULT_LIMIT
        offset = int(offset_raw) if offset_raw not in (None, '') else 0
    except ValueError:
        raise ValueError('limit/offset must be int')
    limit = max(1, min(limit, MAX_LIMIT))
    offset = max(0, offset)
    return limit, offset


def paginate(query, args: Mapping[str, Any]) -> Tuple[List[Any], Dict[str, int]]:
    """Apply limit/offset from request args to an ordered query.

    Returns (rows, meta) where meta = {total, limit, offset, returned}.
    """
    limit, offset = normalize_pagination(args.get('limit'), args.get('offset'))
    total = query.order_by(None).count()
    rows = query.offset(offset).limit(limit).all()
    return rows, {'total': total, 'limit': limit, 'offset': offset, 'returned': len(rows)}
