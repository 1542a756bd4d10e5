DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def normalize_pagination(limit_raw, offset_raw, page_raw=None):
    """Return (limit, offset) from query args.

    ``page`` (1-based) takes precedence over ``offset`` when both are given,
    so a page/per-page client and a limit/offset client hit the same range.
    """
    try:
        limit = int(limit_raw) if limit_raw is not None else DEFAULT_LIMIT
        offset = int(offset_raw) if offset_raw is not None else 0
        page = int(page_raw) if page_raw is not None else None
    except ValueError:
        raise ValueError('limit/offset/page must be int')
    limit = max(1, min(limit, MAX_LIMIT))
    if page is not None:
        if page < 1:
            raise ValueError('page must be >= 1')
        offset = (page - 1) * limit
    offset = max(0, offset)
    return limit, offset
