DEFAULT_LIMIT = 50
MAX_LIMIT = 200

def normalize_pagination(limit_raw, page_raw):
    """Return (limit, page, offset) from raw query values; page is 1-based."""
    try:
        limit = int(limit_raw) if limit_raw is not None else DEFAULT_LIMIT
        page = int(page_raw) if page_raw is not None else 1
    except ValueError:
        raise ValueError('limit/page must be int')
    limit = max(1, min(limit, MAX_LIMIT))
    page = max(1, page)
    return limit, page, (page - 1) * limit
