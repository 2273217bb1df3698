from flask import current_app, request


def page_args():
    """Read ``page``/``limit`` query args, clamped to sane bounds."""
    default_limit = current_app.config.get("DEFAULT_PAGE_SIZE", 10)
    max_limit = current_app.config.get("MAX_PAGE_SIZE", 100)

    page = request.args.get("page", type=int) or 1
    limit = request.args.get("limit", type=int) or default_limit
    return max(page, 1), max(1, min(limit, max_limit))


def paginate(query):
    page, limit = page_args()
    result = query.paginate(page=page, per_page=limit, error_out=False)
    meta = {
        "page": page,
        "limit": limit,
        "total": result.total,
        "pages": result.pages,
    }
    return result.items, meta
