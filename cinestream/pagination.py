import math
from dataclasses import dataclass


def _to_int(value, default):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class PageRequest:
    page: int
    limit: int

    @property
    def offset(self):
        return (self.page - 1) * self.limit

    @classmethod
    def from_args(cls, args, default_limit=10, max_limit=50):
        page = max(1, _to_int(args.get("page"), 1))
        limit = min(max_limit, max(1, _to_int(args.get("limit"), default_limit)))
        return cls(page=page, limit=limit)


@dataclass(frozen=True)
class Page:
    items: list
    total: int
    request: PageRequest

    @property
    def total_pages(self):
        return math.ceil(self.total / self.request.limit) if self.total else 0

    def meta(self):
        current = self.request.page
        return {
            "currentPage": current,
            "totalPages": self.total_pages,
            "totalItems": self.total,
            "itemsPerPage": self.request.limit,
            "hasNextPage": current < self.total_pages,
            "hasPrevPage": current > 1,
        }


def paginate(query, page_request):
    """Run ``query`` for one page. The caller composes the filters and ordering."""
    total = query.order_by(None).count()
    items = query.offset(page_request.offset).limit(page_request.limit).all()
    return Page(items=items, total=total, request=page_request)
