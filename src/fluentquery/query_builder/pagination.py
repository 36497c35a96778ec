"""Page math and link generation.

Pagination is explicit: the caller supplies the current request's path and
query parameters through a PaginationContext instead of the paginator
reading any ambient request state.

Example:
    >>> paginator = Paginator(per_page=10)
    >>> context = PaginationContext(path="/posts", query_params={"page": "3"})
    >>> page = paginator.paginate(95, lambda limit, offset: [], context)
    >>> page.total_pages, page.current_page, page.next_page_url
    (10, 3, '/posts?page=4')
"""

from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlencode

from pydantic import Field

from fluentquery.common.exceptions import usage_error
from fluentquery.logging import get_logger
from fluentquery.types import FluentBaseModel


logger = get_logger(__name__)

# Pages shown on each side of the current page.
LINK_WINDOW = 5

FetchCallback = Callable[[int, int], List[Any]]


class PaginationContext(FluentBaseModel):
    """The request being paginated: its path and current query parameters."""

    path: str = ""
    query_params: Dict[str, Any] = Field(default_factory=dict)


class PageLink(FluentBaseModel):
    number: int
    link: str
    is_current: bool = False


class PaginationDescriptor(FluentBaseModel):
    """One page of results plus everything a view needs to render navigation."""

    current_page: int
    per_page: int
    total_pages: int
    total_rows: int
    data: List[Any] = Field(default_factory=list)
    link_window: List[PageLink] = Field(default_factory=list)
    first_page_url: str
    last_page_url: str
    prev_page_url: Optional[str] = None
    next_page_url: Optional[str] = None

    @property
    def has_more_pages(self) -> bool:
        return self.current_page < self.total_pages


class Paginator:
    """Computes page numbers, offsets and links for a known row total."""

    def __init__(self, per_page: int = 20, page_name: str = "page"):
        if not isinstance(per_page, int) or per_page < 1:
            raise usage_error("per_page must be a positive integer", argument="per_page", value=per_page)
        self.per_page = per_page
        self.page_name = page_name

    def current_page(self, context: PaginationContext) -> int:
        """Page requested by ``context``; missing or malformed values mean page 1."""
        raw = context.query_params.get(self.page_name)
        if isinstance(raw, (list, tuple)):
            raw = raw[0] if raw else None
        try:
            page = int(str(raw).strip())
        except (TypeError, ValueError):
            return 1
        return max(page, 1)

    def total_pages(self, total_rows: int) -> int:
        return -(-max(total_rows, 0) // self.per_page)

    def offset(self, page: int) -> int:
        return (page - 1) * self.per_page

    def page_url(self, context: PaginationContext, page: int) -> str:
        """``context.path`` with the page parameter rewritten, other parameters kept."""
        params = dict(context.query_params)
        params[self.page_name] = page
        return f"{context.path}?{urlencode(params, doseq=True)}"

    def link_window(self, current: int, total_pages: int, context: PaginationContext) -> List[PageLink]:
        """Up to LINK_WINDOW existing pages either side of ``current``."""
        last_before = min(current - 1, total_pages)
        before = range(max(last_before - LINK_WINDOW + 1, 1), last_before + 1)
        after = range(current + 1, min(current + LINK_WINDOW, total_pages) + 1)
        pages = list(before) + [current] + list(after)
        return [
            PageLink(number=page, link=self.page_url(context, page), is_current=page == current)
            for page in pages
        ]

    def paginate(
        self,
        total_rows: int,
        fetch: FetchCallback,
        context: Optional[PaginationContext] = None,
    ) -> PaginationDescriptor:
        """Build the descriptor for the page ``context`` asks for.

        Args:
            total_rows: Rows available across all pages
            fetch: Called as ``fetch(limit, offset)``, returns the page rows
            context: Current request, defaults to an empty one (page 1)

        Returns:
            PaginationDescriptor; a page past the end carries empty data
        """
        context = context or PaginationContext()
        total_pages = self.total_pages(total_rows)
        current = self.current_page(context)
        previous = min(current - 1, total_pages)

        data: List[Any] = []
        if total_rows > 0:
            data = list(fetch(self.per_page, self.offset(current)))

        logger.debug(
            "Page resolved",
            extra={
                "current_page": current,
                "per_page": self.per_page,
                "total_rows": total_rows,
                "row_count": len(data),
            },
        )

        return PaginationDescriptor(
            current_page=current,
            per_page=self.per_page,
            total_pages=total_pages,
            total_rows=total_rows,
            data=data,
            link_window=self.link_window(current, total_pages, context),
            first_page_url=self.page_url(context, 1),
            last_page_url=self.page_url(context, max(total_pages, 1)),
            prev_page_url=self.page_url(context, previous) if previous >= 1 else None,
            next_page_url=self.page_url(context, current + 1) if current < total_pages else None,
        )
