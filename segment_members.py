"""
Segment membership retrieval on top of Customer.io's cursor pagination.

Customer.io only hands out opaque `next` cursors, so page-number access is
simulated by replaying the cursor chain from the first page. Segment
membership can change between that replay and the final fetch, in which case
the page returned for a given number is approximate. Callers who need a
stable walk should follow `next_start_token` instead of page numbers.
"""
import time
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

from customerio_client import CustomerIOClient

logger = logging.getLogger(__name__)


class _Exhausted:
    """Marker for a page number beyond the last upstream page"""
    def __repr__(self):
        return "EXHAUSTED"


EXHAUSTED = _Exhausted()


@dataclass
class PaginationMetadata:
    current_page: int
    per_page: int
    has_more: bool
    next_page: Optional[int] = None
    next_cursor: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_page": self.current_page,
            "per_page": self.per_page,
            "has_more": self.has_more,
            "next_page": self.next_page,
            "next_start_token": self.next_cursor,
        }


@dataclass
class PageResult:
    identifiers: List[Any]
    pagination: PaginationMetadata

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": self.identifiers,
            "pagination": self.pagination.to_dict(),
        }


class SegmentMembersService:
    """Fetches segment members either all at once or one page at a time"""

    def __init__(self, client: CustomerIOClient, aggregate_page_delay: float = 1.0,
                 cursor_walk_delay: float = 0.5, sleep: Callable[[float], None] = time.sleep):
        self.client = client
        self.aggregate_page_delay = aggregate_page_delay
        self.cursor_walk_delay = cursor_walk_delay
        self.sleep = sleep

    def fetch_all_members(self, segment_id: Union[int, str], start: Optional[str] = None,
                          limit: int = 100) -> List[Any]:
        """
        Fetch every member of a segment by following cursors until none is left.

        Args:
            segment_id: Customer.io segment id
            start: Optional cursor to resume from instead of the first page
            limit: Page size for each upstream call

        Returns:
            All identifiers, first page first

        Raises:
            UpstreamError: on the first failed page; members gathered so far are dropped
        """
        all_members = []
        cursor = start or None
        pages = 0

        while True:
            page = self.client.fetch_page(segment_id, limit, cursor)
            pages += 1
            all_members.extend(page.identifiers)
            cursor = page.next

            if not cursor:
                break

            # Stay under Customer.io's rate limit
            self.sleep(self.aggregate_page_delay)

        logger.info(f"Fetched {len(all_members)} members of segment {segment_id} in {pages} pages")
        return all_members

    def resolve_cursor_for_page(self, segment_id: Union[int, str], page: int, per_page: int):
        """
        Walk the cursor chain from the first page up to `page`.

        Each step fetches a page of `per_page` members and keeps only its
        `next` cursor, so resolving page P costs P-1 upstream calls.

        Returns:
            The cursor that fetches `page`, or EXHAUSTED when Customer.io runs
            out of pages first

        Raises:
            UpstreamError: if any step fails
        """
        cursor = None
        current_page = 1

        while current_page < page:
            logger.debug(f"Walking segment {segment_id} page {current_page} towards page {page}")
            step = self.client.fetch_page(segment_id, per_page, cursor)
            cursor = step.next

            if not cursor:
                logger.info(f"Segment {segment_id} has only {current_page} pages of {per_page}, page {page} requested")
                return EXHAUSTED

            current_page += 1

            if current_page < page:
                self.sleep(self.cursor_walk_delay)

        return cursor

    def fetch_one_page(self, segment_id: Union[int, str], page: int = 1, per_page: int = 50,
                       start: Optional[str] = None) -> PageResult:
        """
        Fetch one page of members, addressed by cursor or by page number.

        An explicit `start` cursor takes precedence over `page` and skips the
        cursor walk entirely.
        """
        if start:
            cursor = start
        elif page <= 1:
            cursor = None
        else:
            cursor = self.resolve_cursor_for_page(segment_id, page, per_page)
            if cursor is EXHAUSTED:
                return PageResult(
                    identifiers=[],
                    pagination=PaginationMetadata(
                        current_page=page,
                        per_page=per_page,
                        has_more=False
                    )
                )

        logger.info(f"Customer.io paginated request: segment_id={segment_id} page={page} per_page={per_page} start={cursor}")
        result = self.client.fetch_page(segment_id, per_page, cursor)
        has_more = result.has_next

        return PageResult(
            identifiers=result.identifiers,
            pagination=PaginationMetadata(
                current_page=page,
                per_page=per_page,
                has_more=has_more,
                next_page=page + 1 if has_more else None,
                next_cursor=result.next if has_more else None
            )
        )
