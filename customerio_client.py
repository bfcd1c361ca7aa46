import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Union
import requests

from proxy_config import DEFAULT_BASE_URL

logger = logging.getLogger(__name__)


class UpstreamError(Exception):
    """Raised when Customer.io answers with a non-2xx status"""
    def __init__(self, status_code: int, body: Any, segment_id=None, start=None):
        self.status_code = status_code
        self.body = body
        self.segment_id = segment_id
        self.start = start
        super().__init__(f"Customer.io returned HTTP {status_code} for segment {segment_id}")


class MalformedResponseError(requests.RequestException):
    """Raised when a 2xx membership response is not a JSON object"""
    pass


@dataclass(frozen=True)
class Page:
    """One page of segment membership as returned by Customer.io"""
    identifiers: List[Any] = field(default_factory=list)
    next: Optional[str] = None

    @property
    def has_next(self) -> bool:
        return bool(self.next)


class CustomerIOClient:
    def __init__(self, api_key: Optional[str], base_url: str = DEFAULT_BASE_URL,
                 timeout: Optional[float] = 30.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {api_key or ''}",
            "Accept": "application/json"
        })

    def membership_url(self, segment_id: Union[int, str]) -> str:
        # The id must stay a single path segment
        quoted_id = requests.utils.quote(str(segment_id), safe='')
        return f"{self.base_url}/segments/{quoted_id}/membership"

    def fetch_page(self, segment_id: Union[int, str], limit: int, start: Optional[str] = None) -> Page:
        """
        Fetch a single page of segment members.

        Args:
            segment_id: Customer.io segment id, used as a path segment
            limit: Page size sent as the `limit` query parameter
            start: Cursor returned as `next` by the previous page, sent verbatim

        Returns:
            Page with the identifiers and the next cursor (None on the last page)

        Raises:
            UpstreamError: on any non-2xx response
            requests.RequestException: if Customer.io cannot be reached or the
                response body is not a JSON object
        """
        url = self.membership_url(segment_id)
        params = {"limit": limit}
        if start:
            params["start"] = start

        logger.info(f"Customer.io API request: url={url} segment_id={segment_id} start={start} limit={limit}")
        response = self.session.get(url, params=params, timeout=self.timeout)

        if not 200 <= response.status_code < 300:
            logger.error(
                f"Customer.io API request failed: segment_id={segment_id} start={start} "
                f"status={response.status_code} body={response.text}"
            )
            raise UpstreamError(
                response.status_code,
                self._error_body(response),
                segment_id=segment_id,
                start=start
            )

        data = response.json()
        if data is None:
            data = {}
        if not isinstance(data, dict):
            logger.error(f"Customer.io returned a non-object body for segment_id={segment_id}: {response.text}")
            raise MalformedResponseError(
                f"Expected a JSON object from Customer.io, got {type(data).__name__}",
                response=response
            )

        return Page(
            identifiers=list(data.get("identifiers") or []),
            next=data.get("next") or None
        )

    @staticmethod
    def _error_body(response: requests.Response) -> Any:
        # Structured when Customer.io sent JSON, raw text otherwise
        try:
            return response.json()
        except ValueError:
            return response.text
