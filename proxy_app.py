import time
import logging
from dataclasses import dataclass
from typing import Callable, Mapping, Optional
import requests
from flask import Flask, jsonify, request

from api_key_auth import require_api_key
from customerio_client import CustomerIOClient, UpstreamError
from proxy_config import ProxyConfig, configure_logging
from segment_members import SegmentMembersService

logger = logging.getLogger(__name__)


class InvalidQueryParameter(ValueError):
    """Raised when a numeric query parameter is not a positive integer"""
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"{name} must be a positive integer")


def _positive_int(args: Mapping[str, str], name: str, default: int) -> int:
    raw = args.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise InvalidQueryParameter(name)
    if value < 1:
        raise InvalidQueryParameter(name)
    return value


@dataclass
class MembersQuery:
    """Query parameters of the full aggregation route"""
    start: Optional[str]
    limit: int

    @classmethod
    def from_args(cls, args: Mapping[str, str], default_limit: int = 100) -> "MembersQuery":
        return cls(
            start=args.get("start") or None,
            limit=_positive_int(args, "limit", default_limit)
        )


@dataclass
class PageQuery:
    """Query parameters of the paginated route"""
    page: int
    per_page: int
    start: Optional[str]

    @classmethod
    def from_args(cls, args: Mapping[str, str], default_per_page: int = 50) -> "PageQuery":
        return cls(
            page=_positive_int(args, "page", 1),
            per_page=_positive_int(args, "per_page", default_per_page),
            start=args.get("start") or None
        )


def create_app(config: ProxyConfig, client: Optional[CustomerIOClient] = None,
               sleep: Callable[[float], None] = time.sleep) -> Flask:
    """
    Build the Flask application.

    Args:
        config: Settings loaded once at startup
        client: Customer.io client, built from `config` when omitted
        sleep: Blocking delay used between upstream calls
    """
    if not config.customer_io_api_key:
        logger.warning("CUSTOMER_IO_API_KEY is not set; Customer.io will reject upstream calls")
    if not config.api_key:
        logger.warning("API_KEY is not set; every inbound request will get 401")

    client = client or CustomerIOClient(
        config.customer_io_api_key,
        base_url=config.base_url,
        timeout=config.request_timeout
    )
    service = SegmentMembersService(
        client,
        aggregate_page_delay=config.aggregate_page_delay,
        cursor_walk_delay=config.cursor_walk_delay,
        sleep=sleep
    )

    app = Flask(__name__)
    app.json.sort_keys = False
    api_key_required = require_api_key(lambda: config.api_key)

    @app.route('/segments/<segment_id>/members', methods=['GET'], provide_automatic_options=False)
    @api_key_required
    def get_segment_members(segment_id):
        """Return every member of the segment as one JSON array"""
        query = MembersQuery.from_args(request.args, config.default_limit)
        members = service.fetch_all_members(segment_id, start=query.start, limit=query.limit)
        return jsonify(members)

    @app.route('/segments/<segment_id>/members/paginated', methods=['GET'], provide_automatic_options=False)
    @api_key_required
    def get_segment_members_paginated(segment_id):
        """Return one page of members plus pagination metadata"""
        query = PageQuery.from_args(request.args, config.default_per_page)
        result = service.fetch_one_page(
            segment_id,
            page=query.page,
            per_page=query.per_page,
            start=query.start
        )
        return jsonify(result.to_dict())

    @app.errorhandler(UpstreamError)
    def handle_upstream_error(e):
        return jsonify({
            "error": "Failed to fetch segment members",
            "status": e.status_code,
            "details": e.body
        }), e.status_code

    @app.errorhandler(InvalidQueryParameter)
    def handle_invalid_query(e):
        return jsonify({"error": "Invalid query parameter", "details": str(e)}), 400

    @app.errorhandler(requests.RequestException)
    def handle_transport_error(e):
        logger.error(f"Could not reach Customer.io: {e}")
        return jsonify({"error": "Failed to reach Customer.io", "details": str(e)}), 502

    return app


def main() -> None:
    config = ProxyConfig.from_env()
    configure_logging(config.log_level)
    app = create_app(config)
    logger.info(f"Starting segment members proxy on {config.host}:{config.port}")
    app.run(host=config.host, port=config.port)


if __name__ == "__main__":
    main()
