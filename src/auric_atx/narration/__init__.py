"""Plain-language commentary and trend digests."""

from .commentary import build_commentary, build_digest, top_driver, watch_list

__all__ = ["build_commentary", "build_digest", "top_driver", "watch_list"]
