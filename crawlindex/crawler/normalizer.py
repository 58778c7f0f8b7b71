"""
URL normalization: resolving discovered hrefs against the page they came from.
"""

import logging
from typing import Optional
from urllib.parse import urljoin, urlparse


logger = logging.getLogger(__name__)


def normalize_url(base_url: str, href: str) -> Optional[str]:
    """
    Resolve a link reference found on a page into an absolute URL.

    Uses standard URI reference resolution, so queries and fragments from the
    href are kept as written.

    Args:
        base_url: URL of the page the link was found on
        href: Raw href attribute value

    Returns:
        The absolute URL, or None if either input cannot be parsed or the
        result is still relative
    """
    if href is None or base_url is None:
        return None

    href = href.strip()

    try:
        # urlparse validates both sides (e.g. malformed IPv6 hosts raise)
        urlparse(base_url)
        urlparse(href)
        resolved = urljoin(base_url, href)
        parsed = urlparse(resolved)
    except ValueError as e:
        logger.debug(f"Dropping unresolvable link {href!r} on {base_url}: {e}")
        return None

    if not parsed.scheme:
        return None

    return resolved
