import logging
import random
import time
from typing import Dict, Optional
from urllib.parse import urlparse

import requests
from bs4 import BeautifulSoup

from .errors import MANUAL_HTML_HINT, InputError, PageFetchError, PageTimeoutError
from .models import ExternalScriptRef, PageContent

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
DEFAULT_ACCEPT_LANGUAGE = 'en-US,en;q=0.9,es;q=0.8'
PAGE_TIMEOUT = 20
SCRIPT_TIMEOUT = 8


class RetryConfig:
    """Configuration for retry logic with exponential backoff"""

    def __init__(self, max_retries: int = 0, base_delay: float = 1.0, max_delay: float = 30.0,
                 backoff_factor: float = 2.0):
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.backoff_factor = backoff_factor

    def get_delay(self, retry_count: int) -> float:
        """Calculate delay with exponential backoff and jitter"""
        delay = min(self.base_delay * (self.backoff_factor ** retry_count), self.max_delay)
        jitter = delay * 0.1 * random.random()
        return delay + jitter


def retry_sync(func, *args, retry_config: RetryConfig = None, retry_on=(Exception,), **kwargs):
    """Call ``func`` until it succeeds or the retry budget runs out."""
    if retry_config is None:
        retry_config = RetryConfig()

    for attempt in range(retry_config.max_retries + 1):
        try:
            return func(*args, **kwargs)
        except retry_on:
            if attempt == retry_config.max_retries:
                raise
            delay = retry_config.get_delay(attempt)
            logger.debug(f"Attempt {attempt + 1} failed, retrying in {delay:.2f}s")
            time.sleep(delay)


def get_headers(user_agent: str = DEFAULT_USER_AGENT,
                accept_language: str = DEFAULT_ACCEPT_LANGUAGE) -> Dict[str, str]:
    return {
        'User-Agent': user_agent,
        'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
        'Accept-Language': accept_language,
    }


def extract_scripts_from_html(html: str) -> PageContent:
    """Split every <script> tag into inline bodies and external references.

    Inline scripts with only whitespace are dropped; any tag carrying a
    ``src`` attribute is an external reference whatever its body holds.
    """
    page = PageContent(html=html)
    try:
        soup = BeautifulSoup(html, 'html.parser')
    except Exception as e:
        logger.warning(f"Could not parse HTML for scripts: {e}")
        return page

    for script in soup.find_all('script'):
        src = (script.get('src') or '').strip()
        if src:
            page.external.append(ExternalScriptRef(src=src))
            continue
        content = script.string or script.get_text() or ''
        if content.strip():
            page.inline.append(content)

    return page


def fetch_page(url: str, html: Optional[str] = None, timeout: float = PAGE_TIMEOUT,
               headers: Optional[Dict[str, str]] = None, retry_config: RetryConfig = None,
               session: Optional[requests.Session] = None, trace_id: Optional[str] = None) -> PageContent:
    """Fetch ``url`` (or take caller-supplied ``html``) and extract its scripts.

    When ``html`` is non-blank no request is made and it is used as-is.
    Raises ``InputError`` for an unusable URL, ``PageTimeoutError`` when the
    connection or a read stalls for ``timeout`` seconds and ``PageFetchError``
    for any other failure, each pointing at manual HTML mode.

    ``timeout`` is passed to requests unchanged, so it bounds the connect and
    each socket read, not the whole download. A server that keeps trickling
    bytes can run past it, and retries add their own attempts on top.
    """
    prefix = f"[{trace_id}] " if trace_id else ""
    manual_html = html.strip() if isinstance(html, str) else ''
    if manual_html:
        logger.info(f"{prefix}Using manual HTML input ({len(manual_html)} chars)")
        return extract_scripts_from_html(manual_html)

    parsed = urlparse((url or '').strip())
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        raise InputError(f"Invalid URL: {url!r}", code='INVALID_URL')

    http = session or requests

    def fetch():
        return http.get(parsed.geturl(), headers=headers or get_headers(), timeout=timeout,
                        allow_redirects=True)

    logger.info(f"{prefix}Fetching {parsed.geturl()}")
    try:
        response = retry_sync(fetch, retry_config=retry_config, retry_on=(requests.RequestException,))
    except requests.Timeout as e:
        raise PageTimeoutError(
            f"Timeout: the page took longer than {round(timeout)}s. {MANUAL_HTML_HINT}") from e
    except requests.RequestException as e:
        raise PageFetchError(f"Could not reach {parsed.geturl()}: {e}. {MANUAL_HTML_HINT}") from e

    if not 200 <= response.status_code < 300:
        raise PageFetchError(
            f"HTTP {response.status_code}: the page could not be accessed. {MANUAL_HTML_HINT}",
            code='HTTP_ERROR', status_code=response.status_code)

    page_html = response.text
    logger.info(f"{prefix}Fetched {parsed.geturl()} (HTTP {response.status_code}, {len(page_html)} chars)")
    return extract_scripts_from_html(page_html)


def fetch_external_script(script_url: str, timeout: float = SCRIPT_TIMEOUT,
                          user_agent: str = DEFAULT_USER_AGENT,
                          session: Optional[requests.Session] = None) -> Optional[str]:
    """Download one script body. Any failure yields ``None``."""
    http = session or requests
    try:
        response = http.get(script_url, headers={'User-Agent': user_agent, 'Accept': '*/*'},
                            timeout=timeout, allow_redirects=True)
    except requests.RequestException as e:
        logger.debug(f"Script download failed for {script_url}: {e}")
        return None
    if not 200 <= response.status_code < 300:
        logger.debug(f"Script download for {script_url} returned HTTP {response.status_code}")
        return None
    return response.text
