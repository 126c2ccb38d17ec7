"""Unified script list and the selective download of external scripts."""
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, List, Optional
from urllib.parse import urljoin, urlparse

import tldextract

from .fetcher import SCRIPT_TIMEOUT, fetch_external_script
from .models import PageContent, ScriptInfo
from .patterns import DEFAULT_PATTERNS, GTM_RULES, CompiledPatterns

logger = logging.getLogger(__name__)

GTM_LOADER_URL = 'https://www.googletagmanager.com/gtm.js?id={}'
MAX_CONCURRENT_DOWNLOADS = 8

# Third-party sources that must not be mined for the site's own events
EXCLUDE_FROM_EVENT_ANALYSIS = (
    'facebook.net',
    'connect.facebook.net',
    'fbevents.js',
    'facebook.com/tr',
    'google-analytics.com',
    'analytics.google.com',
    'googletagmanager.com/gtag/js',
    'googleadservices.com',
    'doubleclick.net',
    'googlesyndication.com',
    'gstatic.com',
    'cdn.segment.com',
    'cdn.amplitude.com',
    'cdn.mxpnl.com',
    'hotjar.com',
    'clarity.ms',
    'intercom.io',
    'crisp.chat',
    'tawk.to',
    'snap.licdn.com',
    'px.ads.linkedin.com',
    'static.ads-twitter.com',
    'tiktok.com',
    'pinterest.com',
)

# Offline extractor: the bundled public suffix snapshot is enough here
_extract_domain = tldextract.TLDExtract(suffix_list_urls=())


def get_all_scripts(page: PageContent) -> List[ScriptInfo]:
    """Inline scripts first, then external references, in page order."""
    scripts = [ScriptInfo(type='inline', content=content) for content in page.inline]
    scripts.extend(
        ScriptInfo(type='external', content=ref.content or '', src=ref.src)
        for ref in page.external
    )
    return scripts


def resolve_script_url(src: str, site_url: Optional[str] = None) -> str:
    s = (src or '').strip()
    if not s:
        return ''
    lower = s.lower()
    if lower.startswith(('javascript:', 'data:')):
        return ''
    if s.startswith('//'):
        return 'https:' + s
    if lower.startswith(('http://', 'https://')):
        return s
    if site_url:
        return urljoin(site_url, s)
    return s


def get_base_domain(hostname: str) -> str:
    """Registrable domain of ``hostname`` (shop.example.co.uk -> example.co.uk)."""
    host = (hostname or '').strip().lower()
    if not host:
        return ''
    ext = _extract_domain(host)
    if ext.domain and ext.suffix:
        return f"{ext.domain}.{ext.suffix}"
    return host[4:] if host.startswith('www.') else host


def is_same_base_domain(script_url: str, base_domain: str) -> bool:
    if not base_domain:
        return False
    host = (urlparse(script_url).hostname or '').lower()
    if host.startswith('www.'):
        host = host[4:]
    return host == base_domain or host.endswith('.' + base_domain)


def is_gtm_request(url: str) -> bool:
    """True for GTM container and gtag.js loader URLs, including server-side proxies."""
    lower = url.lower()
    if 'googletagmanager.com/gtm.js' in lower or 'googletagmanager.com/gtag/js' in lower:
        return True
    if '/gtm.js' in lower and 'id=gtm-' in lower:
        return True
    if '/gtag/js' in lower and ('id=g-' in lower or 'id=gtm-' in lower or 'id=aw-' in lower):
        return True
    return False


def is_gtm_container(url: str) -> bool:
    lower = url.lower()
    return 'googletagmanager.com/gtm.js' in lower or 'gtm.js?id=' in lower


def should_exclude_from_events(url: str) -> bool:
    lower = url.lower()
    if is_gtm_container(lower):
        return False
    return any(fragment in lower for fragment in EXCLUDE_FROM_EVENT_ANALYSIS)


def extract_gtm_ids(scripts: List[ScriptInfo], patterns: CompiledPatterns = DEFAULT_PATTERNS) -> List[str]:
    """GTM container IDs referenced anywhere in script sources or bodies."""
    found: Dict[str, None] = {}
    for script in scripts:
        texts = [script.src] if script.is_external and script.src else []
        if script.content:
            texts.append(script.content)
        for text in texts:
            for pattern in patterns.embedded_gtm_ids:
                for match in pattern.finditer(text):
                    container_id = GTM_RULES.accept(match.group(1))
                    if container_id:
                        found[container_id] = None
    return list(found)


def extract_extra_tracking_urls(html: str, patterns: CompiledPatterns = DEFAULT_PATTERNS) -> List[str]:
    """Script-like URLs the page references outside <script src> tags."""
    urls = []
    if not html:
        return urls
    for pattern in patterns.extra_script_candidates:
        urls.extend(match.group(1) for match in pattern.finditer(html) if match.group(1))
    return urls


def synthesize_gtm_loaders(scripts: List[ScriptInfo], patterns: CompiledPatterns = DEFAULT_PATTERNS) -> List[ScriptInfo]:
    """External entries for containers that are only referenced, never loaded by URL.

    A browser running the snippet would fetch ``gtm.js?id=<ID>``, so the
    resolver does the same.
    """
    loaded = set()
    for script in scripts:
        if script.is_external and script.src and is_gtm_container(script.src):
            for pattern in patterns.embedded_gtm_ids[1:]:
                match = pattern.search(script.src)
                if match:
                    loaded.add(match.group(1).upper())
    return [
        ScriptInfo(type='external', src=GTM_LOADER_URL.format(container_id))
        for container_id in extract_gtm_ids(scripts, patterns)
        if container_id not in loaded
    ]


def select_download_candidates(urls: List[str], site_url: Optional[str] = None) -> List[str]:
    """Resolve, dedupe by lower-cased URL and keep same-site or GTM/gtag loader URLs."""
    base_domain = ''
    if site_url:
        base_domain = get_base_domain(urlparse(site_url).hostname or '')

    unique: Dict[str, str] = {}
    for url in urls:
        resolved = resolve_script_url(url, site_url)
        if resolved and resolved.lower() not in unique:
            unique[resolved.lower()] = resolved

    return [
        url for url in unique.values()
        if is_same_base_domain(url, base_domain) or is_gtm_request(url)
    ]


def fetch_relevant_external_scripts(urls: List[str], site_url: Optional[str] = None,
                                    html: str = '', timeout: float = SCRIPT_TIMEOUT,
                                    max_workers: int = MAX_CONCURRENT_DOWNLOADS,
                                    fetcher: Callable[..., Optional[str]] = None,
                                    patterns: CompiledPatterns = DEFAULT_PATTERNS) -> List[ScriptInfo]:
    """Download the external scripts worth analysing, concurrently.

    ``html`` is the page source, scanned for extra candidates. Each download
    runs under its own timeout and a failure only drops that one script.
    Returns the scripts that came back with content.
    """
    fetcher = fetcher or fetch_external_script
    candidates = select_download_candidates(list(urls) + extract_extra_tracking_urls(html, patterns), site_url)
    if not candidates:
        return []

    logger.info(f"Downloading {len(candidates)} external scripts")
    downloaded: Dict[str, str] = {}
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(candidates)))) as executor:
        futures = {executor.submit(fetcher, url, timeout=timeout): url for url in candidates}
        for future in as_completed(futures):
            url = futures[future]
            try:
                content = future.result()
            except Exception as e:
                logger.debug(f"Script download raised for {url}: {e}")
                continue
            if content:
                downloaded[url] = content

    logger.info(f"Downloaded {len(downloaded)}/{len(candidates)} external scripts")
    # Keep candidate order so results do not depend on completion order
    return [
        ScriptInfo(type='external', content=downloaded[url], src=url,
                   exclude_from_events=should_exclude_from_events(url))
        for url in candidates if url in downloaded
    ]


def merge_downloaded_scripts(scripts: List[ScriptInfo], downloaded: List[ScriptInfo],
                             site_url: Optional[str] = None) -> List[ScriptInfo]:
    """Fill downloaded content into matching entries; unknown URLs are appended."""
    merged = list(scripts)
    by_url: Dict[str, ScriptInfo] = {}
    for script in merged:
        if script.is_external and script.src:
            by_url.setdefault(resolve_script_url(script.src, site_url).lower(), script)

    for item in downloaded:
        existing = by_url.get(item.src.lower())
        if existing is not None:
            existing.content = item.content
            existing.exclude_from_events = item.exclude_from_events
        else:
            merged.append(item)
            by_url[item.src.lower()] = item
    return merged


def resolve_scripts(page: PageContent, site_url: Optional[str] = None, timeout: float = SCRIPT_TIMEOUT,
                    max_workers: int = MAX_CONCURRENT_DOWNLOADS, fetcher: Callable[..., Optional[str]] = None,
                    patterns: CompiledPatterns = DEFAULT_PATTERNS) -> List[ScriptInfo]:
    """Build the unified script list and fill in downloadable external content.

    Also writes downloaded bodies back onto ``page.external``.
    """
    scripts = get_all_scripts(page)
    scripts.extend(synthesize_gtm_loaders(scripts, patterns))

    external_urls = [script.src for script in scripts if script.is_external and script.src]
    downloaded = fetch_relevant_external_scripts(
        external_urls, site_url=site_url, html=page.html, timeout=timeout,
        max_workers=max_workers, fetcher=fetcher, patterns=patterns)
    scripts = merge_downloaded_scripts(scripts, downloaded, site_url)

    contents = {item.src.lower(): item.content for item in downloaded}
    for ref in page.external:
        content = contents.get(resolve_script_url(ref.src, site_url).lower())
        if content is not None:
            ref.content = content
    return scripts
