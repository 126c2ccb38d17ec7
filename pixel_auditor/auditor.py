import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Type, Union

from .descriptions import get_errors_details
from .detectors import (
    GA4DetectorPlugin,
    GoogleAdsDetectorPlugin,
    GTMDetectorPlugin,
    MetaPixelDetectorPlugin,
    TagDetectorPlugin,
    run_detectors,
)
from .errors import InputError
from .event_catalog import describe_event
from .events import REQUIRED_PARAMS, extract_events, find_duplicate_events, validate_event_parameters
from .fetcher import (
    DEFAULT_ACCEPT_LANGUAGE,
    DEFAULT_USER_AGENT,
    PAGE_TIMEOUT,
    SCRIPT_TIMEOUT,
    RetryConfig,
    fetch_external_script,
    fetch_page,
    get_headers,
)
from .models import AuditResult, DetectorResult, EventRecord, Platform, ShopifyInfo
from .patterns import CompiledPatterns
from .scoring import summarize
from .scripts import MAX_CONCURRENT_DOWNLOADS, resolve_scripts
from .shopify import detect_shopify_tracking_patterns, extract_shopify_pixels_config

MANUAL_HTML_URL = 'manual-html-input'


@dataclass
class AuditorConfig:
    page_timeout: float = PAGE_TIMEOUT
    script_timeout: float = SCRIPT_TIMEOUT
    max_workers: int = MAX_CONCURRENT_DOWNLOADS
    max_events_per_key: int = 5
    user_agent: str = DEFAULT_USER_AGENT
    accept_language: str = DEFAULT_ACCEPT_LANGUAGE
    retry_config: RetryConfig = field(default_factory=RetryConfig)


@dataclass(frozen=True)
class PlatformStrategy:
    """What the engine runs for one platform and how its events are validated."""

    platform: Platform
    result_key: str
    detector: Type[TagDetectorPlugin]
    required_params: Dict[str, List[str]]


PLATFORM_STRATEGIES: Dict[Platform, PlatformStrategy] = {
    strategy.platform: strategy for strategy in (
        PlatformStrategy(Platform.GA4, 'ga4', GA4DetectorPlugin, REQUIRED_PARAMS[Platform.GA4.value]),
        PlatformStrategy(Platform.GTM, 'gtm', GTMDetectorPlugin, REQUIRED_PARAMS[Platform.GTM.value]),
        PlatformStrategy(Platform.META_PIXEL, 'meta_pixel', MetaPixelDetectorPlugin,
                         REQUIRED_PARAMS[Platform.META_PIXEL.value]),
        PlatformStrategy(Platform.GOOGLE_ADS, 'google_ads', GoogleAdsDetectorPlugin, {}),
    )
}


def required_params_by_event_type(strategies: Dict[Platform, PlatformStrategy]) -> Dict[str, Dict[str, List[str]]]:
    return {strategy.platform.value: strategy.required_params for strategy in strategies.values()}


def analyze_events(events: List[EventRecord]) -> List[Dict[str, Any]]:
    """Catalog details and params analysis for each distinct (type, name), first occurrence's params."""
    first_seen: Dict[str, EventRecord] = {}
    for event in events:
        first_seen.setdefault(event.key, event)
    return [
        {'type': event.type, 'name': event.name, **describe_event(event.name, event.type, event.params)}
        for event in first_seen.values()
    ]


def normalize_target(target: Union[str, Dict[str, Any], None]) -> Dict[str, Any]:
    """Accept a URL string or ``{url, html, includeDetails, traceId}``."""
    if isinstance(target, str) or target is None:
        target = {'url': target}
    url = (target.get('url') or '').strip()
    html = target.get('html') or ''
    if not isinstance(html, str):
        html = ''
    if not url and not html.strip():
        raise InputError("A URL or the page HTML is required.")

    # A bare host like example.com gets https://
    if url and '://' not in url:
        url = 'https://' + url.lstrip('/')

    return {
        'url': url,
        'html': html if html.strip() else None,
        'include_details': bool(target.get('includeDetails', False)),
        'trace_id': target.get('traceId'),
    }


class PixelAuditor:
    """Runs the detectors and the event analysis over one page per call."""

    def __init__(self, config: AuditorConfig = None, patterns: CompiledPatterns = None,
                 session=None, script_fetcher=None, strategies: Dict[Platform, PlatformStrategy] = None):
        self.config = config or AuditorConfig()
        self.patterns = patterns or CompiledPatterns()
        self.session = session
        self.script_fetcher = script_fetcher
        self.strategies = strategies or PLATFORM_STRATEGIES
        self.required_params = required_params_by_event_type(self.strategies)

        # Plugin registry, keyed by result field
        self.plugins: Dict[str, TagDetectorPlugin] = {
            strategy.result_key: strategy.detector(self.patterns)
            for strategy in self.strategies.values()
        }
        self.setup_logging()

    def setup_logging(self):
        logging.basicConfig(level=logging.INFO)
        self.logger = logging.getLogger(__name__)

    def register_plugin(self, name: str, plugin: TagDetectorPlugin):
        """Register a new tag detection plugin"""
        self.plugins[name] = plugin
        self.logger.info(f"Registered plugin: {plugin.name} v{plugin.version}")

    def fetch_script(self, url: str, timeout: float = SCRIPT_TIMEOUT) -> Optional[str]:
        if self.script_fetcher is not None:
            return self.script_fetcher(url, timeout=timeout)
        return fetch_external_script(url, timeout=timeout, user_agent=self.config.user_agent,
                                     session=self.session)

    def run_audit(self, target: Union[str, Dict[str, Any]]) -> AuditResult:
        """Audit one page.

        Raises ``InputError`` when neither a URL nor HTML is given and
        ``PageFetchError`` when the page cannot be downloaded. Nothing after the
        page fetch raises.
        """
        request = normalize_target(target)
        trace_id = request['trace_id']
        prefix = f"[{trace_id}] " if trace_id else ""
        site_url = request['url'] or None

        page = fetch_page(
            request['url'], html=request['html'], timeout=self.config.page_timeout,
            headers=get_headers(self.config.user_agent, self.config.accept_language),
            retry_config=self.config.retry_config, session=self.session, trace_id=trace_id)

        scripts = resolve_scripts(page, site_url=site_url, timeout=self.config.script_timeout,
                                  max_workers=self.config.max_workers, fetcher=self.fetch_script,
                                  patterns=self.patterns)
        self.logger.info(f"{prefix}{len(page.inline)} inline and {len(page.external)} external scripts, "
                         f"{len(scripts)} analysed")

        results = run_detectors(self.plugins, page, scripts)

        pixels_config = extract_shopify_pixels_config(page.html, self.patterns)
        signals = detect_shopify_tracking_patterns(page.html, self.patterns)
        shopify = ShopifyInfo(
            is_shopify=(pixels_config.is_shopify or signals['has_web_pixels_manager']
                        or signals['has_monorail_tracking'] or signals['has_trekkie_tracking']
                        or bool(signals['apps_detected'])),
            apps_detected=signals['apps_detected'],
            has_web_pixels_manager=signals['has_web_pixels_manager'],
            tiktok_pixel_ids=list(pixels_config.tiktok_pixel_ids),
            has_monorail_tracking=signals['has_monorail_tracking'],
            has_trekkie_tracking=signals['has_trekkie_tracking'],
        )

        events = extract_events(page, scripts, max_per_key=self.config.max_events_per_key,
                                patterns=self.patterns)
        duplicates = find_duplicate_events(events)
        issues = validate_event_parameters(events, self.required_params)
        summary = summarize(results['ga4'], results['gtm'], results['meta_pixel'], duplicates, issues)
        self.logger.info(f"{prefix}Score {summary.tracking_health_score}, {summary.issues_found} issues, "
                         f"{len(events)} events")

        result = AuditResult(
            url=request['url'] if request['html'] is None else MANUAL_HTML_URL,
            ga4=results['ga4'],
            gtm=results['gtm'],
            meta_pixel=results['meta_pixel'],
            google_ads=results['google_ads'],
            shopify=shopify,
            events=events,
            summary=summary,
            merchant_center=DetectorResult(),
        )

        if request['include_details']:
            for strategy in self.strategies.values():
                detector_result = results[strategy.result_key]
                detector_result.errors_details = [
                    detail.to_dict() for detail in get_errors_details(detector_result.errors, strategy.platform)
                ]
            shopify.web_pixels = pixels_config.to_dict()
            result.external_scripts = [script for script in scripts if script.is_external]
            result.duplicates = duplicates
            result.analysis = issues
            result.events_analysis = analyze_events(events)
            result.trace_id = trace_id
        return result


def run_pixel_audit(target: Union[str, Dict[str, Any]], include_details: bool = False,
                    config: AuditorConfig = None, **kwargs) -> Dict[str, Any]:
    """Audit one page and return the JSON-ready result dict."""
    if include_details:
        target = {'url': target} if isinstance(target, str) else dict(target)
        target['includeDetails'] = True
    return PixelAuditor(config=config, **kwargs).run_audit(target).to_dict()
