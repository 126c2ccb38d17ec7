"""Event call sites (gtag, dataLayer, fbq): extraction, duplicates and required params."""
import logging
from typing import Dict, Iterable, List, Optional

from .literals import extract_object_literal, parse_params_object
from .models import EventIssue, EventRecord, PageContent, Platform, ScriptInfo
from .patterns import DEFAULT_PATTERNS, CompiledPatterns

logger = logging.getLogger(__name__)

MAX_EVENTS_PER_KEY = 5

# Tokens that can land in the event-name slot without being an event
META_RESERVED_NAMES = frozenset({
    'init', 'track', 'trackcustom', 'tracksingle', 'tracksinglecustom',
    'true', 'false', 'null', 'undefined', 'function', 'return',
})

GA4_REQUIRED_PARAMS: Dict[str, List[str]] = {
    'purchase': ['transaction_id', 'value', 'currency'],
    'add_to_cart': ['currency', 'value'],
    'begin_checkout': ['currency', 'value'],
}

META_PIXEL_REQUIRED_PARAMS: Dict[str, List[str]] = {
    'Purchase': ['value', 'currency'],
    'AddToCart': ['value', 'currency'],
    'InitiateCheckout': ['value', 'currency'],
}

# GTM dataLayer events follow GA4 naming
REQUIRED_PARAMS: Dict[str, Dict[str, List[str]]] = {
    Platform.GA4.value: GA4_REQUIRED_PARAMS,
    Platform.GTM.value: GA4_REQUIRED_PARAMS,
    Platform.META_PIXEL.value: META_PIXEL_REQUIRED_PARAMS,
}


class EventCollector:
    """Append-only event list that keeps at most ``max_per_key`` records per (type, name)."""

    def __init__(self, max_per_key: int = MAX_EVENTS_PER_KEY):
        self.max_per_key = max_per_key
        self.events: List[EventRecord] = []
        self.seen: Dict[str, int] = {}

    def push(self, event: EventRecord):
        count = self.seen.get(event.key, 0) + 1
        self.seen[event.key] = count
        if count <= self.max_per_key:
            self.events.append(event)

    def extend(self, events: Iterable[EventRecord]):
        for event in events:
            self.push(event)


def _params_after(js: str, end: int) -> Optional[dict]:
    """Params literal passed as the next argument of the call ending at ``end``.

    Only a comma may sit between the matched name and the ``{``; anything else
    means the call closed and the next brace belongs to other code.
    """
    literal = extract_object_literal(js, end)
    if literal is None:
        return None
    gap = js[end:js.find('{', end)]
    if gap.strip().lstrip(',').strip():
        return None
    return parse_params_object(literal)


def extract_ga4_events(js: str, patterns: CompiledPatterns = DEFAULT_PATTERNS) -> List[EventRecord]:
    events = []
    for match in patterns.gtag_event.finditer(js):
        params = _params_after(js, match.end())
        events.append(EventRecord(type=Platform.GA4.value, name=match.group(1), params=params or {}))

    # dataLayer.push({event: 'snake_case'}) is often a GA4 proxy
    for match in patterns.datalayer_push_open.finditer(js):
        literal = extract_object_literal(js, match.start())
        if not literal:
            continue
        name_match = patterns.event_key.search(literal)
        if not name_match or not patterns.snake_case_event.match(name_match.group(1)):
            continue
        params = parse_params_object(literal)
        params.pop('event', None)
        events.append(EventRecord(type=Platform.GA4.value, name=name_match.group(1), params=params))
    return events


def extract_gtm_events(js: str, patterns: CompiledPatterns = DEFAULT_PATTERNS) -> List[EventRecord]:
    events = []
    for match in patterns.datalayer_push_open.finditer(js):
        literal = extract_object_literal(js, match.start())
        if not literal:
            continue
        name_match = patterns.event_key.search(literal)
        if not name_match:
            continue
        params = parse_params_object(literal)
        params.pop('event', None)
        events.append(EventRecord(type=Platform.GTM.value, name=name_match.group(1), params=params))
    return events


def extract_meta_pixel_events(js: str, html: str, patterns: CompiledPatterns = DEFAULT_PATTERNS) -> List[EventRecord]:
    events = []
    meta = Platform.META_PIXEL.value

    for match in patterns.fbq_track.finditer(js):
        name = match.group(1)
        if name.startswith('{{') and name.endswith('}}'):
            name = f"[Dynamic] {name}"
        elif name.lower() in META_RESERVED_NAMES:
            continue
        params = _params_after(js, match.end())
        events.append(EventRecord(type=meta, name=name, params=params or {}))

    for match in patterns.fbq_track_custom.finditer(js):
        name = match.group(1)
        if name.lower() in META_RESERVED_NAMES:
            continue
        params = _params_after(js, match.end())
        events.append(EventRecord(type=meta, name=f"Custom: {name}", params=params or {}))

    # These fire without an explicit fbq('track', 'PageView') in the page's JS
    if patterns.fb_noscript_pageview.search(html or ''):
        events.append(EventRecord(type=meta, name='PageView', params={'_source': 'noscript_or_url'}))
    if 'wpmDataLayer' in js and 'pixel_id' in js:
        events.append(EventRecord(type=meta, name='PageView', params={'_source': 'WooCommerce Pixel Manager'}))
    return events


def build_event_sources(page: PageContent, scripts: List[ScriptInfo]):
    """JS to mine (inline + downloaded, non-excluded external) and the raw HTML."""
    inline_js = '\n'.join(page.inline)
    external_js = '\n'.join(
        script.content for script in scripts
        if script.is_external and script.content and not script.exclude_from_events
    )
    return inline_js + '\n' + external_js, page.html or ''


def extract_events(page: PageContent, scripts: List[ScriptInfo], max_per_key: int = MAX_EVENTS_PER_KEY,
                   patterns: CompiledPatterns = DEFAULT_PATTERNS) -> List[EventRecord]:
    js, html = build_event_sources(page, scripts)
    collector = EventCollector(max_per_key)
    collector.extend(extract_ga4_events(js, patterns))
    collector.extend(extract_gtm_events(js, patterns))
    collector.extend(extract_meta_pixel_events(js, html, patterns))
    logger.info(f"Extracted {len(collector.events)} events "
                f"({sum(collector.seen.values())} call sites, {len(collector.seen)} distinct)")
    return collector.events


def find_duplicate_events(events: List[EventRecord]) -> List[EventRecord]:
    """Every occurrence of a (type, name) key after its first, in order."""
    seen: Dict[str, int] = {}
    duplicates = []
    for event in events:
        count = seen.get(event.key, 0)
        seen[event.key] = count + 1
        if count > 0:
            duplicates.append(event)
    return duplicates


def validate_event_parameters(events: List[EventRecord],
                              required_params: Dict[str, Dict[str, List[str]]] = None) -> List[EventIssue]:
    """``required_params`` maps event type -> event name -> params; defaults to ``REQUIRED_PARAMS``."""
    if required_params is None:
        required_params = REQUIRED_PARAMS
    issues = []
    for event in events:
        required = required_params.get(event.type, {}).get(event.name)
        if not required:
            continue
        params = event.params or {}
        missing = [param for param in required if param not in params]
        if missing:
            issues.append(EventIssue(event=event, missing_params=missing))
    return issues
