"""Shopify storefronts: Web Pixels Manager config and storefront fingerprints.

Shopify ships every pixel app's settings inside ``webPixelsConfigList``, a
JSON array whose entries carry a ``configuration`` JSON string, which for the
Google app carries yet another ``config`` JSON string. Each level is parsed by
its own step and every step has a regex fallback, so a malformed level only
costs completeness.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .patterns import DEFAULT_PATTERNS, SHOPIFY_GA4_RULES, CompiledPatterns

logger = logging.getLogger(__name__)

TIKTOK_API_CLIENT_ID = 4383523

# Events the official Meta app fires on its own; they never appear in the HTML
META_APP_STANDARD_EVENTS = (
    'PageView',
    'ViewContent',
    'AddToCart',
    'InitiateCheckout',
    'AddPaymentInfo',
    'Purchase',
    'Search',
)

SHOPIFY_APP_NAMES = {
    1780363: 'Google & YouTube (Official)',
    2329312: 'Meta Pixel (Facebook)',
    4383523: 'TikTok Pixel',
    12388204545: 'Third-party Analytics App',
    2775569: 'Shopify Analytics',
    123074: 'Klaviyo',
}

_PREFIX_BUCKETS = (
    ('G-', 'ga4_ids'),
    ('AW-', 'google_ads_ids'),
    ('GT-', 'google_tag_ids'),
    ('MC-', 'merchant_center_ids'),
)


@dataclass
class ConfiguredEvent:
    type: str
    action_labels: List[str]
    platform: str

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type, 'actionLabels': list(self.action_labels), 'platform': self.platform}


@dataclass
class ShopifyPixelsConfig:
    is_shopify: bool = False
    ga4_ids: List[str] = field(default_factory=list)
    google_ads_ids: List[str] = field(default_factory=list)
    google_tag_ids: List[str] = field(default_factory=list)
    merchant_center_ids: List[str] = field(default_factory=list)
    meta_pixel_ids: List[str] = field(default_factory=list)
    tiktok_pixel_ids: List[str] = field(default_factory=list)
    configured_events: List[ConfiguredEvent] = field(default_factory=list)
    has_meta_pixel_app: bool = False
    other_pixels: List[Dict[str, Any]] = field(default_factory=list)

    def add_id(self, bucket: str, value: str):
        ids = getattr(self, bucket)
        if value not in ids:
            ids.append(value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'isShopify': self.is_shopify,
            'ga4Ids': list(self.ga4_ids),
            'googleAdsIds': list(self.google_ads_ids),
            'googleTagIds': list(self.google_tag_ids),
            'merchantCenterIds': list(self.merchant_center_ids),
            'metaPixelIds': list(self.meta_pixel_ids),
            'tiktokPixelIds': list(self.tiktok_pixel_ids),
            'configuredEvents': [event.to_dict() for event in self.configured_events],
            'hasMetaPixelApp': self.has_meta_pixel_app,
            'otherPixels': list(self.other_pixels),
        }


def _loads(text: Any) -> Optional[Any]:
    if not isinstance(text, str):
        return None
    try:
        return json.loads(text)
    except ValueError:
        return None


def parse_pixel_config_list(raw_list: str) -> Optional[List[Dict[str, Any]]]:
    """Level 1: the body of ``webPixelsConfigList: [...]``."""
    parsed = _loads('[' + raw_list + ']')
    if not isinstance(parsed, list):
        return None
    return [entry for entry in parsed if isinstance(entry, dict)]


def parse_pixel_configuration(entry: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Level 2: an entry's ``configuration`` string."""
    parsed = _loads(entry.get('configuration'))
    return parsed if isinstance(parsed, dict) else None


def parse_inner_config(configuration: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Level 3: the Google app's ``config`` string inside the configuration."""
    parsed = _loads(configuration.get('config'))
    return parsed if isinstance(parsed, dict) else None


def _bucket_for(tag_id: str) -> Optional[str]:
    for prefix, bucket in _PREFIX_BUCKETS:
        if tag_id.startswith(prefix):
            return bucket
    return None


def _as_string_list(value: Any) -> Optional[List[str]]:
    """A single string or a list of values as strings; None for any other shape."""
    if value is None or value == '':
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(item) for item in value]
    return None


def apply_google_config(inner: Dict[str, Any], result: ShopifyPixelsConfig,
                        patterns: CompiledPatterns = DEFAULT_PATTERNS):
    tag_ids = _as_string_list(inner.get('google_tag_ids'))
    if tag_ids is None:
        extract_google_ids_from_string(json.dumps(inner.get('google_tag_ids'), default=str), result, patterns)
        tag_ids = []
    for tag_id in tag_ids:
        bucket = _bucket_for(tag_id)
        if bucket:
            result.add_id(bucket, tag_id)

    for event in inner.get('gtag_events') or []:
        if not isinstance(event, dict):
            continue
        labels = _as_string_list(event.get('action_label'))
        if labels is None:
            extract_google_ids_from_string(json.dumps(event, default=str), result, patterns)
            continue
        if event.get('type'):
            result.configured_events.append(ConfiguredEvent(type=event['type'], action_labels=labels, platform='GA4'))
        for label in labels:
            base_id = label.split('/')[0]
            bucket = _bucket_for(base_id)
            if bucket:
                result.add_id(bucket, base_id)


def extract_google_ids_from_string(content: str, result: ShopifyPixelsConfig,
                                   patterns: CompiledPatterns = DEFAULT_PATTERNS):
    """Flat regex scrape used whenever a JSON level cannot be parsed."""
    for match in patterns.flat_ga4.finditer(content):
        ga4_id = SHOPIFY_GA4_RULES.accept(match.group(1))
        if ga4_id:
            result.add_id('ga4_ids', ga4_id)
    for match in patterns.flat_google_ads.finditer(content):
        result.add_id('google_ads_ids', match.group(1).upper())
    for match in patterns.flat_google_tag.finditer(content):
        result.add_id('google_tag_ids', match.group(1).upper())
    for match in patterns.flat_merchant_center.finditer(content):
        result.add_id('merchant_center_ids', match.group(1).upper())
    for match in patterns.flat_meta_pixel.finditer(content):
        result.add_id('meta_pixel_ids', match.group(1))


def _apply_pixel_entry(entry: Dict[str, Any], result: ShopifyPixelsConfig, patterns: CompiledPatterns):
    if not entry.get('configuration'):
        return
    configuration = parse_pixel_configuration(entry)
    if configuration is None:
        extract_google_ids_from_string(str(entry['configuration']), result, patterns)
        return

    if configuration.get('config'):
        inner = parse_inner_config(configuration)
        if inner is None:
            extract_google_ids_from_string(str(configuration['config']), result, patterns)
        else:
            apply_google_config(inner, result, patterns)

    pixel_id = configuration.get('pixel_id')
    if pixel_id and configuration.get('pixel_type') == 'facebook_pixel':
        result.add_id('meta_pixel_ids', str(pixel_id))
        result.has_meta_pixel_app = True
        for event_name in META_APP_STANDARD_EVENTS:
            result.configured_events.append(
                ConfiguredEvent(type=event_name, action_labels=[str(pixel_id)], platform='MetaPixel'))

    if configuration.get('pixelCode') and entry.get('apiClientId') == TIKTOK_API_CLIENT_ID:
        result.add_id('tiktok_pixel_ids', str(configuration['pixelCode']))

    if configuration.get('accountID') and entry.get('type') == 'APP':
        result.other_pixels.append({
            'type': 'shopify_app',
            'id': configuration['accountID'],
            'apiClientId': entry.get('apiClientId'),
        })


def extract_shopify_pixels_config(html: str, patterns: CompiledPatterns = DEFAULT_PATTERNS) -> ShopifyPixelsConfig:
    result = ShopifyPixelsConfig(is_shopify=bool(patterns.shopify_storefront.search(html or '')))
    if not html:
        return result

    match = patterns.shopify_web_pixels_list.search(html)
    if match:
        entries = parse_pixel_config_list(match.group(1))
        if entries is None:
            logger.debug("webPixelsConfigList is not valid JSON, falling back to regex")
            extract_google_ids_from_string(match.group(1), result, patterns)
        else:
            for entry in entries:
                _apply_pixel_entry(entry, result, patterns)

    # Second pass over the whole page for IDs configured outside the pixel list
    extract_google_ids_from_string(html, result, patterns)
    return result


def extract_shopify_app_names(html: str, patterns: CompiledPatterns = DEFAULT_PATTERNS) -> List[str]:
    apps = []
    for match in patterns.shopify_api_client.finditer(html or ''):
        name = SHOPIFY_APP_NAMES.get(int(match.group(1)))
        if name and name not in apps:
            apps.append(name)
    return apps


def detect_shopify_tracking_patterns(html: str, patterns: CompiledPatterns = DEFAULT_PATTERNS) -> Dict[str, Any]:
    html = html or ''
    return {
        'has_web_pixels_manager': bool(patterns.shopify_web_pixels_manager.search(html)),
        'has_monorail_tracking': bool(patterns.shopify_monorail.search(html)),
        'has_trekkie_tracking': bool(patterns.shopify_trekkie.search(html)),
        'apps_detected': extract_shopify_app_names(html, patterns),
    }
