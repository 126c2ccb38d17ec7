import re
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Pattern, Tuple

# Bump when a false-positive set, ID shape or heuristic below changes.
RULES_VERSION = "2024.11"


@dataclass(frozen=True)
class ValidationRules:
    """Acceptance chain for a raw ID candidate.

    Candidates are checked in order: shape, contains a digit, not all letters
    after the prefix, not a known false positive, and (optionally) no irregular
    mixed casing. Accepted IDs come back upper-cased.
    """
    prefix: str
    shape: Pattern
    false_positives: FrozenSet[str] = frozenset()
    require_digit: bool = True
    reject_all_letters: bool = True
    check_irregular_casing: bool = False
    validate_upper: bool = False

    def accept(self, raw: str) -> Optional[str]:
        if not raw:
            return None
        candidate = raw.upper()
        if not self.shape.match(candidate if self.validate_upper else raw):
            return None
        tail = candidate[len(self.prefix):]
        if self.require_digit and not any(ch.isdigit() for ch in tail):
            return None
        if self.reject_all_letters and tail.isalpha():
            return None
        if candidate in self.false_positives:
            return None
        if self.check_irregular_casing and has_irregular_casing(raw, len(self.prefix)):
            return None
        return candidate


def has_irregular_casing(original: str, prefix_length: int) -> bool:
    """Heuristic: lowercase anywhere plus uppercase after the prefix.

    Real Google IDs are consistently cased, so a mix usually means the match
    came out of unrelated minified text. Kept as a labelled heuristic pending
    product review; it has no documented rationale beyond observed noise.
    """
    return any(ch.islower() for ch in original) and any(ch.isupper() for ch in original[prefix_length:])


GA4_FALSE_POSITIVES = frozenset({
    'G-RECAPTCHA', 'G-SAMPLING', 'G-ANIMATION',
    'G-IMAGE', 'G-VIDEO', 'G-AUDIO',
})

GTM_FALSE_POSITIVES = frozenset({
    'GTM-TEMPLATE', 'GTM-INDEX', 'GTM-EXAMPLE', 'GTM-XXXXXX',
    'GTM-TEST', 'GTM-DEBUG', 'GTM-PLACEHOLDER',
})

# Placeholder IDs copied verbatim from vendor docs and tutorials
META_PIXEL_FALSE_POSITIVES = frozenset({
    '1234567890', '123456789012345', '1234567890123456', '0000000000000000',
})

GA4_RULES = ValidationRules(
    prefix='G-',
    shape=re.compile(r'^G-[A-Z0-9]{6,12}$', re.IGNORECASE),
    false_positives=GA4_FALSE_POSITIVES,
    check_irregular_casing=True,
)

GTM_RULES = ValidationRules(
    prefix='GTM-',
    shape=re.compile(r'^GTM-[A-Z0-9]{5,10}$'),
    false_positives=GTM_FALSE_POSITIVES,
    validate_upper=True,
)

META_PIXEL_RULES = ValidationRules(
    prefix='',
    shape=re.compile(r'^\d{10,20}$'),
    false_positives=META_PIXEL_FALSE_POSITIVES,
    reject_all_letters=False,
)

GOOGLE_ADS_RULES = ValidationRules(
    prefix='AW-',
    shape=re.compile(r'^AW-\d{9,12}$'),
    validate_upper=True,
)

SHOPIFY_GA4_RULES = ValidationRules(
    prefix='G-',
    shape=re.compile(r'^G-[A-Z0-9]{8,12}$'),
    false_positives=GA4_FALSE_POSITIVES,
    check_irregular_casing=True,
    validate_upper=True,
)


def _ci(pattern: str) -> Pattern:
    return re.compile(pattern, re.IGNORECASE)


@dataclass
class CompiledPatterns:
    """Every regex the engine runs, compiled once and grouped per platform.

    ``*_id_patterns`` are ordered (name, pattern) batteries whose first group
    is an ID candidate. Names let detectors ask which families matched.
    """
    ga4_id_patterns: List[Tuple[str, Pattern]] = field(default_factory=lambda: [
        ('script', _ci(r'googletagmanager\.com/gtag/js\?id=(G-[A-Z0-9]+)')),
        ('config', _ci(r'gtag\s*\(\s*[\'"]config[\'"]\s*,\s*[\'"](G-[A-Z0-9]+)[\'"]')),
        ('measurement_id', _ci(r'[\'"]measurement_id[\'"]\s*:\s*[\'"](G-[A-Z0-9]+)[\'"]')),
        ('quoted', _ci(r'[\'"](G-[A-Z0-9]{6,12})[\'"]')),
        ('data_attr', _ci(r'data-(?:ga4?|analytics|measurement)=[\'"]?(G-[A-Z0-9]+)[\'"]?')),
        ('js_var', _ci(r'(?:var|let|const)\s+(?:ga4_?id|measurement_?id|tracking_?id)\s*=\s*[\'"](G-[A-Z0-9]+)[\'"]')),
        ('json_config', _ci(r'"(?:ga4|measurement_id|tracking_id|analytics_id)":\s*"(G-[A-Z0-9]+)"')),
        ('gtag_js', _ci(r'gtag\.js\?id=(G-[A-Z0-9]+)')),
        ('platform', _ci(r'(?:googleAnalytics|ga4Id|gaTrackingId)[\'"]?\s*[:=]\s*[\'"](G-[A-Z0-9]+)[\'"]')),
        ('collect', _ci(r'google-analytics\.com/g/collect\?.*?tid=(G-[A-Z0-9]+)')),
    ])
    gtag_loader: Pattern = field(default_factory=lambda: _ci(r'googletagmanager\.com/gtag/js'))
    gtag_definition: Pattern = field(default_factory=lambda: re.compile(r'function\s+gtag\s*\(\s*\)\s*\{'))

    gtm_id_patterns: List[Tuple[str, Pattern]] = field(default_factory=lambda: [
        ('script', _ci(r'googletagmanager\.com/gtm\.js\?id=(GTM-[A-Z0-9]+)')),
        ('iframe', _ci(r'googletagmanager\.com/ns\.html\?id=(GTM-[A-Z0-9]+)')),
        ('gtm_start', _ci(r'[\'"]gtm\.start[\'"]\s*:[\s\S]*?[\'"](GTM-[A-Z0-9]+)[\'"]')),
        ('quoted', _ci(r'[\'"](GTM-[A-Z0-9]{5,10})[\'"]')),
        ('data_attr', _ci(r'data-(?:gtm|tag-manager|container)=[\'"]?(GTM-[A-Z0-9]+)[\'"]?')),
        ('js_var', _ci(r'(?:var|let|const)\s+(?:gtm_?id|container_?id)\s*=\s*[\'"](GTM-[A-Z0-9]+)[\'"]')),
        ('json_config', _ci(r'"(?:gtm_?id|container_?id|tag_manager)":\s*"(GTM-[A-Z0-9]+)"')),
        ('platform', _ci(r'(?:google_tag_manager|gtmContainerId|gtmId)[\'"]?\s*[:=]\s*[\'"](GTM-[A-Z0-9]+)[\'"]')),
        ('dynamic', _ci(r'new\s+Date\(\)\.getTime\(\)[\s\S]*?(GTM-[A-Z0-9]+)')),
        ('window', _ci(r'window\.(?:gtmId|GTM_ID|containerId)\s*=\s*[\'"](GTM-[A-Z0-9]+)[\'"]')),
    ])
    datalayer_init: Pattern = field(default_factory=lambda: _ci(r'dataLayer\s*=\s*(?:dataLayer\s*\|\|\s*)?\[\]'))
    window_datalayer: Pattern = field(default_factory=lambda: re.compile(r'window\.dataLayer\s*='))
    datalayer_or_init: Pattern = field(default_factory=lambda: re.compile(r'dataLayer\s*=\s*dataLayer\s*\|\|\s*\[\]'))
    datalayer_push: Pattern = field(default_factory=lambda: re.compile(r'dataLayer\.push'))

    meta_pixel_id_patterns: List[Tuple[str, Pattern]] = field(default_factory=lambda: [
        ('init', _ci(r'fbq\s*\(\s*[\'"]init[\'"]\s*,\s*[\'"](\d{10,20})[\'"]')),
        ('push_init', _ci(r'_fbq\.push\s*\(\s*\[\s*[\'"]init[\'"]\s*,\s*[\'"](\d{10,20})[\'"]')),
        ('config', _ci(r'[\'"]?(?:pixel_?[Ii]d|fb_pixel_id)[\'"]?\s*[:=]\s*[\'"]?(\d{10,20})[\'"]?')),
        ('tracking_url', _ci(r'facebook\.com/tr\?(?:[^"\']*&)?id=(\d{10,20})')),
        ('data_attr', _ci(r'data-(?:fb-?pixel|pixel-id|facebook-pixel)=[\'"](\d{10,20})[\'"]')),
        ('js_var', _ci(r'(?:var|let|const)\s+(?:fb_?pixel_?id|pixel_?id)\s*=\s*[\'"](\d{10,20})[\'"]')),
        ('json_config', _ci(r'"(?:meta_?pixel|facebook_?pixel|fb_?pixel)":\s*"(\d{10,20})"')),
        ('queue', _ci(r'fbq\.queue\.push\s*\(\s*\[\s*[\'"]init[\'"]\s*,\s*[\'"](\d{10,20})[\'"]')),
        ('platform', _ci(r'(?:facebook_pixel_id|fbPixelId)[\'"]?\s*[:=]\s*[\'"]?(\d{10,20})[\'"]?')),
    ])
    fb_script_url: Pattern = field(default_factory=lambda: _ci(r'(?:connect\.facebook\.net|facebook\.com)/[a-z_-]+/(?:fbevents|sdk)\.js'))
    fb_loader_fingerprint: Pattern = field(default_factory=lambda: _ci(r'fbevents\.js|fbq\s*=\s*function'))
    fbq_definition: Pattern = field(default_factory=lambda: re.compile(r'n\s*=\s*f\.fbq\s*=\s*function|window\.fbq\s*='))
    fbq_init: Pattern = field(default_factory=lambda: _ci(r'fbq\s*\(\s*[\'"]init[\'"]\s*,\s*[\'"](\d{10,20})[\'"]'))
    fb_noscript: Pattern = field(default_factory=lambda: _ci(r'<noscript[^>]*>[\s\S]*?facebook\.com/tr\?(?:[^"\']*&)?id='))
    fbq_legacy: Pattern = field(default_factory=lambda: re.compile(r'_fbq\.push'))
    fbq_modern: Pattern = field(default_factory=lambda: re.compile(r'fbq\s*\(\s*[\'"]init[\'"]'))
    fbq_auto_config: Pattern = field(default_factory=lambda: re.compile(
        r'fbq\s*\(\s*[\'"]init[\'"]\s*,\s*[\'"](\d{15,16})[\'"]\s*,\s*\{.*?autoConfig'))

    google_ads_id_patterns: List[Tuple[str, Pattern]] = field(default_factory=lambda: [
        ('script', _ci(r'googletagmanager\.com/gtag/js\?id=(AW-\d+)')),
        ('config', _ci(r'gtag\s*\(\s*[\'"]config[\'"]\s*,\s*[\'"](AW-\d+)[\'"]')),
        ('quoted', _ci(r'[\'"](AW-\d{9,12})[\'"]')),
        ('data_attr', _ci(r'data-(?:google-?ads?|conversion|aw)=[\'"]?(AW-\d+)[\'"]?')),
        ('js_var', _ci(r'(?:var|let|const)\s+(?:google_?ads?_?id|aw_?id|conversion_?id)\s*=\s*[\'"](AW-\d+)[\'"]')),
        ('json_config', _ci(r'"(?:google_?ads?|aw_?id|adwords)":\s*"(AW-\d+)"')),
        ('goog_report', _ci(r'goog_report_conversion\s*\(\s*[\'"](AW-\d+)')),
    ])
    ads_conversion: Pattern = field(default_factory=lambda: _ci(
        r'gtag\s*\(\s*[\'"]event[\'"]\s*,\s*[\'"]conversion[\'"]\s*,\s*\{[^}]*[\'"]send_to[\'"]\s*:\s*[\'"](AW-\d+(?:/[^\'"]+)?)[\'"]'))
    ads_numeric_conversion: Pattern = field(default_factory=lambda: _ci(r'googleadservices\.com/pagead/conversion/(\d{9,12})'))
    ads_conversion_linker: Pattern = field(default_factory=lambda: _ci(
        r'googleads\.g\.doubleclick\.net|www\.googleadservices\.com/pagead/conversion/(AW-?\d+|\d+)'))
    ads_report_conversion: Pattern = field(default_factory=lambda: _ci(
        r'gtag_report_conversion\s*\([^)]*\)|function\s+gtag_report_conversion'))

    # Scanning scripts for GTM containers that a browser would go on to load
    embedded_gtm_ids: List[Pattern] = field(default_factory=lambda: [
        _ci(r'[\'"](GTM-[A-Z0-9]+)[\'"]'),
        _ci(r'id=(GTM-[A-Z0-9]+)'),
        _ci(r'gtm\.js\?id=(GTM-[A-Z0-9]+)'),
    ])
    # Script URLs not carried by a <script src>; tracking pixels and noscript iframes are not scripts
    extra_script_candidates: List[Pattern] = field(default_factory=lambda: [
        _ci(r'<link[^>]+rel=["\']preload["\'][^>]+as=["\']script["\'][^>]+href=["\']([^"\']+)["\']'),
        _ci(r'import\(\s*["\'](https?://[^"\']+)["\']\s*\)'),
    ])

    # Event call sites
    gtag_event: Pattern = field(default_factory=lambda: _ci(
        r'gtag\s*\(\s*[\'"]event[\'"]\s*,\s*[\'"]([a-zA-Z][a-zA-Z0-9_]+)[\'"]'))
    datalayer_push_open: Pattern = field(default_factory=lambda: _ci(r'dataLayer\.push\s*\(\s*\{'))
    event_key: Pattern = field(default_factory=lambda: re.compile(
        r'(?:^|[{,\s])[\'"]?event[\'"]?\s*:\s*[\'"]([^\'"]+)[\'"]', re.IGNORECASE))
    snake_case_event: Pattern = field(default_factory=lambda: re.compile(r'^[a-z][a-z0-9]*(?:_[a-z0-9]+)+$'))
    fbq_track: Pattern = field(default_factory=lambda: _ci(
        r'fbq\s*\(\s*(?:[\'"]|\\[\'"])\s*track\s*(?:[\'"]|\\[\'"])\s*,\s*(?:[\'"]|\\[\'"])?'
        r'((?:[A-Za-z][A-Za-z0-9_]+)|(?:\{\{.*?\}\}))(?:[\'"]|\\[\'"])?'))
    fbq_track_custom: Pattern = field(default_factory=lambda: _ci(
        r'fbq\s*\(\s*(?:[\'"]|\\[\'"])\s*trackCustom\s*(?:[\'"]|\\[\'"])\s*,\s*(?:[\'"]|\\[\'"])'
        r'([A-Za-z][A-Za-z0-9_]+)(?:[\'"]|\\[\'"])'))
    fb_noscript_pageview: Pattern = field(default_factory=lambda: _ci(r'facebook\.com/tr/?\?[^"\']*ev=PageView'))

    # Shopify storefront
    shopify_web_pixels_list: Pattern = field(default_factory=lambda: _ci(
        r'webPixelsConfigList:\s*\[([\s\S]*?)\](?=,\s*(?:isMerchantRequest|initData|$))'))
    shopify_storefront: Pattern = field(default_factory=lambda: _ci(
        r'Shopify\.(?:shop|theme|locale|currency)|shopify\.com|myshopify\.com|web-pixels-manager'))
    shopify_web_pixels_manager: Pattern = field(default_factory=lambda: _ci(r'web-pixels-manager|webPixelsManager'))
    shopify_monorail: Pattern = field(default_factory=lambda: _ci(r'monorail-edge\.shopifysvc\.com'))
    shopify_trekkie: Pattern = field(default_factory=lambda: _ci(r'trekkie|shopify-analytics'))
    shopify_api_client: Pattern = field(default_factory=lambda: re.compile(r'"apiClientId":\s*(\d+)'))
    flat_ga4: Pattern = field(default_factory=lambda: _ci(r'[\'"\\]?(G-[A-Z0-9]{8,12})[\'"\\]?'))
    flat_google_ads: Pattern = field(default_factory=lambda: _ci(r'[\'"\\]?(AW-\d{9,12})[\'"\\]?'))
    flat_google_tag: Pattern = field(default_factory=lambda: _ci(r'[\'"\\]?(GT-[A-Z0-9]{6,12})[\'"\\]?'))
    flat_merchant_center: Pattern = field(default_factory=lambda: _ci(r'[\'"\\]?(MC-[A-Z0-9]{8,12})[\'"\\]?'))
    flat_meta_pixel: Pattern = field(default_factory=lambda: _ci(r'pixel_id[\'":\s\\]+[\'"\\]?(\d{15,16})[\'"\\]?'))


DEFAULT_PATTERNS = CompiledPatterns()
