from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Platform(str, Enum):
    GA4 = "GA4"
    GTM = "GTM"
    META_PIXEL = "MetaPixel"
    GOOGLE_ADS = "GoogleAds"
    SHOPIFY = "Shopify"


@dataclass
class ExternalScriptRef:
    src: str
    content: Optional[str] = None


@dataclass
class PageContent:
    """Raw page HTML plus the scripts found in it."""

    html: str
    inline: List[str] = field(default_factory=list)
    external: List[ExternalScriptRef] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'html': self.html,
            'scripts': {
                'inline': list(self.inline),
                'external': [
                    {'src': ref.src, 'content': ref.content} if ref.content is not None else {'src': ref.src}
                    for ref in self.external
                ],
            },
        }


@dataclass
class ScriptInfo:
    type: str  # 'inline' | 'external'
    content: str = ''
    src: Optional[str] = None
    exclude_from_events: bool = False

    @property
    def is_external(self) -> bool:
        return self.type == 'external'

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'type': self.type, 'content': self.content}
        if self.src is not None:
            data['src'] = self.src
        if self.exclude_from_events:
            data['excludeFromEvents'] = True
        return data


@dataclass
class DetectorResult:
    detected: bool = False
    ids: List[str] = None
    errors: List[str] = None
    conversions: Optional[List[str]] = None
    id_key: str = 'ids'
    errors_details: Optional[List[Dict[str, Any]]] = None

    def __post_init__(self):
        if self.ids is None:
            self.ids = []
        if self.errors is None:
            self.errors = []

    def add_error(self, code: str):
        if code not in self.errors:
            self.errors.append(code)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'detected': self.detected,
            self.id_key: list(self.ids),
            'errors': list(self.errors),
        }
        if self.conversions is not None:
            data['conversions'] = list(self.conversions)
        if self.errors_details is not None:
            data['errorsDetails'] = self.errors_details
        return data


@dataclass
class EventRecord:
    type: str  # one of Platform.GA4 / GTM / META_PIXEL values
    name: str
    params: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return f"{self.type}:{self.name}"

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type, 'name': self.name, 'params': dict(self.params)}


@dataclass
class EventIssue:
    event: EventRecord
    missing_params: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {'event': self.event.to_dict(), 'missingParams': list(self.missing_params)}


@dataclass
class ShopifyInfo:
    is_shopify: bool = False
    apps_detected: List[str] = field(default_factory=list)
    has_web_pixels_manager: bool = False
    tiktok_pixel_ids: List[str] = field(default_factory=list)
    has_monorail_tracking: bool = False
    has_trekkie_tracking: bool = False
    web_pixels: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'isShopify': self.is_shopify,
            'appsDetected': list(self.apps_detected),
            'hasWebPixelsManager': self.has_web_pixels_manager,
            'tiktokPixelIds': list(self.tiktok_pixel_ids),
            'hasMonorailTracking': self.has_monorail_tracking,
            'hasTrekkieTracking': self.has_trekkie_tracking,
        }
        if self.web_pixels is not None:
            data['webPixels'] = self.web_pixels
        return data


@dataclass
class AuditSummary:
    tracking_health_score: int = 100
    issues_found: int = 0
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'trackingHealthScore': self.tracking_health_score,
            'issuesFound': self.issues_found,
            'recommendations': list(self.recommendations),
        }


@dataclass
class AuditResult:
    url: str
    ga4: DetectorResult
    gtm: DetectorResult
    meta_pixel: DetectorResult
    google_ads: DetectorResult
    shopify: ShopifyInfo
    events: List[EventRecord]
    summary: AuditSummary
    merchant_center: DetectorResult = field(default_factory=DetectorResult)
    status: str = 'ok'
    # Only populated when details are requested
    external_scripts: Optional[List[ScriptInfo]] = None
    duplicates: Optional[List[EventRecord]] = None
    analysis: Optional[List[EventIssue]] = None
    events_analysis: Optional[List[Dict[str, Any]]] = None
    trace_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'status': self.status,
            'url': self.url,
            'ga4': self.ga4.to_dict(),
            'gtm': self.gtm.to_dict(),
            'metaPixel': self.meta_pixel.to_dict(),
            'googleAds': self.google_ads.to_dict(),
            'merchantCenter': self.merchant_center.to_dict(),
            'shopify': self.shopify.to_dict(),
            'events': [event.to_dict() for event in self.events],
            'summary': self.summary.to_dict(),
        }
        if self.external_scripts is not None:
            data['externalScripts'] = [script.to_dict() for script in self.external_scripts]
        if self.duplicates is not None:
            data['duplicates'] = [event.to_dict() for event in self.duplicates]
        if self.analysis is not None:
            data['analysis'] = [issue.to_dict() for issue in self.analysis]
        if self.events_analysis is not None:
            data['eventsAnalysis'] = self.events_analysis
        if self.trace_id is not None:
            data['traceId'] = self.trace_id
        return data
