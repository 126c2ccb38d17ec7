"""Static audit of marketing tags (GA4, GTM, Meta Pixel, Google Ads, Shopify pixels) on a web page."""
from .auditor import PLATFORM_STRATEGIES, AuditorConfig, PixelAuditor, PlatformStrategy, run_pixel_audit
from .errors import InputError, PageFetchError, PageTimeoutError, PixelAuditError
from .event_catalog import EventDetail, analyze_event_params, get_event_details
from .fetcher import RetryConfig
from .models import AuditResult, DetectorResult, EventIssue, EventRecord, Platform, ScriptInfo
from .patterns import RULES_VERSION, CompiledPatterns, ValidationRules

__version__ = "1.0.0"

__all__ = [
    'AuditResult',
    'AuditorConfig',
    'CompiledPatterns',
    'DetectorResult',
    'EventDetail',
    'EventIssue',
    'EventRecord',
    'InputError',
    'PLATFORM_STRATEGIES',
    'PageFetchError',
    'PageTimeoutError',
    'PixelAuditError',
    'PixelAuditor',
    'Platform',
    'PlatformStrategy',
    'RULES_VERSION',
    'RetryConfig',
    'ScriptInfo',
    'ValidationRules',
    'analyze_event_params',
    'get_event_details',
    'run_pixel_audit',
]
