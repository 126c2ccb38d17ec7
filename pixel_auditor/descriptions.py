"""Human-readable details for every detector error code."""
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from .models import Platform


@dataclass(frozen=True)
class ErrorDetail:
    code: str
    severity: str  # 'error' | 'warning' | 'info'
    title: str
    description: str
    impact: str
    solution: str
    docs_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['docsUrl'] = data.pop('docs_url')
        return data


def _catalog(*details: ErrorDetail) -> Dict[str, ErrorDetail]:
    return {detail.code: detail for detail in details}


GA4_ERRORS = _catalog(
    ErrorDetail(
        code='multiple_ga4_ids',
        severity='warning',
        title='Multiple GA4 IDs detected',
        description='More than one GA4 measurement ID was found on the same page.',
        impact='Page views and events may be recorded several times, inflating traffic and conversion metrics.',
        solution='Keep only the primary measurement ID (G-XXXXXXXX). To send data to several properties, '
                 'configure it in GTM.',
        docs_url='https://support.google.com/analytics/answer/9304153',
    ),
    ErrorDetail(
        code='ga4_script_without_config',
        severity='error',
        title='GA4 script loaded without configuration',
        description='gtag.js is loaded but no gtag("config", "G-XXXXXXXX") call initializes tracking.',
        impact='GA4 is not collecting data. Page views, events and conversions are not recorded.',
        solution='Add the configuration after loading the script:\n\n'
                 'gtag("js", new Date());\ngtag("config", "G-XXXXXXXX");',
        docs_url='https://developers.google.com/analytics/devguides/collection/ga4',
    ),
    ErrorDetail(
        code='ga4_config_without_script',
        severity='error',
        title='GA4 configuration without script',
        description='gtag configuration code was found but gtag.js is not loaded on the page.',
        impact='GA4 does not work. gtag() does not exist, so every call fails silently.',
        solution='Load gtag.js before any gtag() call:\n\n'
                 '<script async src="https://www.googletagmanager.com/gtag/js?id=G-XXXXXXXX"></script>',
        docs_url='https://developers.google.com/analytics/devguides/collection/ga4',
    ),
    ErrorDetail(
        code='multiple_gtag_definitions',
        severity='warning',
        title='gtag() defined more than once',
        description='The page defines function gtag() several times.',
        impact='Later definitions can overwrite earlier ones and drop queued calls.',
        solution='Keep a single gtag snippet per page, or let GTM load GA4.',
        docs_url='https://developers.google.com/analytics/devguides/collection/ga4',
    ),
)

GTM_ERRORS = _catalog(
    ErrorDetail(
        code='duplicate_container',
        severity='warning',
        title='Multiple GTM containers detected',
        description='More than one Google Tag Manager container is installed on the page.',
        impact='Tags living in both containers fire twice and the containers may conflict.',
        solution='Consolidate the tags into one container unless several are genuinely required.',
        docs_url='https://support.google.com/tagmanager/answer/6103696',
    ),
    ErrorDetail(
        code='missing_noscript_fallback',
        severity='warning',
        title='GTM <noscript> fallback missing',
        description='The GTM container loads without its <noscript> iframe.',
        impact='Visitors with JavaScript disabled are not tracked.',
        solution='Add the GTM noscript iframe right after the opening <body> tag.',
        docs_url='https://developers.google.com/tag-platform/tag-manager/web',
    ),
    ErrorDetail(
        code='datalayer_not_initialized',
        severity='error',
        title='dataLayer not initialized',
        description='GTM is installed but the page never initializes window.dataLayer.',
        impact='Pushes made before GTM loads are lost and variables may be undefined.',
        solution='Add window.dataLayer = window.dataLayer || []; before the GTM snippet.',
        docs_url='https://developers.google.com/tag-platform/tag-manager/datalayer',
    ),
    ErrorDetail(
        code='multiple_datalayer_init',
        severity='warning',
        title='dataLayer initialized more than once',
        description='dataLayer = [] appears several times on the page.',
        impact='Re-initialization wipes events already pushed to the dataLayer.',
        solution='Always use window.dataLayer = window.dataLayer || []; and initialize once.',
        docs_url='https://developers.google.com/tag-platform/tag-manager/datalayer',
    ),
    ErrorDetail(
        code='gtm_loaded_multiple_times',
        severity='error',
        title='GTM loaded more than once',
        description='The same container loader (gtm.js) is requested several times.',
        impact='Every tag in the container fires twice, duplicating page views and conversions.',
        solution='Remove the duplicated GTM snippet, often added by both a theme and a plugin.',
        docs_url='https://support.google.com/tagmanager/answer/6103696',
    ),
)

META_PIXEL_ERRORS = _catalog(
    ErrorDetail(
        code='multiple_pixel_ids',
        severity='warning',
        title='Multiple Pixel IDs detected',
        description='More than one Meta Pixel ID is initialized on the page.',
        impact='Events are attributed to several pixels, which complicates optimization and reporting.',
        solution='Keep the pixel that belongs to the ad account unless several are intended.',
        docs_url='https://developers.facebook.com/docs/meta-pixel/',
    ),
    ErrorDetail(
        code='pixel_script_without_init',
        severity='error',
        title='Meta Pixel script without initialization',
        description="fbevents.js is loaded but no fbq('init', '<PIXEL_ID>') call was found.",
        impact='The pixel sends no events.',
        solution="Call fbq('init', '<PIXEL_ID>'); followed by fbq('track', 'PageView');",
        docs_url='https://developers.facebook.com/docs/meta-pixel/implementation/conversion-tracking',
    ),
    ErrorDetail(
        code='pixel_init_without_script',
        severity='error',
        title='Meta Pixel initialization without script',
        description="fbq('init') is called but fbevents.js is never loaded.",
        impact='Calls are queued but never sent to Meta.',
        solution='Install the complete base code from Events Manager.',
        docs_url='https://developers.facebook.com/docs/meta-pixel/implementation',
    ),
    ErrorDetail(
        code='multiple_fbq_definitions',
        severity='warning',
        title='fbq() defined more than once',
        description='The base code that defines fbq appears several times on the page.',
        impact='Duplicate base code can double-fire events.',
        solution='Keep a single copy of the Meta Pixel base code.',
        docs_url='https://developers.facebook.com/docs/meta-pixel/implementation',
    ),
    ErrorDetail(
        code='pixel_init_multiple_times',
        severity='warning',
        title='Pixel initialized more than once',
        description="The same pixel ID is passed to fbq('init') several times.",
        impact='PageView and other automatic events may be sent twice.',
        solution="Initialize each pixel ID once per page.",
        docs_url='https://developers.facebook.com/docs/meta-pixel/implementation',
    ),
    ErrorDetail(
        code='missing_noscript_fallback',
        severity='info',
        title='Meta Pixel <noscript> image missing',
        description='The pixel has no <noscript> image fallback.',
        impact='Visitors with JavaScript disabled do not trigger PageView.',
        solution='Add the <noscript> image tag from the Meta base code.',
        docs_url='https://developers.facebook.com/docs/meta-pixel/implementation',
    ),
    ErrorDetail(
        code='pixel_id_not_found',
        severity='warning',
        title='Meta Pixel detected but ID not found',
        description='The Meta Pixel library is loaded but no pixel ID could be read from the page.',
        impact='The ID may be set at runtime. The installation cannot be verified statically.',
        solution='Check the pixel with the Meta Pixel Helper browser extension.',
        docs_url='https://developers.facebook.com/docs/meta-pixel/support/pixel-helper',
    ),
)

GOOGLE_ADS_ERRORS = _catalog(
    ErrorDetail(
        code='multiple_google_ads_ids',
        severity='warning',
        title='Multiple Google Ads IDs detected',
        description='More than one Google Ads conversion ID is configured on the page.',
        impact='Conversions may be counted in several accounts.',
        solution='Keep only the conversion IDs of the accounts that advertise this site.',
        docs_url='https://support.google.com/google-ads/answer/7548399',
    ),
    ErrorDetail(
        code='google_ads_script_without_config',
        severity='error',
        title='Google Ads script loaded without configuration',
        description='gtag.js is loaded for an AW- ID but gtag("config", "AW-XXXXXXXXX") is missing.',
        impact='Remarketing and conversion tracking do not work.',
        solution='Add gtag("config", "AW-XXXXXXXXX"); after loading gtag.js.',
        docs_url='https://support.google.com/google-ads/answer/7548399',
    ),
    ErrorDetail(
        code='google_ads_config_without_script',
        severity='error',
        title='Google Ads configuration without script',
        description='An AW- configuration call exists but gtag.js is not loaded.',
        impact='No Google Ads data is sent.',
        solution='Load gtag.js with the AW- ID before configuring it.',
        docs_url='https://support.google.com/google-ads/answer/7548399',
    ),
)

ERRORS_BY_PLATFORM: Dict[Platform, Dict[str, ErrorDetail]] = {
    Platform.GA4: GA4_ERRORS,
    Platform.GTM: GTM_ERRORS,
    Platform.META_PIXEL: META_PIXEL_ERRORS,
    Platform.GOOGLE_ADS: GOOGLE_ADS_ERRORS,
}


def get_error_details(code: str, platform: Optional[Platform] = None) -> Optional[ErrorDetail]:
    """Look ``code`` up in ``platform``'s catalog, or in every catalog in order.

    ``missing_noscript_fallback`` exists for both GTM and Meta Pixel, so pass
    the platform whenever it is known.
    """
    if platform is not None:
        return ERRORS_BY_PLATFORM.get(platform, {}).get(code)
    for catalog in ERRORS_BY_PLATFORM.values():
        if code in catalog:
            return catalog[code]
    return None


def get_errors_details(codes: List[str], platform: Optional[Platform] = None) -> List[ErrorDetail]:
    details = [get_error_details(code, platform) for code in codes]
    return [detail for detail in details if detail is not None]
