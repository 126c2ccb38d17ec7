"""Catalog of standard GA4, GTM and Meta Pixel events with their expected parameters."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .models import Platform


@dataclass(frozen=True)
class EventParam:
    name: str
    type: str
    required: bool
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'type': self.type, 'required': self.required, 'description': self.description}


@dataclass(frozen=True)
class EventDetail:
    name: str
    platform: Platform
    category: str  # 'standard' | 'engagement' | 'ecommerce' | 'conversion'
    title: str
    description: str
    expected_params: Tuple[EventParam, ...] = ()
    best_practices: Tuple[str, ...] = ()

    @property
    def required_params(self) -> List[str]:
        return [param.name for param in self.expected_params if param.required]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'platform': self.platform.value,
            'category': self.category,
            'title': self.title,
            'description': self.description,
            'expectedParams': [param.to_dict() for param in self.expected_params],
            'bestPractices': list(self.best_practices),
        }


@dataclass
class EventParamsAnalysis:
    missing_required: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {'missingRequired': list(self.missing_required), 'warnings': list(self.warnings)}


def _p(name, type_, required, description):
    return EventParam(name, type_, required, description)


def _catalog(platform: Platform, *entries) -> Dict[str, EventDetail]:
    """Build a name -> EventDetail table from (name, category, title, description, params, practices) rows."""
    return {
        name: EventDetail(name, platform, category, title, description, tuple(params), tuple(practices))
        for name, category, title, description, params, practices in entries
    }


VALUE = _p('value', 'number', True, 'Monetary value')
CURRENCY = _p('currency', 'string', True, 'ISO 4217 currency code (USD, EUR, MXN)')
OPTIONAL_VALUE = _p('value', 'number', False, 'Monetary value')
OPTIONAL_CURRENCY = _p('currency', 'string', False, 'ISO 4217 currency code')
ITEMS = _p('items', 'array', True, 'Products involved in the event')

META_PIXEL_EVENTS = _catalog(
    Platform.META_PIXEL,
    ('PageView', 'standard', 'Page view',
     'Fires on every page load. The most basic pixel event.',
     [],
     ['Fire it once per page load', "Fire it right after fbq('init')"]),
    ('ViewContent', 'engagement', 'View content',
     'A visitor views a key page such as a product page or landing page.',
     [_p('content_name', 'string', False, 'Name of the product or content'),
      _p('content_ids', 'array', False, 'IDs of the products viewed'),
      _p('content_type', 'string', False, 'Content type, e.g. "product"'),
      OPTIONAL_VALUE, OPTIONAL_CURRENCY],
     ['Send content_ids for dynamic remarketing', 'Include value and currency on product pages']),
    ('AddToCart', 'ecommerce', 'Add to cart',
     'A product is added to the shopping cart.',
     [_p('content_ids', 'array', True, 'IDs of the products added'),
      _p('content_name', 'string', False, 'Product name'),
      _p('content_type', 'string', True, 'Must be "product"'),
      VALUE, CURRENCY],
     ['Always include content_ids for dynamic remarketing', 'value should be unit price times quantity']),
    ('InitiateCheckout', 'ecommerce', 'Initiate checkout',
     'The visitor starts the checkout flow.',
     [_p('content_ids', 'array', False, 'IDs of the products in the cart'),
      _p('contents', 'array', False, 'Product details'),
      _p('num_items', 'number', False, 'Number of items'),
      VALUE, CURRENCY],
     ['Fire it once when checkout starts, not on every checkout step']),
    ('Purchase', 'conversion', 'Purchase',
     'A purchase is completed. The most important ecommerce conversion.',
     [_p('content_ids', 'array', True, 'IDs of the products bought'),
      _p('content_type', 'string', True, 'Must be "product"'),
      VALUE, CURRENCY,
      _p('num_items', 'number', False, 'Number of items')],
     ['Fire it only on the order confirmation page', 'Deduplicate with the Conversions API using event_id']),
    ('Lead', 'conversion', 'Lead',
     'A visitor submits a form or otherwise becomes a lead.',
     [_p('content_name', 'string', False, 'Form or offer name'),
      _p('content_category', 'string', False, 'Lead category'),
      OPTIONAL_VALUE, OPTIONAL_CURRENCY],
     ['Fire it after a successful submission, not on click']),
    ('CompleteRegistration', 'conversion', 'Complete registration',
     'A visitor completes a registration.',
     [_p('content_name', 'string', False, 'Registration type'),
      _p('status', 'string', False, 'Registration status'),
      OPTIONAL_VALUE, OPTIONAL_CURRENCY],
     ['Fire it once the account is actually created']),
    ('Search', 'engagement', 'Search',
     'A search is performed on the site.',
     [_p('search_string', 'string', True, 'Search term'),
      _p('content_category', 'string', False, 'Category searched')],
     ['Send the search term so audiences can be built from it']),
    ('AddPaymentInfo', 'ecommerce', 'Add payment info',
     'Payment details are entered during checkout.',
     [_p('content_ids', 'array', False, 'Product IDs'), OPTIONAL_VALUE, OPTIONAL_CURRENCY],
     ['Fire it when payment details are saved']),
    ('AddToWishlist', 'engagement', 'Add to wishlist',
     'A product is added to a wishlist.',
     [_p('content_ids', 'array', False, 'Product IDs'),
      _p('content_name', 'string', False, 'Product name'),
      OPTIONAL_VALUE, OPTIONAL_CURRENCY],
     ['Useful for remarketing high-intent visitors']),
    ('Contact', 'conversion', 'Contact',
     'A visitor contacts the business by phone, email or chat.',
     [],
     ['Track "call now" and email link clicks']),
    ('Subscribe', 'conversion', 'Subscribe',
     'A paid subscription starts.',
     [OPTIONAL_VALUE, OPTIONAL_CURRENCY,
      _p('predicted_ltv', 'number', False, 'Predicted lifetime value')],
     ['Send predicted_ltv to optimize for long-term value']),
)

GA4_EVENTS = _catalog(
    Platform.GA4,
    ('page_view', 'standard', 'Page view',
     'Sent automatically by gtag config on every page load.',
     [_p('page_title', 'string', False, 'Page title'),
      _p('page_location', 'string', False, 'Full URL'),
      _p('page_referrer', 'string', False, 'Referrer URL')],
     ['Do not send it manually when send_page_view is enabled']),
    ('first_visit', 'standard', 'First visit',
     'Collected automatically the first time a user visits the site.',
     [],
     ['Automatic; do not implement it manually']),
    ('session_start', 'standard', 'Session start',
     'Collected automatically when a session starts.',
     [],
     ['Automatic; do not implement it manually']),
    ('purchase', 'ecommerce', 'Purchase',
     'A purchase is completed.',
     [_p('transaction_id', 'string', True, 'Unique transaction ID'), VALUE, CURRENCY, ITEMS],
     ['transaction_id must be unique to avoid duplicate revenue', 'Fire it only on the confirmation page']),
    ('add_to_cart', 'ecommerce', 'Add to cart',
     'A product is added to the cart.',
     [CURRENCY, VALUE, ITEMS],
     ['Send the items array with item_id and item_name']),
    ('begin_checkout', 'ecommerce', 'Begin checkout',
     'The user starts checkout.',
     [CURRENCY, VALUE, ITEMS, _p('coupon', 'string', False, 'Coupon code applied')],
     ['Fire it once per checkout']),
    ('generate_lead', 'conversion', 'Generate lead',
     'A lead form is submitted.',
     [OPTIONAL_VALUE, OPTIONAL_CURRENCY],
     ['Mark it as a key event in GA4']),
    ('sign_up', 'conversion', 'Sign up',
     'A user creates an account.',
     [_p('method', 'string', False, 'Sign-up method (email, Google, Facebook)')],
     ['Send method to compare sign-up channels']),
    ('login', 'engagement', 'Login',
     'A user logs in.',
     [_p('method', 'string', False, 'Login method')],
     ['Send method to compare login channels']),
    ('search', 'engagement', 'Search',
     'A site search is performed.',
     [_p('search_term', 'string', True, 'Search term')],
     ['Enhanced measurement can collect this automatically']),
    ('view_item', 'ecommerce', 'View item',
     'A product page is viewed.',
     [CURRENCY, VALUE, ITEMS],
     ['Required for the ecommerce purchase funnel reports']),
)

GTM_EVENTS = _catalog(
    Platform.GTM,
    ('gtm.js', 'standard', 'GTM loaded',
     'Pushed automatically when the container has loaded.',
     [],
     ['Automatic; do not push it manually']),
    ('gtm.dom', 'standard', 'DOM ready',
     'Pushed automatically when the DOM is ready.',
     [],
     ['Equivalent to DOMContentLoaded']),
    ('gtm.load', 'standard', 'Page loaded',
     'Pushed automatically when the page and its resources have loaded.',
     [],
     ['Equivalent to window.onload']),
    ('gtm.click', 'engagement', 'Click',
     'Pushed by GTM click triggers.',
     [_p('gtm.element', 'object', False, 'Clicked element'),
      _p('gtm.elementClasses', 'string', False, 'Element classes'),
      _p('gtm.elementId', 'string', False, 'Element ID')],
     ['Configure a click trigger in GTM instead of pushing it by hand']),
)

EVENTS_BY_PLATFORM: Dict[Platform, Dict[str, EventDetail]] = {
    Platform.GA4: GA4_EVENTS,
    Platform.GTM: GTM_EVENTS,
    Platform.META_PIXEL: META_PIXEL_EVENTS,
}


def get_event_details(name: str, platform) -> Optional[EventDetail]:
    """``platform`` may be a ``Platform`` or its string value ('GA4', 'GTM', 'MetaPixel')."""
    try:
        platform = Platform(platform)
    except ValueError:
        return None
    return EVENTS_BY_PLATFORM.get(platform, {}).get(name)


def analyze_event_params(name: str, platform, params: Dict[str, Any] = None) -> EventParamsAnalysis:
    """Check ``params`` against the catalog entry for ``name``.

    Unknown events only get a warning. A required param counts as missing when
    it is absent, None or an empty string.
    """
    params = params or {}
    analysis = EventParamsAnalysis()
    detail = get_event_details(name, platform)
    if detail is None:
        analysis.warnings.append(f'Event "{name}" is not a recognized standard event. '
                                 f'Standard events optimize better.')
        return analysis

    analysis.missing_required = [
        param for param in detail.required_params if params.get(param) is None or params.get(param) == ''
    ]
    if analysis.missing_required:
        analysis.warnings.append(f"Missing required parameters: {', '.join(analysis.missing_required)}")
    if not params and detail.expected_params:
        analysis.warnings.append('The event is sent without parameters. Add data for better analysis.')
    return analysis


def describe_event(name: str, platform, params: Dict[str, Any] = None) -> Dict[str, Any]:
    """Catalog entry (or None) plus the params analysis, ready for output."""
    detail = get_event_details(name, platform)
    data = analyze_event_params(name, platform, params).to_dict()
    data['details'] = detail.to_dict() if detail else None
    return data
