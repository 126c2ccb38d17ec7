import pytest

from pixel_auditor.detectors import (
    GA4DetectorPlugin,
    GoogleAdsDetectorPlugin,
    GTMDetectorPlugin,
    MetaPixelDetectorPlugin,
    analyze_data_layer,
    detect_pixel_version,
    extract_ga4_config,
    extract_google_ads_config,
    extract_pixel_config,
    is_valid_ga4_id,
    is_valid_google_ads_id,
    is_valid_gtm_id,
    is_valid_pixel_id,
)
from pixel_auditor.models import ScriptInfo

from .conftest import GA4_SNIPPET, GTM_SNIPPET, META_SNIPPET


# GA4

def test_ga4_full_snippet(page_factory):
    page, scripts = page_factory(GA4_SNIPPET)
    result = GA4DetectorPlugin().detect(page, scripts)
    assert result.detected is True
    assert result.ids == ['G-ABC1234567']
    assert result.errors == []


def test_ga4_script_without_config(page_factory):
    page, scripts = page_factory(
        '<script src="https://www.googletagmanager.com/gtag/js?id=G-ABC1234567"></script>')
    result = GA4DetectorPlugin().detect(page, scripts)
    assert result.detected is True
    assert 'ga4_script_without_config' in result.errors


def test_ga4_config_without_script(page_factory):
    page, scripts = page_factory("<script>gtag('config', 'G-ABC1234567');</script>")
    result = GA4DetectorPlugin().detect(page, scripts)
    assert result.errors == ['ga4_config_without_script']


def test_ga4_rejects_false_positives(page_factory):
    page, scripts = page_factory("<script>var a = 'G-RECAPTCHA'; var b = 'G-ANIMATION';</script>")
    result = GA4DetectorPlugin().detect(page, scripts)
    assert 'G-RECAPTCHA' not in result.ids
    assert result.detected is False


def test_ga4_rejects_irregular_casing(page_factory):
    page, scripts = page_factory("<script>x = 'g-AbC1234567';</script>")
    assert GA4DetectorPlugin().detect(page, scripts).ids == []


def test_ga4_multiple_ids_and_definitions(page_factory):
    body = GA4_SNIPPET + "<script>function gtag(){dataLayer.push(arguments);} gtag('config', 'G-XYZ9876543');</script>"
    page, scripts = page_factory(body)
    result = GA4DetectorPlugin().detect(page, scripts)
    assert result.ids == ['G-ABC1234567', 'G-XYZ9876543']
    assert 'multiple_ga4_ids' in result.errors
    assert 'multiple_gtag_definitions' in result.errors


def test_ga4_reads_downloaded_script_content(page_factory):
    page, scripts = page_factory('<p>no tags</p>')
    scripts.append(ScriptInfo(type='external', src='https://shop.example.com/app.js',
                              content="gtag('config', 'G-ABC1234567');"))
    result = GA4DetectorPlugin().detect(page, scripts)
    assert result.ids == ['G-ABC1234567']


def test_detection_is_idempotent(page_factory):
    page, scripts = page_factory(GA4_SNIPPET + GTM_SNIPPET + META_SNIPPET)
    for plugin in (GA4DetectorPlugin(), GTMDetectorPlugin(), MetaPixelDetectorPlugin(), GoogleAdsDetectorPlugin()):
        assert plugin.detect(page, scripts) == plugin.detect(page, scripts)


# GTM

def test_gtm_standard_snippet(page_factory):
    page, scripts = page_factory(GTM_SNIPPET)
    result = GTMDetectorPlugin().detect(page, scripts)
    assert result.detected is True
    assert result.ids == ['GTM-ABC1234']
    assert result.to_dict()['containers'] == ['GTM-ABC1234']
    # The snippet initializes via w[l]=w[l]||[], not a dataLayer assignment
    assert result.errors == ['datalayer_not_initialized']


def test_gtm_loaded_multiple_times(page_factory):
    loader = '<script async src="https://www.googletagmanager.com/gtm.js?id=GTM-ABC1234"></script>'
    page, scripts = page_factory("<script>window.dataLayer = window.dataLayer || [];</script>" + loader + loader)
    result = GTMDetectorPlugin().detect(page, scripts)
    assert 'gtm_loaded_multiple_times' in result.errors
    assert 'missing_noscript_fallback' in result.errors
    assert 'duplicate_container' not in result.errors


def test_gtm_duplicate_container_and_datalayer_init(page_factory):
    body = ("<script>dataLayer = []; dataLayer = [];</script>"
            "<script>x('GTM-ABC1234'); y('GTM-XYZ9876');</script>")
    page, scripts = page_factory(body)
    result = GTMDetectorPlugin().detect(page, scripts)
    assert result.ids == ['GTM-ABC1234', 'GTM-XYZ9876']
    assert 'duplicate_container' in result.errors
    assert 'multiple_datalayer_init' in result.errors


def test_gtm_rejects_placeholders(page_factory):
    page, scripts = page_factory("<script>x('GTM-XXXXXX'); y('GTM-TEMPLATE');</script>")
    assert GTMDetectorPlugin().detect(page, scripts).detected is False


# Meta Pixel

def test_meta_pixel_full_snippet(page_factory):
    page, scripts = page_factory(META_SNIPPET)
    result = MetaPixelDetectorPlugin().detect(page, scripts)
    assert result.detected is True
    assert result.ids == ['987654321012345']
    assert result.errors == []


def test_meta_pixel_script_without_id(page_factory):
    page, scripts = page_factory('<script src="https://connect.facebook.net/en_US/fbevents.js"></script>')
    result = MetaPixelDetectorPlugin().detect(page, scripts)
    assert result.detected is True
    assert result.ids == []
    assert result.errors == ['pixel_id_not_found', 'pixel_script_without_init']


def test_meta_pixel_init_without_script(page_factory):
    page, scripts = page_factory("<script>fbq('init', '987654321012345');</script>")
    result = MetaPixelDetectorPlugin().detect(page, scripts)
    assert 'pixel_init_without_script' in result.errors
    assert 'missing_noscript_fallback' in result.errors


def test_meta_pixel_repeated_init_and_multiple_ids(page_factory):
    body = META_SNIPPET + "<script>fbq('init', '987654321012345'); fbq('init', '111122223333444');</script>"
    page, scripts = page_factory(body)
    result = MetaPixelDetectorPlugin().detect(page, scripts)
    assert result.ids == ['987654321012345', '111122223333444']
    assert 'pixel_init_multiple_times' in result.errors
    assert 'multiple_pixel_ids' in result.errors


def test_meta_pixel_rejects_placeholder(page_factory):
    page, scripts = page_factory("<script>fbq('init', '1234567890');</script>")
    assert MetaPixelDetectorPlugin().detect(page, scripts).detected is False


# Google Ads

def test_google_ads_with_conversion(page_factory):
    body = """
    <script async src="https://www.googletagmanager.com/gtag/js?id=AW-123456789"></script>
    <script>
      gtag('config', 'AW-123456789');
      gtag('event', 'conversion', {'send_to': 'AW-123456789/AbC-D_efG'});
    </script>
    """
    page, scripts = page_factory(body)
    result = GoogleAdsDetectorPlugin().detect(page, scripts)
    assert result.detected is True
    assert result.ids == ['AW-123456789']
    assert result.conversions == ['AW-123456789/AbC-D_efG']
    assert result.errors == []
    assert result.to_dict()['conversions'] == ['AW-123456789/AbC-D_efG']


def test_google_ads_report_conversion_counts_as_detected(page_factory):
    page, scripts = page_factory("<script>function gtag_report_conversion(url) { return false; }</script>")
    result = GoogleAdsDetectorPlugin().detect(page, scripts)
    assert result.detected is True
    assert result.ids == []
    assert 'conversions' not in result.to_dict()


def test_google_ads_numeric_conversion_url(page_factory):
    page, scripts = page_factory(
        '<img src="https://www.googleadservices.com/pagead/conversion/987654321/?label=x">')
    result = GoogleAdsDetectorPlugin().detect(page, scripts)
    assert result.ids == ['AW-987654321']


@pytest.mark.parametrize("path_id", ['AW123456789', 'aw-123456789', 'AW-123456789'])
def test_google_ads_conversion_url_prefix_is_normalized(page_factory, path_id):
    page, scripts = page_factory(
        f'<img src="https://www.googleadservices.com/pagead/conversion/{path_id}/?label=x">')
    result = GoogleAdsDetectorPlugin().detect(page, scripts)
    assert result.ids == ['AW-123456789']


def test_google_ads_script_without_config(page_factory):
    page, scripts = page_factory(
        '<script src="https://www.googletagmanager.com/gtag/js?id=AW-123456789"></script>')
    result = GoogleAdsDetectorPlugin().detect(page, scripts)
    assert result.errors == ['google_ads_script_without_config']


# Helpers

@pytest.mark.parametrize("validator,candidate,expected", [
    (is_valid_ga4_id, 'G-ABC1234567', True),
    (is_valid_ga4_id, 'G-RECAPTCHA', False),
    (is_valid_ga4_id, 'G-ABCDEFGH', False),
    (is_valid_gtm_id, 'GTM-ABC1234', True),
    (is_valid_gtm_id, 'GTM-XXXXXX', False),
    (is_valid_pixel_id, '987654321012345', True),
    (is_valid_pixel_id, '123456789', False),
    (is_valid_google_ads_id, 'AW-123456789', True),
    (is_valid_google_ads_id, 'AW-12345', False),
])
def test_id_validators(validator, candidate, expected):
    assert validator(candidate) is expected


def test_extract_ga4_config():
    content = "gtag('config', 'G-ABC1234567', {'send_page_view': false, 'cookie_domain': 'example.com'});"
    assert extract_ga4_config(content) == {'send_page_view': False, 'cookie_domain': 'example.com'}


def test_analyze_data_layer():
    assert analyze_data_layer("dataLayer = dataLayer || []; dataLayer.push({a: 1});") == {
        'exists': True, 'initialized': True, 'multiple_inits': False}
    assert analyze_data_layer("nothing") == {'exists': False, 'initialized': False, 'multiple_inits': False}


def test_detect_pixel_version():
    assert detect_pixel_version("fbq('init', '987654321012345');")['version'] == 'modern'
    assert detect_pixel_version("_fbq.push(['init', '1'])")['version'] == 'legacy'
    assert detect_pixel_version("")['version'] == 'unknown'


def test_extract_pixel_config():
    assert extract_pixel_config("fbq.set('autoConfig': false); debug: true") == {'autoConfig': False, 'debug': True}


def test_extract_google_ads_config():
    content = ("gtag('config', 'AW-123456789', {allow_enhanced_conversions: true});"
               "gtag('event', 'conversion', {send_to: 'AW-123456789/label'});")
    config = extract_google_ads_config(content)
    assert config['ids'] == ['AW-123456789']
    assert config['conversions'] == ['AW-123456789/label']
    assert config['has_enhanced_conversions'] is True
    assert config['has_remarketing_tag'] is False
