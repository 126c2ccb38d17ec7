import inspect

from pixel_auditor.auditor import PLATFORM_STRATEGIES
from pixel_auditor.descriptions import ERRORS_BY_PLATFORM, get_error_details, get_errors_details
from pixel_auditor.models import Platform


def test_every_catalog_code_is_raised_by_its_detector():
    for platform, catalog in ERRORS_BY_PLATFORM.items():
        source = inspect.getsource(PLATFORM_STRATEGIES[platform].detector)
        for code in catalog:
            assert f"add_error('{code}')" in source, (platform, code)


def test_every_entry_is_keyed_by_its_code():
    for catalog in ERRORS_BY_PLATFORM.values():
        for code, detail in catalog.items():
            assert detail.code == code
            assert detail.severity in ('error', 'warning', 'info')
            assert detail.title and detail.solution


def test_lookup_without_platform_takes_first_catalog():
    assert get_error_details('missing_noscript_fallback').title.startswith('GTM')
    assert get_error_details('missing_noscript_fallback', Platform.META_PIXEL).severity == 'info'
    assert get_error_details('unknown_code') is None
    assert get_error_details('multiple_ga4_ids', Platform.GTM) is None


def test_get_errors_details_skips_unknown_codes():
    details = get_errors_details(['gtm_loaded_multiple_times', 'nope', 'duplicate_container'])
    assert [d.code for d in details] == ['gtm_loaded_multiple_times', 'duplicate_container']
    assert details[0].to_dict()['docsUrl'] == 'https://support.google.com/tagmanager/answer/6103696'
