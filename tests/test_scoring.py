import pytest

from pixel_auditor.models import DetectorResult, EventIssue, EventRecord
from pixel_auditor.scoring import ALL_GOOD_MESSAGE, NOT_DETECTED_MESSAGES, summarize


def detected(*errors):
    return DetectorResult(detected=True, ids=['X'], errors=list(errors))


def test_no_tags_at_all():
    summary = summarize(DetectorResult(), DetectorResult(), DetectorResult(), [], [])
    assert summary.tracking_health_score == 65
    assert summary.issues_found == 3
    assert summary.recommendations == [
        NOT_DETECTED_MESSAGES['ga4'],
        NOT_DETECTED_MESSAGES['gtm'],
        NOT_DETECTED_MESSAGES['meta_pixel'],
    ]
    assert ALL_GOOD_MESSAGE not in summary.recommendations


def test_clean_setup_gets_positive_message():
    summary = summarize(detected(), detected(), detected(), [], [])
    assert summary.tracking_health_score == 100
    assert summary.issues_found == 0
    assert summary.recommendations == [ALL_GOOD_MESSAGE]


def test_error_penalties():
    summary = summarize(
        detected('multiple_ga4_ids', 'ga4_script_without_config', 'multiple_gtag_definitions'),
        detected('duplicate_container', 'datalayer_not_initialized'),
        detected('multiple_pixel_ids'),
        [], [])
    assert summary.tracking_health_score == 100 - 10 - 15 - 15 - 10 - 10
    assert summary.issues_found == 5


def test_event_penalties_and_order():
    purchase = EventRecord('MetaPixel', 'Purchase', {'value': 10})
    duplicates = [EventRecord('GA4', 'page_view'), EventRecord('GA4', 'page_view'), EventRecord('GTM', 'x')]
    issues = [EventIssue(purchase, ['currency'])]
    summary = summarize(DetectorResult(), detected(), detected(), duplicates, issues)

    # Two distinct duplicate keys, one event with missing params
    assert summary.tracking_health_score == 100 - 20 - 5 * 2 - 8
    assert summary.issues_found == 4
    assert summary.recommendations[0] == NOT_DETECTED_MESSAGES['ga4']
    assert "'page_view'" in summary.recommendations[1]
    assert "'x'" in summary.recommendations[2]
    assert summary.recommendations[3].endswith('currency.')


def test_score_is_clamped_to_zero():
    issues = [EventIssue(EventRecord('GA4', 'purchase'), ['value'])] * 20
    summary = summarize(DetectorResult(), DetectorResult(), DetectorResult(), [], issues)
    assert summary.tracking_health_score == 0
    assert isinstance(summary.tracking_health_score, int)


@pytest.mark.parametrize("n_issues", [0, 1, 5, 50])
def test_score_stays_in_range(n_issues):
    issues = [EventIssue(EventRecord('GA4', 'purchase'), ['value'])] * n_issues
    score = summarize(detected(), detected(), detected(), [], issues).tracking_health_score
    assert 0 <= score <= 100
