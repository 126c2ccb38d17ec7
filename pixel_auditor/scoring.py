"""Tracking health score and recommendations."""
from typing import Dict, List, Tuple

from .models import AuditSummary, DetectorResult, EventIssue, EventRecord

NOT_DETECTED_PENALTY = {'ga4': 20, 'gtm': 5, 'meta_pixel': 10}

# (error code, penalty, recommendation) per detector, in reporting order
ERROR_PENALTIES: Dict[str, List[Tuple[str, int, str]]] = {
    'ga4': [
        ('multiple_ga4_ids', 10,
         "Several GA4 measurement IDs are installed; keep a single primary ID."),
        ('ga4_script_without_config', 15,
         "gtag.js is loaded without gtag('config', ...); GA4 is not collecting data."),
    ],
    'gtm': [
        ('duplicate_container', 15,
         "More than one GTM container is installed; consolidate them into one."),
        ('datalayer_not_initialized', 10,
         "Initialize window.dataLayer before the GTM snippet."),
    ],
    'meta_pixel': [
        ('multiple_pixel_ids', 10,
         "Several Meta Pixel IDs are initialized; keep only the intended pixels."),
    ],
}

NOT_DETECTED_MESSAGES = {
    'ga4': "Google Analytics 4 is not installed. Install GA4 to measure traffic and conversions.",
    'gtm': "Google Tag Manager is not installed. Consider GTM to manage your tags in one place.",
    'meta_pixel': "Meta Pixel is not installed. Install it to measure and optimize Meta ads.",
}

DUPLICATE_EVENT_PENALTY = 5
MISSING_PARAMS_PENALTY = 8
ALL_GOOD_MESSAGE = "Tracking looks healthy. No issues were found."


def summarize(ga4: DetectorResult, gtm: DetectorResult, meta_pixel: DetectorResult,
              duplicates: List[EventRecord], issues: List[EventIssue]) -> AuditSummary:
    """Score an audit from 100 down, one recommendation per triggered condition."""
    score = 100
    recommendations = []

    for key, result in (('ga4', ga4), ('gtm', gtm), ('meta_pixel', meta_pixel)):
        if not result.detected:
            score -= NOT_DETECTED_PENALTY[key]
            recommendations.append(NOT_DETECTED_MESSAGES[key])
            continue
        for code, penalty, message in ERROR_PENALTIES[key]:
            if code in result.errors:
                score -= penalty
                recommendations.append(message)

    duplicate_keys: Dict[str, EventRecord] = {}
    for event in duplicates:
        duplicate_keys.setdefault(event.key, event)
    for event in duplicate_keys.values():
        score -= DUPLICATE_EVENT_PENALTY
        recommendations.append(f"{event.type} event '{event.name}' fires more than once; check for duplicate tags.")

    for issue in issues:
        score -= MISSING_PARAMS_PENALTY
        recommendations.append(f"{issue.event.type} event '{issue.event.name}' is missing required parameters: "
                               f"{', '.join(issue.missing_params)}.")

    issues_found = len(recommendations)
    score = int(max(0, min(100, score)))
    if issues_found == 0 and score == 100:
        recommendations.append(ALL_GOOD_MESSAGE)

    return AuditSummary(tracking_health_score=score, issues_found=issues_found,
                        recommendations=recommendations)
