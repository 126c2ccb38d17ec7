import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Match

from .models import DetectorResult, PageContent, Platform, ScriptInfo
from .patterns import (
    DEFAULT_PATTERNS,
    GA4_RULES,
    GOOGLE_ADS_RULES,
    GTM_RULES,
    META_PIXEL_RULES,
    CompiledPatterns,
    ValidationRules,
)

logger = logging.getLogger(__name__)


def combine_content(page: PageContent, scripts: List[ScriptInfo]) -> str:
    # Inline bodies are already part of the HTML; adding them again would double every count
    return '\n'.join([page.html] + [script.content for script in scripts if script.is_external and script.content])


class TagDetectorPlugin(ABC):
    """Abstract base class for tag detection plugins.

    Detectors are pure: the same page and scripts always give the same result.
    """

    id_key = 'ids'

    def __init__(self, patterns: CompiledPatterns = None):
        self.patterns = patterns or DEFAULT_PATTERNS

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    @abstractmethod
    def platform(self) -> Platform:
        pass

    @property
    def version(self) -> str:
        return "1.0.0"

    @abstractmethod
    def detect(self, page: PageContent, scripts: List[ScriptInfo]) -> DetectorResult:
        pass

    def run_battery(self, battery, content: str) -> Dict[str, List[Match]]:
        return {name: list(pattern.finditer(content)) for name, pattern in battery}

    def collect_ids(self, match_groups: Iterable[List[Match]], rules: ValidationRules) -> List[str]:
        """Validated, upper-cased, de-duplicated IDs in first-seen order."""
        ids: Dict[str, None] = {}
        for matches in match_groups:
            for match in matches:
                accepted = rules.accept(match.group(1))
                if accepted:
                    ids[accepted] = None
        return list(ids)

    def new_result(self) -> DetectorResult:
        return DetectorResult(id_key=self.id_key)


class GA4DetectorPlugin(TagDetectorPlugin):
    """Google Analytics 4 detection plugin"""

    @property
    def name(self) -> str:
        return "Google Analytics 4"

    @property
    def platform(self) -> Platform:
        return Platform.GA4

    def detect(self, page: PageContent, scripts: List[ScriptInfo]) -> DetectorResult:
        result = self.new_result()
        content = combine_content(page, scripts)
        matches = self.run_battery(self.patterns.ga4_id_patterns, content)

        result.ids = self.collect_ids(matches.values(), GA4_RULES)
        result.detected = bool(result.ids)
        if not result.detected:
            return result

        has_script = bool(matches['script'] or matches['gtag_js'])
        has_config = bool(matches['config'] or matches['measurement_id'])
        if has_script and not has_config:
            result.add_error('ga4_script_without_config')
        if has_config and not self.patterns.gtag_loader.search(content):
            result.add_error('ga4_config_without_script')

        # Only the site's own HTML; Google's gtag.js defines gtag itself
        if len(self.patterns.gtag_definition.findall(page.html)) > 1:
            result.add_error('multiple_gtag_definitions')

        if len(result.ids) > 1:
            result.add_error('multiple_ga4_ids')
        return result


class GTMDetectorPlugin(TagDetectorPlugin):
    """Google Tag Manager detection plugin"""

    id_key = 'containers'

    @property
    def name(self) -> str:
        return "Google Tag Manager"

    @property
    def platform(self) -> Platform:
        return Platform.GTM

    def detect(self, page: PageContent, scripts: List[ScriptInfo]) -> DetectorResult:
        result = self.new_result()
        content = combine_content(page, scripts)
        matches = self.run_battery(self.patterns.gtm_id_patterns, content)

        result.ids = self.collect_ids(matches.values(), GTM_RULES)
        result.detected = bool(result.ids)
        if not result.detected:
            return result

        if matches['script'] and not matches['iframe']:
            result.add_error('missing_noscript_fallback')

        init_count = len(self.patterns.datalayer_init.findall(content))
        if not init_count and not self.patterns.window_datalayer.search(content):
            result.add_error('datalayer_not_initialized')
        if init_count > 1:
            result.add_error('multiple_datalayer_init')

        # More loader URLs than distinct containers means a container loads twice
        if len(matches['script']) > len(result.ids):
            result.add_error('gtm_loaded_multiple_times')

        if len(result.ids) > 1:
            result.add_error('duplicate_container')
        return result


class MetaPixelDetectorPlugin(TagDetectorPlugin):
    """Meta Pixel detection plugin"""

    @property
    def name(self) -> str:
        return "Meta Pixel"

    @property
    def platform(self) -> Platform:
        return Platform.META_PIXEL

    def detect(self, page: PageContent, scripts: List[ScriptInfo]) -> DetectorResult:
        result = self.new_result()
        content = combine_content(page, scripts)
        matches = self.run_battery(self.patterns.meta_pixel_id_patterns, content)

        result.ids = self.collect_ids(matches.values(), META_PIXEL_RULES)
        result.detected = bool(result.ids)

        has_script = bool(self.patterns.fb_script_url.search(content)
                          or self.patterns.fb_loader_fingerprint.search(content))

        # The ID may be computed at runtime, so a loaded pixel still counts
        if not result.detected and has_script:
            result.detected = True
            result.add_error('pixel_id_not_found')

        if not result.detected:
            return result

        if has_script and not result.ids:
            result.add_error('pixel_script_without_init')
        if not has_script and result.ids:
            result.add_error('pixel_init_without_script')

        if len(self.patterns.fbq_definition.findall(page.html)) > 1:
            result.add_error('multiple_fbq_definitions')

        site_inits = self.patterns.fbq_init.findall(page.html)
        if len(site_inits) > len(set(site_inits)):
            result.add_error('pixel_init_multiple_times')

        if result.ids and not self.patterns.fb_noscript.search(content):
            result.add_error('missing_noscript_fallback')

        if len(result.ids) > 1:
            result.add_error('multiple_pixel_ids')
        return result


class GoogleAdsDetectorPlugin(TagDetectorPlugin):
    """Google Ads (gtag AW-) detection plugin"""

    @property
    def name(self) -> str:
        return "Google Ads"

    @property
    def platform(self) -> Platform:
        return Platform.GOOGLE_ADS

    def detect(self, page: PageContent, scripts: List[ScriptInfo]) -> DetectorResult:
        result = self.new_result()
        content = combine_content(page, scripts)
        matches = self.run_battery(self.patterns.google_ads_id_patterns, content)

        conversions = [m.group(1) for m in self.patterns.ads_conversion.finditer(content)]
        candidates = [m.group(1) for group in matches.values() for m in group]
        candidates.extend(conversion.split('/')[0] for conversion in conversions)
        candidates.extend(f"AW-{m.group(1)}" for m in self.patterns.ads_numeric_conversion.finditer(content))
        for m in self.patterns.ads_conversion_linker.finditer(content):
            if m.group(1):
                # AW-123, AW123 and 123 all name the same account
                digits = m.group(1).upper()
                if digits.startswith('AW'):
                    digits = digits[2:].lstrip('-')
                candidates.append(f"AW-{digits}")

        ids: Dict[str, None] = {}
        for candidate in candidates:
            accepted = GOOGLE_ADS_RULES.accept(candidate)
            if accepted:
                ids[accepted] = None
        result.ids = list(ids)

        has_report_conversion = bool(self.patterns.ads_report_conversion.search(content))
        result.detected = bool(result.ids) or has_report_conversion
        if conversions:
            result.conversions = list(dict.fromkeys(conversions))

        if not result.detected:
            return result

        has_script = bool(matches['script'])
        has_config = bool(matches['config'])
        if has_script and not has_config:
            result.add_error('google_ads_script_without_config')
        if has_config and not self.patterns.gtag_loader.search(content):
            result.add_error('google_ads_config_without_script')
        if len(result.ids) > 1:
            result.add_error('multiple_google_ads_ids')
        return result


# Standalone helpers for callers that only hold a text blob

def is_valid_ga4_id(candidate: str) -> bool:
    return GA4_RULES.accept(candidate) == candidate


def is_valid_gtm_id(candidate: str) -> bool:
    return GTM_RULES.accept(candidate) == candidate


def is_valid_pixel_id(candidate: str) -> bool:
    return META_PIXEL_RULES.accept(candidate) == candidate


def is_valid_google_ads_id(candidate: str) -> bool:
    return GOOGLE_ADS_RULES.accept(candidate) == candidate


_GA4_CONFIG_KEYS = {
    'send_page_view': r'[\'"]send_page_view[\'"]\s*:\s*(true|false)',
    'cookie_domain': r'[\'"]cookie_domain[\'"]\s*:\s*[\'"]([^\'"]+)[\'"]',
    'cookie_flags': r'[\'"]cookie_flags[\'"]\s*:\s*[\'"]([^\'"]+)[\'"]',
    'anonymize_ip': r'[\'"]anonymize_ip[\'"]\s*:\s*(true|false)',
}


def extract_ga4_config(content: str) -> Dict[str, Any]:
    config: Dict[str, Any] = {}
    for key, pattern in _GA4_CONFIG_KEYS.items():
        match = re.search(pattern, content, re.IGNORECASE)
        if match:
            value = match.group(1)
            if value.lower() in ('true', 'false'):
                value = value.lower() == 'true'
            config[key] = value
    return config


def analyze_data_layer(content: str, patterns: CompiledPatterns = DEFAULT_PATTERNS) -> Dict[str, bool]:
    inits = len(patterns.datalayer_or_init.findall(content))
    pushes = len(patterns.datalayer_push.findall(content))
    return {
        'exists': inits > 0 or pushes > 0,
        'initialized': inits > 0,
        'multiple_inits': inits > 1,
    }


def detect_pixel_version(content: str, patterns: CompiledPatterns = DEFAULT_PATTERNS) -> Dict[str, Any]:
    if patterns.fbq_modern.search(content):
        version = 'modern'
    elif patterns.fbq_legacy.search(content):
        version = 'legacy'
    else:
        version = 'unknown'
    return {'version': version, 'has_auto_config': bool(patterns.fbq_auto_config.search(content))}


def extract_pixel_config(content: str) -> Dict[str, bool]:
    config = {}
    for key in ('autoConfig', 'debug'):
        match = re.search(key + r'[\'"]?\s*:\s*(true|false)', content, re.IGNORECASE)
        if match:
            config[key] = match.group(1).lower() == 'true'
    return config


def extract_google_ads_config(content: str) -> Dict[str, Any]:
    ids = list(dict.fromkeys(m.group(1) for m in re.finditer(r'[\'"]?(AW-[0-9]+)[\'"]?', content, re.IGNORECASE)))
    conversions = list(dict.fromkeys(re.findall(r'AW-[0-9]+/[A-Za-z0-9_-]+', content)))
    return {
        'ids': ids,
        'conversions': conversions,
        'has_enhanced_conversions': bool(re.search(r'allow_enhanced_conversions\s*:\s*true', content, re.IGNORECASE)),
        'has_remarketing_tag': bool(re.search(r'remarketing_only\s*:\s*true|google_remarketing_only',
                                              content, re.IGNORECASE)),
    }


def run_detectors(plugins: Dict[str, TagDetectorPlugin], page: PageContent,
                  scripts: List[ScriptInfo]) -> Dict[str, DetectorResult]:
    results = {}
    for key, plugin in plugins.items():
        results[key] = plugin.detect(page, scripts)
        logger.info(f"{plugin.name}: detected={results[key].detected} "
                    f"ids={results[key].ids} errors={results[key].errors}")
    return results

