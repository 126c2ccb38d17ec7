import pytest
import requests

from pixel_auditor import fetcher
from pixel_auditor.errors import InputError, PageFetchError, PageTimeoutError
from pixel_auditor.fetcher import (
    RetryConfig,
    extract_scripts_from_html,
    fetch_external_script,
    fetch_page,
    get_headers,
    retry_sync,
)


class FakeResponse:
    def __init__(self, status_code=200, text=''):
        self.status_code = status_code
        self.text = text


@pytest.fixture
def fake_get(monkeypatch):
    """Replace requests.get; tests set ``fake_get.result`` to a response or an exception."""
    calls = []

    def get(url, **kwargs):
        calls.append((url, kwargs))
        if isinstance(get.result, Exception):
            raise get.result
        return get.result

    get.calls = calls
    get.result = FakeResponse()
    monkeypatch.setattr(requests, 'get', get)
    return get


def test_extract_scripts_from_html():
    page = extract_scripts_from_html(
        '<script>var a = 1;</script><script>   </script>'
        '<script src="/app.js"></script><script src="  "> var b = 2; </script>')
    assert page.inline == ['var a = 1;', ' var b = 2; ']
    assert [ref.src for ref in page.external] == ['/app.js']
    assert page.to_dict()['scripts'] == {'inline': ['var a = 1;', ' var b = 2; '], 'external': [{'src': '/app.js'}]}


def test_manual_html_skips_network(fake_get):
    page = fetch_page('', html='  <script>gtag("config", "G-ABC1234567")</script>  ')
    assert page.inline == ['gtag("config", "G-ABC1234567")']
    assert fake_get.calls == []


def test_fetch_page_success(fake_get):
    fake_get.result = FakeResponse(200, '<html><script src="https://x.com/a.js"></script></html>')
    page = fetch_page('https://example.com', timeout=5)
    assert [ref.src for ref in page.external] == ['https://x.com/a.js']

    url, kwargs = fake_get.calls[0]
    assert url == 'https://example.com'
    assert kwargs['timeout'] == 5
    assert kwargs['allow_redirects'] is True
    assert kwargs['headers']['User-Agent'] == fetcher.DEFAULT_USER_AGENT


def test_non_2xx_is_an_error(fake_get):
    fake_get.result = FakeResponse(403, 'denied')
    with pytest.raises(PageFetchError) as exc_info:
        fetch_page('https://example.com')
    assert exc_info.value.code == 'HTTP_ERROR'
    assert exc_info.value.status_code == 403
    assert 'manual HTML' in str(exc_info.value)


def test_timeout(fake_get):
    fake_get.result = requests.Timeout('slow')
    with pytest.raises(PageTimeoutError) as exc_info:
        fetch_page('https://example.com', timeout=20)
    assert exc_info.value.code == 'TIMEOUT'
    assert '20s' in str(exc_info.value)


def test_stalled_read_is_a_timeout_with_per_operation_limit(fake_get):
    fake_get.result = requests.ReadTimeout('read stalled')
    with pytest.raises(PageTimeoutError):
        fetch_page('https://example.com', timeout=7)
    # requests gets the scalar, applied to connect and to each read
    assert fake_get.calls[0][1]['timeout'] == 7


def test_connection_failure(fake_get):
    fake_get.result = requests.ConnectionError('dns')
    with pytest.raises(PageFetchError) as exc_info:
        fetch_page('https://example.com')
    assert exc_info.value.code == 'FETCH_FAILED'
    assert not isinstance(exc_info.value, PageTimeoutError)


@pytest.mark.parametrize("url", ['', 'ftp://example.com/file', 'https://'])
def test_invalid_url(fake_get, url):
    with pytest.raises(InputError) as exc_info:
        fetch_page(url)
    assert exc_info.value.code == 'INVALID_URL'
    assert fake_get.calls == []


def test_retries_only_when_configured(fake_get, monkeypatch):
    monkeypatch.setattr(fetcher.time, 'sleep', lambda seconds: None)
    fake_get.result = requests.ConnectionError('flaky')
    with pytest.raises(PageFetchError):
        fetch_page('https://example.com', retry_config=RetryConfig(max_retries=2))
    assert len(fake_get.calls) == 3

    fake_get.calls.clear()
    with pytest.raises(PageFetchError):
        fetch_page('https://example.com')
    assert len(fake_get.calls) == 1


def test_retry_sync_returns_first_success(monkeypatch):
    monkeypatch.setattr(fetcher.time, 'sleep', lambda seconds: None)
    attempts = []

    def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise ValueError('not yet')
        return 'ok'

    assert retry_sync(flaky, retry_config=RetryConfig(max_retries=5)) == 'ok'
    assert len(attempts) == 3


def test_retry_delay_is_capped():
    config = RetryConfig(base_delay=1.0, max_delay=4.0, backoff_factor=2.0)
    assert 1.0 <= config.get_delay(0) <= 1.1
    assert 4.0 <= config.get_delay(10) <= 4.4


def test_get_headers():
    headers = get_headers('agent/1.0', 'es-ES')
    assert headers['User-Agent'] == 'agent/1.0'
    assert headers['Accept-Language'] == 'es-ES'


def test_fetch_external_script_never_raises(fake_get):
    fake_get.result = FakeResponse(200, 'console.log(1)')
    assert fetch_external_script('https://example.com/a.js') == 'console.log(1)'

    fake_get.result = FakeResponse(404, 'missing')
    assert fetch_external_script('https://example.com/a.js') is None

    fake_get.result = requests.Timeout('slow')
    assert fetch_external_script('https://example.com/a.js', timeout=1) is None
