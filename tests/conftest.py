import pytest

from pixel_auditor.fetcher import extract_scripts_from_html
from pixel_auditor.scripts import get_all_scripts

GA4_SNIPPET = """
<script async src="https://www.googletagmanager.com/gtag/js?id=G-ABC1234567"></script>
<script>
  window.dataLayer = window.dataLayer || [];
  function gtag(){dataLayer.push(arguments);}
  gtag('js', new Date());
  gtag('config', 'G-ABC1234567');
</script>
"""

GTM_SNIPPET = """
<script>(function(w,d,s,l,i){w[l]=w[l]||[];w[l].push({'gtm.start':
new Date().getTime(),event:'gtm.js'});var f=d.getElementsByTagName(s)[0],
j=d.createElement(s),dl=l!='dataLayer'?'&l='+l:'';j.async=true;j.src=
'https://www.googletagmanager.com/gtm.js?id='+i+dl;f.parentNode.insertBefore(j,f);
})(window,document,'script','dataLayer','GTM-ABC1234');</script>
<noscript><iframe src="https://www.googletagmanager.com/ns.html?id=GTM-ABC1234"
height="0" width="0" style="display:none;visibility:hidden"></iframe></noscript>
"""

META_SNIPPET = """
<script>
!function(f,b,e,v,n,t,s)
{if(f.fbq)return;n=f.fbq=function(){n.callMethod?
n.callMethod.apply(n,arguments):n.queue.push(arguments)};
if(!f._fbq)f._fbq=n;n.push=n;n.loaded=!0;n.version='2.0';
n.queue=[];t=b.createElement(e);t.async=!0;
t.src=v;s=b.getElementsByTagName(e)[0];
s.parentNode.insertBefore(t,s)}(window, document,'script',
'https://connect.facebook.net/en_US/fbevents.js');
fbq('init', '987654321012345');
fbq('track', 'PageView');
</script>
<noscript><img height="1" width="1" style="display:none"
src="https://www.facebook.com/tr?id=987654321012345&ev=PageView&noscript=1"/></noscript>
"""


def make_page(body):
    return extract_scripts_from_html(f"<html><head></head><body>{body}</body></html>")


@pytest.fixture
def page_factory():
    def build(body):
        page = make_page(body)
        return page, get_all_scripts(page)
    return build


@pytest.fixture
def no_downloads():
    """Script fetcher that records the URLs it is asked for and returns nothing."""
    requested = []

    def fetch(url, timeout=None):
        requested.append(url)
        return None

    fetch.requested = requested
    return fetch
