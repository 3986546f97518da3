"""
Page context passed explicitly to every capture function.

A PageContext bundles what the host knows about the page being captured
(URL, markup, cookies, language) with the capabilities it offers (request
helpers, in-page fetch, hidden frames, item selection, trace sink), plus the
per-page API caches. A new page means a new context, which is the only way
the caches are invalidated.
"""

from bs4 import BeautifulSoup


class ApiCache:
    """Write-once caches for one page, keyed by conversation or share id."""

    def __init__(self):
        self.auth = None
        self.conversations = {}
        self.public_conversations = {}
        self.share_lists = {}
        self.summaries = {}


class PageContext:
    def __init__(self, url, html=None, cookie=None, language=None,
                 connector_request=None, host_request=None, page_request=None,
                 page_fetch=None, open_frame=None, select_items=None,
                 trace=None, session=None):
        self.url = url
        self.html = html
        self.cookie = cookie or ''
        self.language = language
        self.connector_request = connector_request
        self.host_request = host_request
        self.page_request = page_request
        self.page_fetch = page_fetch
        self.open_frame = open_frame
        self.select_items = select_items
        self.trace = trace or print
        self.session = session
        self.cache = ApiCache()
        self._soup = None

    @property
    def soup(self) -> BeautifulSoup:
        """Parsed page markup, built on first use."""
        if self._soup is None:
            self._soup = BeautifulSoup(self.html or '', 'html.parser')
        return self._soup
