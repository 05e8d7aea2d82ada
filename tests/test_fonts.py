"""Tests for Google Fonts loading and URL validation."""

import os
import pytest
import socket
import requests
from unittest.mock import Mock, patch

from papersite_pkg.errors import FontLoadError, RenderError
from papersite_pkg.fonts import GoogleFontLoader
from papersite_pkg.url_validator import SafeRequestor, URLValidator

FONT_CSS = """
@font-face {
  font-family: 'IBM Plex Mono';
  font-style: normal;
  font-weight: 700;
  src: url(https://fonts.gstatic.com/s/ibmplexmono/v19/plex-bold.ttf) format('truetype');
}
"""


def response(text='', content=b''):
    resp = Mock()
    resp.text = text
    resp.content = content
    return resp


class TestGoogleFontLoader:
    """Test cases for GoogleFontLoader."""

    def test_downloads_and_caches(self, temp_dir):
        requestor = Mock()
        requestor.safe_get.side_effect = [
            (True, response(text=FONT_CSS)),
            (True, response(content=b'font-bytes')),
        ]
        loader = GoogleFontLoader(temp_dir, requestor)

        path = loader.load('IBM Plex Mono', 700)
        assert path == os.path.join(temp_dir, 'ibm-plex-mono-700.ttf')
        with open(path, 'rb') as f:
            assert f.read() == b'font-bytes'

        css_url = requestor.safe_get.call_args_list[0][0][0]
        assert css_url == 'https://fonts.googleapis.com/css2?family=IBM+Plex+Mono:wght@700'
        font_url = requestor.safe_get.call_args_list[1][0][0]
        assert font_url == 'https://fonts.gstatic.com/s/ibmplexmono/v19/plex-bold.ttf'

        # Second call is served from the cache
        assert loader.load('IBM Plex Mono', 700) == path
        assert requestor.safe_get.call_count == 2

    def test_css_request_failure(self, temp_dir):
        requestor = Mock()
        requestor.safe_get.return_value = (False, 'HTTP request failed: 500')
        with pytest.raises(FontLoadError, match='Failed to fetch'):
            GoogleFontLoader(temp_dir, requestor).load('Inter')

    def test_css_without_truetype_source(self, temp_dir):
        requestor = Mock()
        requestor.safe_get.return_value = (True, response(text="src: url(x.woff2) format('woff2');"))
        with pytest.raises(FontLoadError, match='No TrueType source'):
            GoogleFontLoader(temp_dir, requestor).load('Inter')

    def test_font_file_failure(self, temp_dir):
        requestor = Mock()
        requestor.safe_get.side_effect = [(True, response(text=FONT_CSS)), (False, 'timeout')]
        with pytest.raises(RenderError):
            GoogleFontLoader(temp_dir, requestor).load('IBM Plex Mono', 700)
        assert not os.path.exists(os.path.join(temp_dir, 'ibm-plex-mono-700.ttf'))


class TestURLValidator:
    """Test cases for URL validation."""

    def test_blocks_localhost_and_private(self):
        validator = URLValidator(resolve=False)
        for url in ['http://localhost/font.ttf', 'https://localhost.localdomain/']:
            is_valid, _ = validator.validate_url(url)
            assert not is_valid

    def test_blocks_non_http(self):
        validator = URLValidator(resolve=False)
        for url in ['ftp://example.com/a', 'file:///etc/passwd', 'javascript:alert(1)']:
            is_valid, _ = validator.validate_url(url)
            assert not is_valid

    def test_blocks_credentials(self):
        is_valid, message = URLValidator(resolve=False).validate_url('https://user@fonts.gstatic.com/x')
        assert not is_valid
        assert 'Credentials' in message

    def test_font_urls(self):
        validator = URLValidator(resolve=False)
        assert validator.validate_font_url('https://fonts.googleapis.com/css2?family=Inter:wght@400')[0]
        assert validator.validate_font_url('https://fonts.gstatic.com/s/inter/v1/a.ttf')[0]
        assert not validator.validate_font_url('https://example.com/css2?family=Inter')[0]
        assert not validator.validate_font_url('http://fonts.gstatic.com/s/inter/v1/a.ttf')[0]

    def test_private_resolution_blocked(self):
        validator = URLValidator()
        with patch.object(validator, '_resolve_hostname', return_value=['10.0.0.5']):
            is_valid, message = validator.validate_url('https://fonts.gstatic.com/a.ttf')
        assert not is_valid
        assert 'Blocked IP' in message

    def test_unresolvable_host(self):
        validator = URLValidator()
        with patch.object(validator, '_resolve_hostname', side_effect=socket.gaierror):
            is_valid, message = validator.validate_url('https://fonts.gstatic.com/a.ttf')
        assert not is_valid
        assert 'Cannot resolve' in message

    @pytest.mark.parametrize('address, expected', [
        ('142.250.74.10', True),
        ('127.0.0.1', False),
        ('192.168.1.1', False),
        ('169.254.169.254', False),
        ('::1', False),
        ('not-an-ip', False),
    ])
    def test_is_public(self, address, expected):
        assert URLValidator._is_public(address) is expected


class TestSafeRequestor:
    """Test cases for SafeRequestor."""

    def test_rejects_invalid_url_without_request(self):
        session = Mock()
        requestor = SafeRequestor(URLValidator(resolve=False), session)
        success, message = requestor.safe_get('https://example.com/font.ttf')
        assert not success
        assert 'URL validation failed' in message
        session.get.assert_not_called()

    def test_successful_get(self):
        session = Mock()
        session.get.return_value = response(text='ok')
        requestor = SafeRequestor(URLValidator(resolve=False), session)
        success, resp = requestor.safe_get('https://fonts.gstatic.com/s/a.ttf')
        assert success
        kwargs = session.get.call_args[1]
        assert kwargs['allow_redirects'] is False
        assert kwargs['headers']['User-Agent'].startswith('PaperSite/')

    def test_http_error(self):
        session = Mock()
        session.get.side_effect = requests.exceptions.ConnectionError('down')
        requestor = SafeRequestor(URLValidator(resolve=False), session)
        success, message = requestor.safe_get('https://fonts.gstatic.com/s/a.ttf')
        assert not success
        assert 'HTTP request failed' in message
