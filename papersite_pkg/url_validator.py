"""
URL validation for the remote resources PaperSite fetches.

The only remote fetch is a Google Fonts download for preview images. Every
URL is checked against an allowlist of font hosts and resolved to make sure
it does not point into a private network before a request is made.
"""

import ipaddress
import re
import socket
from typing import List, Set, Tuple, Union
from urllib.parse import urlparse

import requests


class URLValidator:
    """Checks that a URL is an https/http URL on an allowed, public host."""

    ALLOWED_SCHEMES: Set[str] = {'http', 'https'}

    BLOCKED_HOSTNAMES: Set[str] = {
        'localhost',
        'localhost.localdomain',
        'metadata.google.internal',
    }

    # Hosts serving the Google Fonts CSS API and the font files it links to
    FONT_DOMAINS: Set[str] = {
        'fonts.googleapis.com',
        'fonts.gstatic.com',
    }

    FONT_URL_PATTERNS = {
        'fonts.googleapis.com': re.compile(r'https://fonts\.googleapis\.com/css2?\?'),
        'fonts.gstatic.com': re.compile(r'https://fonts\.gstatic\.com/'),
    }

    def __init__(self, resolve: bool = True):
        """
        Args:
            resolve: Resolve hostnames and reject private addresses.
        """
        self.resolve = resolve

    def validate_url(self, url: str, allowed_domains: Set[str] = None) -> Tuple[bool, str]:
        """
        Returns:
            Tuple of (is_valid, reason)
        """
        parsed = urlparse(url)
        if not parsed.scheme or not parsed.netloc:
            return False, "Invalid URL format"
        if parsed.scheme.lower() not in self.ALLOWED_SCHEMES:
            return False, f"Unsupported URL scheme: {parsed.scheme}"
        if '@' in parsed.netloc:
            return False, "Credentials in URL are not allowed"

        hostname = (parsed.hostname or '').lower()
        if not hostname:
            return False, "Invalid hostname in URL"
        if hostname in self.BLOCKED_HOSTNAMES:
            return False, f"Blocked hostname: {hostname}"

        if allowed_domains and not any(
            hostname == domain or hostname.endswith('.' + domain) for domain in allowed_domains
        ):
            return False, f"Domain not in allowlist: {hostname}"

        if self.resolve:
            try:
                addresses = self._resolve_hostname(hostname)
            except socket.gaierror:
                return False, f"Cannot resolve hostname: {hostname}"
            for address in addresses:
                if not self._is_public(address):
                    return False, f"Blocked IP address: {address}"

        return True, "URL is valid"

    def validate_font_url(self, url: str) -> Tuple[bool, str]:
        """Validate a Google Fonts CSS or font file URL."""
        hostname = (urlparse(url).hostname or '').lower()
        pattern = self.FONT_URL_PATTERNS.get(hostname)
        if pattern is None:
            return False, f"Not a Google Fonts URL: {url}"
        if not pattern.match(url):
            return False, f"Invalid Google Fonts URL format: {url}"
        return self.validate_url(url, self.FONT_DOMAINS)

    def _resolve_hostname(self, hostname: str) -> List[str]:
        addr_info = socket.getaddrinfo(hostname, None, type=socket.SOCK_STREAM)
        return sorted(set(info[4][0] for info in addr_info))

    @staticmethod
    def _is_public(address: str) -> bool:
        try:
            ip = ipaddress.ip_address(address)
        except ValueError:
            return False
        return not (ip.is_private or ip.is_loopback or ip.is_link_local
                    or ip.is_multicast or ip.is_reserved or ip.is_unspecified)


class SafeRequestor:
    """HTTP GET that refuses URLs the validator rejects."""

    USER_AGENT = 'PaperSite/1.0.0 (Static Site Indexer)'

    def __init__(self, validator: URLValidator = None, session=None):
        self.validator = validator or URLValidator()
        self.session = session or requests.Session()

    def safe_get(self, url: str, **kwargs) -> Tuple[bool, Union[requests.Response, str]]:
        """
        GET a validated font URL.

        Returns:
            Tuple of (success, response_or_error_message)
        """
        is_valid, error_msg = self.validator.validate_font_url(url)
        if not is_valid:
            return False, f"URL validation failed: {error_msg}"

        kwargs.setdefault('timeout', 10)
        kwargs.setdefault('allow_redirects', False)
        headers = kwargs.setdefault('headers', {})
        headers.setdefault('User-Agent', self.USER_AGENT)

        try:
            response = self.session.get(url, **kwargs)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            return False, f"HTTP request failed: {e}"
        return True, response

    def close(self):
        self.session.close()
