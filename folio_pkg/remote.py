"""
Remote media fetching for Folio.

Project previews and post covers may point at http(s) URLs. Those are
downloaded at build time, so every URL is checked against SSRF-prone
targets (loopback, private networks, cloud metadata hosts) first.
"""

import ipaddress
import logging
import re
import socket
from urllib.parse import urlparse
from typing import List, Set, Tuple, Union

import requests

USER_AGENT = 'Folio/1.0.0 (Static Site Generator)'


class URLValidator:
    """Reject URLs that would make the build reach into private networks."""

    ALLOWED_SCHEMES: Set[str] = {'http', 'https'}

    BLOCKED_IP_RANGES: List[str] = [
        '0.0.0.0/8',
        '10.0.0.0/8',
        '100.64.0.0/10',
        '127.0.0.0/8',
        '169.254.0.0/16',
        '172.16.0.0/12',
        '192.0.0.0/24',
        '192.168.0.0/16',
        '198.18.0.0/15',
        '224.0.0.0/4',
        '240.0.0.0/4',
        '::1/128',
        '::/128',
        '::ffff:0:0/96',
        'fe80::/10',
        'fc00::/7',
        'ff00::/8',
    ]

    BLOCKED_HOSTNAMES: Set[str] = {
        'localhost',
        'localhost.localdomain',
        'ip6-localhost',
        'ip6-loopback',
        'metadata.google.internal',
    }

    SUSPICIOUS_PATTERNS = [
        r'%2f%2f',
        r'%5c%5c',
        r'\.\./',
        r'%2e%2e%2f',
    ]

    def __init__(self, resolve_hosts: bool = True):
        """
        Initialize URL validator.

        Args:
            resolve_hosts: Resolve hostnames and check every address they map to.
        """
        self.resolve_hosts = resolve_hosts
        self._blocked_networks = [ipaddress.ip_network(cidr) for cidr in self.BLOCKED_IP_RANGES]

    def validate_url(self, url: str) -> Tuple[bool, str]:
        """
        Validate a URL for SSRF safety.

        Returns:
            Tuple of (is_valid, error_message)
        """
        parsed = urlparse(url)
        if not parsed.scheme or not parsed.netloc:
            return False, "Invalid URL format"

        if parsed.scheme.lower() not in self.ALLOWED_SCHEMES:
            return False, f"Unsupported URL scheme: {parsed.scheme}"

        if '@' in parsed.netloc:
            return False, "Credentials in URL are not allowed"

        hostname = parsed.hostname
        if not hostname:
            return False, "Invalid hostname in URL"

        if hostname.lower() in self.BLOCKED_HOSTNAMES:
            return False, f"Blocked hostname: {hostname}"

        url_lower = url.lower()
        for pattern in self.SUSPICIOUS_PATTERNS:
            if re.search(pattern, url_lower):
                return False, "URL contains suspicious patterns"

        # Literal IPs are checked without DNS
        try:
            literal = ipaddress.ip_address(hostname)
        except ValueError:
            literal = None
        if literal is not None:
            if not self._is_ip_allowed(str(literal)):
                return False, f"Blocked IP address: {literal}"
            return True, "URL is valid"

        if self.resolve_hosts:
            try:
                for ip_str in self._resolve_hostname(hostname):
                    if not self._is_ip_allowed(ip_str):
                        return False, f"Blocked IP address: {ip_str}"
            except socket.gaierror:
                return False, f"Cannot resolve hostname: {hostname}"

        return True, "URL is valid"

    def _resolve_hostname(self, hostname: str) -> List[str]:
        addr_info = socket.getaddrinfo(hostname, None, family=socket.AF_UNSPEC, type=socket.SOCK_STREAM)
        return list(set(info[4][0] for info in addr_info))

    def _is_ip_allowed(self, ip_str: str) -> bool:
        try:
            ip = ipaddress.ip_address(ip_str)
        except ValueError:
            return False
        return not any(ip in network for network in self._blocked_networks)


class SafeRequestor:
    """HTTP GETs that validate the URL before touching the network."""

    def __init__(self, validator: URLValidator = None, session=None):
        self.validator = validator or URLValidator()
        self.session = session or requests.Session()
        self.logger = logging.getLogger('Folio.remote')

    def safe_get(self, url: str, **kwargs) -> Tuple[bool, Union[requests.Response, str]]:
        """
        Make a safe GET request after URL validation.

        Returns:
            Tuple of (success, response_or_error_message)
        """
        is_valid, error_msg = self.validator.validate_url(url)
        if not is_valid:
            return False, f"URL validation failed: {error_msg}"

        kwargs.setdefault('timeout', 30)
        kwargs.setdefault('allow_redirects', False)
        headers = dict(kwargs.pop('headers', None) or {})
        headers.setdefault('User-Agent', USER_AGENT)

        try:
            response = self.session.get(url, headers=headers, **kwargs)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            return False, f"HTTP request failed: {e}"

        self.logger.debug(f"Fetched {url}")
        return True, response

    def close(self):
        self.session.close()
