"""
Page fetching and resource link extraction.
"""

from .base import BaseFetcher, DEFAULT_TIMEOUT, DEFAULT_USER_AGENT
from .http_client import HTTPClient
from .extractor import ExtractionRule, LinkExtractor

__all__ = [
    'BaseFetcher',
    'DEFAULT_TIMEOUT',
    'DEFAULT_USER_AGENT',
    'HTTPClient',
    'ExtractionRule',
    'LinkExtractor'
]
