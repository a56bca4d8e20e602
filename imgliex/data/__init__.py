"""
Chapter listing, data models and resumable on-disk output.
"""

from .models import ChapterLink, ExtractedLinkSet
from .link_index import LinkIndex
from .resume_store import ResumeStore, count_lines

__all__ = [
    'ChapterLink',
    'ExtractedLinkSet',
    'LinkIndex',
    'ResumeStore',
    'count_lines'
]
