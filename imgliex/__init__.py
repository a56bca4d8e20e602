"""
imgliex - resumable, concurrent manga image link extractor.
"""

__version__ = "1.0.0"
