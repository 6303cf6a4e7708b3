"""
AdCast - digital-signage ad scheduling and device push backend.
"""

__version__ = "0.1.0"
