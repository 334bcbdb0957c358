"""
Outcome Service: clinical outcome measurement and progress tracking API.
"""
__version__ = "1.0.0"
