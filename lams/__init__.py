"""
Land acquisition and allotment workflow engine
"""

__version__ = "0.1.0"
