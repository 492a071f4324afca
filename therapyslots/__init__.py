"""
therapyslots - appointment availability and recurring series management.
"""

__version__ = "0.1.0"
