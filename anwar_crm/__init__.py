"""
ANWAR CRM - workflow backend for the Anwar sales ecosystem
"""

__version__ = "1.0.0"
