"""
salonbook - appointment availability and booking for a hair salon.
"""

__version__ = "0.1.0"
