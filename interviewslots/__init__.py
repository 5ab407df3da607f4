"""
interviewslots - match declared free time and book interview slots.
"""

__version__ = "0.1.0"
