"""
LeagueMail recipient selection engine.

Cross-page contact selection for bulk email composition over a cursor-paginated
contact directory.
"""

__version__ = "0.1.0"
