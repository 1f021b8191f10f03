"""
dbfeed - turns relational query results into search-index documents.
"""

__version__ = "0.1.0"
