"""
bookmark_hub: save articles from URLs, enrich them with tags, summaries and
embeddings, and search or question them.
"""

__version__ = "0.1.0"
