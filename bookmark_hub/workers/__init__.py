"""
Background workers: ingestion, enrichment, and their runtimes (asyncio daemon
or Celery).
"""
