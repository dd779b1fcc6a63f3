"""
Business logic: stores, processors, LLM client, RAG and the service facade.
"""
