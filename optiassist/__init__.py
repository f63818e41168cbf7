"""
Optical-Assist RAG - Clinical Practice Assistant

Retrieval-augmented question answering over Optical-Assist reference
documents for optometry clinics.

Features:
- PDF ingestion with hash deduplication and fixed-size word chunking
- pgvector nearest-neighbour retrieval
- Hosted LLM synthesis under a clinical guardrail prompt
- PII detection and redaction before anything leaves the service
"""

__version__ = "0.1.0"
__author__ = "Optical-Assist Team"
