"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- Documentation file selection and deduplication
- HTML text extraction and document loading
- Document chunking with overlap
- FAISS vector storage and index persistence
- Semantic retrieval and answer synthesis
"""
