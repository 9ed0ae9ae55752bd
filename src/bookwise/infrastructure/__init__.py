"""
Infrastructure Layer - External Systems Integration

Contains:
- cache: Shared result cache and background write queue
- sources: Catalog clients (Gutendex, Open Library, Google Books)
- content: Book id to text/metadata resolution
- generation: Hugging Face text generation and speech synthesis
- persistence: Record stores
"""
