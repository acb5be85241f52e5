"""
Textbook retrieval engine: chunking, embedding, hybrid ranking, MMR
diversification and citation-backed answer composition over uploaded textbooks.
"""

__version__ = "0.1.0"
