from notesearch.lexical.bm25 import BM25Constants, bm25_scores, preprocess_text, tokenize
from notesearch.lexical.service import BM25Index

__all__ = ["BM25Constants", "BM25Index", "bm25_scores", "preprocess_text", "tokenize"]
