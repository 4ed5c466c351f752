from .jsonl_store import SessionJsonlStore

__all__ = ["SessionJsonlStore"]
