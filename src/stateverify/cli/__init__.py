from .main import build_parser, main, main_entry

__all__ = ["build_parser", "main", "main_entry"]
