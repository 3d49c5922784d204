# Utils package
from .logging_utils import setup_logging, get_logger, LogTimer
from .tokens import tokenize, unique_tokens, normalize_phrase

__all__ = ['setup_logging', 'get_logger', 'LogTimer', 'tokenize', 'unique_tokens', 'normalize_phrase']
