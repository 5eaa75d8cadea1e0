# src/reddit_oauth/utils/__init__.py

from .browser import is_headless_environment, open_browser
from .state_token import generate_state_string

__all__ = ['is_headless_environment', 'open_browser', 'generate_state_string']
