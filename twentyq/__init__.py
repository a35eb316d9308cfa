"""
twentyq - Live twenty-questions sessions over HTTP.

One oracle thinks of something, any number of guessers ask yes/no
questions. The service provides:
- A registry of independent, time-limited game sessions
- Strict question/answer turn alternation per session
- Server-sent event fan-out so every participant sees turns live
- Signed per-session capability tokens for the oracle role
"""

__version__ = "0.1.0"
