"""Exceptions raised while driving quiz sessions."""


class QuizRunnerError(Exception):
    """Base class for all runner failures."""


class TransportError(QuizRunnerError, IOError):
    """The HTTP exchange failed (connection error, timeout, undecodable body, bad URL)."""


class RateLimitCancelled(QuizRunnerError):
    """The rate limiter was closed while a caller waited for a permit."""


class ParseTruncated(QuizRunnerError):
    """Markup ended unexpectedly. Callers keep whatever was extracted."""


class NoSessionCookie(QuizRunnerError):
    """The bootstrap response carried no usable Set-Cookie header."""
