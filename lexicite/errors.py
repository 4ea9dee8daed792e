"""Exception taxonomy for the citation pipeline."""

from __future__ import annotations


class LexiCiteError(Exception):
    """Base class for all LexiCite errors."""


class PatternError(LexiCiteError):
    """A custom extraction pattern could not be compiled."""


class TransportError(LexiCiteError):
    """An external call failed before a judgment could be made."""


class AuthError(LexiCiteError):
    """The authority database rejected or was missing a credential."""


class ParseError(LexiCiteError):
    """The AI verifier returned something that is not structured data."""


class StaleCitationError(LexiCiteError):
    """A correction targeted a span that no longer holds the citation text."""
