"""Error types raised by the core pipeline."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """The rule set or settings document cannot be used as written.

    Always fatal for the reload that produced it: no entry is filtered with
    a rule set that raised this error.
    """


class ExtractionError(ValueError):
    """A feed item is missing data the caller requires (usually its id)."""
