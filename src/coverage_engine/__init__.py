"""Coverage matching and gap analysis engine.

Takes an endpoint registry, the baseline and AI-suggested scenario
catalogues, a test index and a semantic match oracle, and produces one
immutable :class:`~src.shared.models.CoverageResult`.
"""

__version__ = "1.0.0"
