# insight_engine/errors.py


class ContextError(ValueError):
    """The analysis request itself is unusable (question or dataset missing)"""


class NormalizationError(ValueError):
    """A raw dataset could not be converted into the canonical shape"""
