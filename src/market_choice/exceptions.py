"""Exception types raised by the estimation engines."""


class MarketChoiceError(Exception):
    """Base class for all market_choice errors."""


class DataValidationError(MarketChoiceError, ValueError):
    """Input data violates a structural invariant (NaNs, malformed choice tasks, shapes)."""


class ConfigurationError(MarketChoiceError, ValueError):
    """A caller-supplied setting is inconsistent with the data or the model."""


class FittingError(MarketChoiceError, RuntimeError):
    """An estimator failed to converge or produced an unusable curvature estimate."""
