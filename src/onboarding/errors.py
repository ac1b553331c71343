"""Onboarding error taxonomy."""


class OnboardingError(Exception):
    """Base class for onboarding errors."""


class InvalidTransitionError(OnboardingError):
    """A transition was requested from a step that does not allow it."""


class InvalidSignalError(OnboardingError):
    """A discovery answer is outside the question's closed set of values."""


class UnknownAutomationError(OnboardingError):
    """An automation id is not in the template catalog."""


class InvalidFieldError(OnboardingError):
    """A value does not fit the onboarding field it was written to."""
