"""
SITA Onboarding Engine.

Isolated module for new user setup. Walks a mode-dependent sequence of steps,
records timed discovery signals, persists resumable progress, and builds the
cognitive profile that drives how SITA adapts to the user.

Pieces:
1. Step sequencing - quick / guided / deep step lists (steps.py)
2. Discovery signals - answers plus decision timing (signals.py)
3. Progress recovery - resumable checkpoint with a 24h TTL (progress.py)
4. Cognitive profile + adaptation preview (profile.py, preview.py)
5. Session orchestration and completion hand-off (session.py, completion.py)
"""

from .completion import CompletionPipeline, CompletionResult, RemoteFailure, RemoteOk, RemoteSkipped
from .errors import InvalidSignalError, InvalidTransitionError, OnboardingError, UnknownAutomationError
from .payload import OnboardingData
from .profile import CognitiveProfile, Confidence, build_cognitive_profile
from .preview import generate_adaptation_preview
from .progress import ProgressStore, SavedProgress
from .session import OnboardingSession, SessionStatus
from .signals import CognitiveDiscoverySignals, Question, SignalRecorder
from .steps import SetupMode, StepId, steps_for

__all__ = [
    "CognitiveDiscoverySignals",
    "CognitiveProfile",
    "CompletionPipeline",
    "CompletionResult",
    "Confidence",
    "InvalidSignalError",
    "InvalidTransitionError",
    "OnboardingData",
    "OnboardingError",
    "OnboardingSession",
    "ProgressStore",
    "Question",
    "RemoteFailure",
    "RemoteOk",
    "RemoteSkipped",
    "SavedProgress",
    "SessionStatus",
    "SetupMode",
    "SignalRecorder",
    "StepId",
    "UnknownAutomationError",
    "build_cognitive_profile",
    "generate_adaptation_preview",
    "steps_for",
]
