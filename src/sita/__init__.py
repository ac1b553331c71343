"""
SITA - personal life operating system.

Core services shared by the client-side engines:
- config: environment-driven settings
- storage: local durable channel (key/value, JSON-serialized)
- db: hosted database client
- observability: event logging for onboarding sessions
"""

__version__ = "1.0.0"
