"""OAuth sign-in/sign-out flow coordination.

This package sits between a unidirectional state store and an asynchronous
identity provider. It turns sign-in and sign-out intents into provider calls,
tracks the in-flight lifetime of those calls and reports exactly one outcome
action per intent.
"""

__version__ = "0.1.0"
