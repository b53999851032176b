"""
External Services Package

Record storage and identity providers. Every service talks to its backend
through an abstract interface so backends can be swapped by configuration.
"""
