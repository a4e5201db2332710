"""API Resilience Implementations.

Contains the fixed-window throttler that spaces and caps outgoing requests.
Bounded Context: API Resilience
"""
