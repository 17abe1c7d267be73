"""
core - domain-independent framework layer

- engine: transition table validation (state machines)
- notification: notification channel interface and registry
"""
