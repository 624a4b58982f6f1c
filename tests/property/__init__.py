"""
Componentry - Property-Based Testing Suite

Property-based testing using Hypothesis to discover edge cases in
dependency ordering, cycle detection, and the container state machine.
"""
