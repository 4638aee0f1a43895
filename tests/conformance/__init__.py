"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the lending desk.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Pool and position accounting identities
2. atomicity.py - Failed operations change nothing
3. idempotency.py - Duplicate confirmation handling
4. determinism.py - Reproducible behavior and pure reads
5. temporal.py - Logical time, due dates, and loan lifecycles

These tests use hypothesis for property-based testing.
"""
