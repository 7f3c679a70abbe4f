"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the token program.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Supply and native currency are conserved
2. atomicity.py - Failed calls leave no trace in state
3. allowance_race.py - Nonzero allowances cannot be overwritten
4. reentrancy.py - Effects before interactions; re-entrant calls see final state

These tests use hypothesis for property-based testing.
"""
