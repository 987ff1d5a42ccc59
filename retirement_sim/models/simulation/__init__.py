"""
Simulation engine types.

Key Components:
- config: Pydantic parameter models for a Monte Carlo run
- result: Per-path runs, aggregate results and the Cancelled outcome
- errors: Configuration error types
- protocols: Protocol interfaces for the sampler, withdrawal and income seams

Submodules are imported directly; this package stays import-light so the
model modules can depend on ``errors`` without import cycles.
"""
