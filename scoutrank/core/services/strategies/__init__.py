"""Validation strategy implementations.

- ConsensusValidationStrategy: scouts compared with their own consolidated consensus
- TBAValidationStrategy: alliance totals compared with the official score breakdown
- ManualValidationStrategy: scouts compared with a human-entered correction

Strategies are registered by ValidationStrategyFactory; do not add imports
here unless necessary.
"""
