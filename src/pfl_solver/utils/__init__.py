"""Chain, relay and transaction helpers for the PFL solver."""
