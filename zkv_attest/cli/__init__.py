"""zkv-attest command-line interface."""
