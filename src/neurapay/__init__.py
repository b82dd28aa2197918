"""NeuraPay: pay-per-use access to AI services gated by on-chain payments."""

__version__ = "0.1.0"
