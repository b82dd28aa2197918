"""HTTP API for the NeuraPay backend."""
