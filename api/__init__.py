"""HTTP API for the bridge explorer."""
