"""HTTP API package for the document drive runtime."""
