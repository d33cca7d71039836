"""One Capital: realtime price delivery for demo crypto vaults."""
