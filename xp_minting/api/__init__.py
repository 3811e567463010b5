"""HTTP API for the XP minting engine."""
