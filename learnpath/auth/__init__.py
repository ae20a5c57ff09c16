"""Authentication: bearer JWT decoding, roles and the caller context."""
