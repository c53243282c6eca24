"""Refresh token lifecycle: codec wiring, rotation, revocation and retention."""
