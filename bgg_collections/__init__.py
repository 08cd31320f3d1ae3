"""Boardgame collection acquisition and consolidation pipeline."""
