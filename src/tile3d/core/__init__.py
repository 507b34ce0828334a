"""Tile conversion core: handlers, road graph, elevation batching."""
