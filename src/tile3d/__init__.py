"""Vector tile to 3D tile feature conversion."""
