"""Prerequisite checking helpers for MCP tools."""


def require_state(state, *, tile: bool = False, vector_tile: bool = False, result: bool = False) -> None:
    """Raise ValueError with a descriptive message if required state is not set.

    Usage in a tool:
        try:
            require_state(state, tile=True, vector_tile=True)
        except ValueError as e:
            return f"Error: {e}"
    """
    if tile and state.tile is None:
        raise ValueError("Set the tile coordinates first with set_tile.")
    if vector_tile and state.vector_tile is None:
        raise ValueError("Load vector features first with load_vector_tile.")
    if result and state.result is None:
        raise ValueError("Generate the 3D tile first with generate_tile.")
