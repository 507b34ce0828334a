import logging
from io import BytesIO
from unittest.mock import AsyncMock, MagicMock, patch

import numpy as np
import pytest
from PIL import Image

# A zoom-12 tile over the Alps; terrain tiles are fetched at the same zoom
TILE = (2138, 1446, 12)


def _terrarium_png(elevation: float) -> bytes:
    value = elevation + 32768.0
    r = int(value // 256)
    g = int(value % 256)
    buf = BytesIO()
    Image.new("RGB", (256, 256), (r, g, 0)).save(buf, format="PNG")
    return buf.getvalue()


def _mock_client(mock_client_cls, get):
    mock_client = AsyncMock()
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    mock_client.get = get
    mock_client_cls.return_value = mock_client
    return mock_client


def test_decode_terrarium():
    from tile3d.core.heights import _decode_terrarium
    assert _decode_terrarium(np.array([128.0]), np.array([100.0]), np.array([0.0]))[0] == 100.0


def test_heights_module_has_logger():
    import tile3d.core.heights as heights_mod
    assert hasattr(heights_mod, "logger")


@pytest.mark.anyio
async def test_heights_sampled_from_terrain_tiles():
    from tile3d.core.heights import TerrariumHeightProvider

    response = MagicMock(status_code=200, content=_terrarium_png(1250.0))
    with patch("httpx.AsyncClient") as mock_client_cls:
        client = _mock_client(mock_client_cls, AsyncMock(return_value=response))
        provider = TerrariumHeightProvider().for_tile(*TILE)
        heights = await provider(np.array([10.0, 10.0, 500.0, 800.0]))

    np.testing.assert_allclose(heights, [1250.0, 1250.0])
    assert client.get.await_count >= 1
    url = client.get.await_args_list[0].args[0]
    assert "/12/" in url and url.endswith(".png")


@pytest.mark.anyio
async def test_failed_tile_logs_warning_and_reads_zero(caplog):
    from tile3d.core.heights import TerrariumHeightProvider

    with caplog.at_level(logging.WARNING, logger="tile3d.core.heights"):
        with patch("httpx.AsyncClient") as mock_client_cls:
            _mock_client(mock_client_cls, AsyncMock(side_effect=Exception("tile fetch failed")))
            heights = await TerrariumHeightProvider().get_heights(np.array([10.0, 10.0]), *TILE)

    np.testing.assert_array_equal(heights, [0.0])
    assert any(
        r.name == "tile3d.core.heights" and r.levelno == logging.WARNING
        for r in caplog.records
    )


@pytest.mark.anyio
async def test_http_error_status_logs_warning(caplog):
    from tile3d.core.heights import TerrariumHeightProvider

    response = MagicMock(status_code=404, content=b"")
    with caplog.at_level(logging.WARNING, logger="tile3d.core.heights"):
        with patch("httpx.AsyncClient") as mock_client_cls:
            _mock_client(mock_client_cls, AsyncMock(return_value=response))
            await TerrariumHeightProvider().get_heights(np.array([10.0, 10.0]), *TILE)

    assert any("404" in r.getMessage() for r in caplog.records)


@pytest.mark.anyio
async def test_empty_positions_skip_network():
    from tile3d.core.heights import TerrariumHeightProvider

    with patch("httpx.AsyncClient") as mock_client_cls:
        heights = await TerrariumHeightProvider().get_heights(np.array([]), *TILE)

    assert heights.size == 0
    mock_client_cls.assert_not_called()


@pytest.mark.anyio
async def test_odd_positions_rejected():
    from tile3d.core.heights import TerrariumHeightProvider

    with pytest.raises(ValueError, match="pairs"):
        await TerrariumHeightProvider().get_heights(np.array([1.0, 2.0, 3.0]), *TILE)


@pytest.mark.anyio
async def test_too_many_terrain_tiles_rejected():
    from tile3d.core.heights import TerrariumHeightProvider
    from tile3d.state import Tile3DProviderParams

    provider = TerrariumHeightProvider(Tile3DProviderParams(terrain_zoom=15, max_terrain_tiles=4))
    with patch("httpx.AsyncClient") as mock_client_cls:
        with pytest.raises(ValueError, match="limit is 4"):
            await provider.get_heights(np.array([0.0, 0.0, 9000.0, 9000.0]), *TILE)
    mock_client_cls.assert_not_called()
