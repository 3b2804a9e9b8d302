import pytest

from loaders.layers import LAYERS, default_active_layers, get_layer, layer_url


def test_registry():
    assert get_layer("waterMains").layer_id == 84
    assert get_layer("waterMains").bin_by == "nominaldiameter"
    assert not get_layer("hydrants").is_line
    assert all(layer.is_line for key, layer in LAYERS.items() if key.startswith("ww"))


def test_default_active_layers():
    assert default_active_layers() == ["waterMains", "hydrants"]


def test_layer_url():
    assert layer_url("wwGravity", "https://example.test/MapServer/") == "https://example.test/MapServer/85"


def test_unknown_layer():
    with pytest.raises(KeyError, match="Unknown layer"):
        get_layer("gasMains")
