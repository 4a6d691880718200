"""
Shared fixtures: a small glTF scene on disk and a stand-in encoder.
"""
from unittest.mock import patch

import pytest

from tests.helpers import FAKE_TOOL_PATH, fake_encode, make_gltf, make_png


@pytest.fixture
def scene_dir(tmp_path):
    """
    Assets root with floor.png, wall.png and wall_normal.png under textures/,
    referenced from scene.gltf (wall_normal as a normal map).
    """
    root = tmp_path / "assets"
    for name in ("floor.png", "wall.png", "wall_normal.png"):
        make_png(root / "textures" / name)

    make_gltf(
        root / "scene.gltf",
        ["textures/floor.png", "textures/wall.png", "textures/wall_normal.png"],
        materials=[
            {"name": "floor", "pbrMetallicRoughness": {"baseColorTexture": {"index": 0}}},
            {
                "name": "wall",
                "pbrMetallicRoughness": {"baseColorTexture": {"index": 1}},
                "normalTexture": {"index": 2},
            },
        ],
    )
    return root


@pytest.fixture
def fake_encoder():
    """Patch tool lookup and subprocess so no real encoder is needed"""
    with patch('ktxify.tool.shutil.which', return_value=FAKE_TOOL_PATH), \
            patch('ktxify.tool.subprocess.run', side_effect=fake_encode) as mock_run:
        yield mock_run
