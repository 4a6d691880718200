"""
Tests for scene manifest colour-space detection and rewriting
"""
import json

import pytest

from tests.helpers import make_gltf, make_png
from ktxify.config import ConverterSettings
from ktxify.discovery import LINEAR, SRGB
from ktxify.exceptions import ManifestError
from ktxify.manifest import (
    KTX2_MIME_TYPE,
    collect_color_spaces,
    find_manifests,
    rewrite_manifest,
)


def _touch_ktx2(root, *names):
    for name in names:
        (root / "textures" / name).write_bytes(b"ktx2")


class TestFindManifests:
    def test_finds_gltf_recursively(self, scene_dir):
        nested = make_gltf(scene_dir / "props" / "crate.gltf", [])
        assert find_manifests(scene_dir) == sorted([scene_dir / "scene.gltf", nested])

    def test_skips_hidden_directories(self, scene_dir):
        """Editor caches and VCS directories hold copies that must not be rewritten"""
        make_gltf(scene_dir / ".cache" / "hidden.gltf", ["../textures/floor.png"])
        make_gltf(scene_dir / "props" / ".backup" / "crate.gltf", [])
        assert find_manifests(scene_dir) == [scene_dir / "scene.gltf"]

    def test_custom_patterns(self, scene_dir):
        ron = scene_dir / "level.scn.ron"
        ron.write_text("()")
        settings = ConverterSettings(manifest_patterns=["*.ron"])
        assert find_manifests(scene_dir, settings) == [ron]


class TestCollectColorSpaces:
    """Which images hold colour and which hold data"""

    def test_normal_map_is_linear(self, scene_dir):
        spaces = collect_color_spaces([scene_dir / "scene.gltf"])
        textures = scene_dir / "textures"
        assert spaces[(textures / "floor.png").resolve()] == SRGB
        assert spaces[(textures / "wall.png").resolve()] == SRGB
        assert spaces[(textures / "wall_normal.png").resolve()] == LINEAR

    def test_colour_use_wins(self, tmp_path):
        """An image used as both base colour and occlusion stays sRGB"""
        make_gltf(
            tmp_path / "s.gltf",
            ["shared.png"],
            materials=[
                {"occlusionTexture": {"index": 0}},
                {"pbrMetallicRoughness": {"baseColorTexture": {"index": 0}}},
            ],
        )
        spaces = collect_color_spaces([tmp_path / "s.gltf"])
        assert spaces[(tmp_path / "shared.png").resolve()] == SRGB

    def test_metallic_roughness_is_linear(self, tmp_path):
        make_gltf(
            tmp_path / "s.gltf",
            ["mr.png"],
            materials=[{"pbrMetallicRoughness": {"metallicRoughnessTexture": {"index": 0}}}],
        )
        spaces = collect_color_spaces([tmp_path / "s.gltf"])
        assert spaces[(tmp_path / "mr.png").resolve()] == LINEAR

    def test_unused_images_default_to_srgb(self, tmp_path):
        make_gltf(tmp_path / "s.gltf", ["lonely.png"], materials=[])
        spaces = collect_color_spaces([tmp_path / "s.gltf"])
        assert spaces[(tmp_path / "lonely.png").resolve()] == SRGB

    def test_ignores_data_uris_and_bad_indices(self, tmp_path):
        make_gltf(
            tmp_path / "s.gltf",
            ["data:image/png;base64,AAAA", "real.png"],
            materials=[{"normalTexture": {"index": 99}}],
        )
        spaces = collect_color_spaces([tmp_path / "s.gltf"])
        assert list(spaces) == [(tmp_path / "real.png").resolve()]

    def test_invalid_json(self, tmp_path):
        bad = tmp_path / "bad.gltf"
        bad.write_text("{not json")
        with pytest.raises(ManifestError):
            collect_color_spaces([bad])


class TestRewriteGltf:
    """glTF reference rewriting"""

    def test_rewrites_all_converted(self, scene_dir):
        _touch_ktx2(scene_dir, "floor.ktx2", "wall.ktx2", "wall_normal.ktx2")
        manifest = scene_dir / "scene.gltf"

        outcome = rewrite_manifest(manifest)

        assert outcome.rewritten == 3
        assert outcome.changed
        assert outcome.unresolved == []
        text = manifest.read_text()
        assert ".png" not in text
        assert text.count(".ktx2") == 3
        gltf = json.loads(text)
        assert gltf["images"][0]["uri"] == "textures/floor.ktx2"
        assert all(img["mimeType"] == KTX2_MIME_TYPE for img in gltf["images"])

    def test_keeps_references_without_counterpart(self, scene_dir):
        _touch_ktx2(scene_dir, "floor.ktx2")
        outcome = rewrite_manifest(scene_dir / "scene.gltf")

        assert outcome.rewritten == 1
        assert outcome.unresolved == ["textures/wall.png", "textures/wall_normal.png"]
        gltf = json.loads((scene_dir / "scene.gltf").read_text())
        assert gltf["images"][1]["uri"] == "textures/wall.png"
        assert gltf["images"][1]["mimeType"] == "image/png"

    def test_second_rewrite_is_noop(self, scene_dir):
        _touch_ktx2(scene_dir, "floor.ktx2", "wall.ktx2", "wall_normal.ktx2")
        manifest = scene_dir / "scene.gltf"
        rewrite_manifest(manifest)
        before = manifest.read_bytes()

        outcome = rewrite_manifest(manifest)

        assert outcome.rewritten == 0
        assert not outcome.changed
        assert manifest.read_bytes() == before

    def test_nothing_converted_leaves_file_untouched(self, scene_dir):
        manifest = scene_dir / "scene.gltf"
        before = manifest.read_bytes()
        outcome = rewrite_manifest(manifest)
        assert not outcome.changed
        assert manifest.read_bytes() == before

    def test_url_encoded_uri(self, tmp_path):
        make_png(tmp_path / "old brick.png")
        (tmp_path / "old brick.ktx2").write_bytes(b"ktx2")
        make_gltf(tmp_path / "s.gltf", ["old%20brick.png"])

        outcome = rewrite_manifest(tmp_path / "s.gltf")

        assert outcome.rewritten == 1
        gltf = json.loads((tmp_path / "s.gltf").read_text())
        assert gltf["images"][0]["uri"] == "old%20brick.ktx2"

    def test_uppercase_extension(self, tmp_path):
        (tmp_path / "Bark.ktx2").write_bytes(b"ktx2")
        make_gltf(tmp_path / "s.gltf", ["Bark.PNG"])
        rewrite_manifest(tmp_path / "s.gltf")
        gltf = json.loads((tmp_path / "s.gltf").read_text())
        assert gltf["images"][0]["uri"] == "Bark.ktx2"

    def test_missing_manifest(self, tmp_path):
        with pytest.raises(ManifestError):
            rewrite_manifest(tmp_path / "missing.gltf")

    def test_no_temp_files_left(self, scene_dir):
        _touch_ktx2(scene_dir, "floor.ktx2")
        rewrite_manifest(scene_dir / "scene.gltf")
        assert not list(scene_dir.glob("*.tmp"))


class TestRewriteText:
    """Substitution in non-glTF manifests"""

    def test_quoted_references(self, scene_dir):
        _touch_ktx2(scene_dir, "floor.ktx2", "wall.ktx2")
        ron = scene_dir / "level.scn.ron"
        ron.write_text(
            '(\n'
            '  floor: "textures/floor.png",\n'
            "  wall: 'textures/wall.png',\n"
            '  normal: "textures/wall_normal.png",\n'
            '  label: floor.png,\n'
            ')\n'
        )

        outcome = rewrite_manifest(ron)

        assert outcome.rewritten == 2
        assert outcome.unresolved == ["textures/wall_normal.png"]
        text = ron.read_text()
        assert '"textures/floor.ktx2"' in text
        assert "'textures/wall.ktx2'" in text
        assert '"textures/wall_normal.png"' in text
        # Unquoted text is not a reference
        assert "label: floor.png" in text
