"""
Test helpers: small real images, minimal glTF files and a stand-in encoder.
"""
import json
import subprocess
from pathlib import Path

from PIL import Image

FAKE_TOOL_PATH = "/usr/local/bin/kram"
KTX2_MAGIC = b"\xabKTX 20\xbb\r\n\x1a\n"


def make_png(path: Path, size=(4, 4), mode="RGB", color=(200, 120, 40)) -> Path:
    """Write a small real PNG with Pillow"""
    path.parent.mkdir(parents=True, exist_ok=True)
    if mode == "RGBA" and len(color) == 3:
        color = color + (255,)
    Image.new(mode, size, color).save(path, format="PNG")
    return path


def make_gltf(path: Path, image_uris, materials=None) -> Path:
    """Write a minimal glTF that references image_uris (one texture per image)"""
    gltf = {
        "asset": {"version": "2.0"},
        "images": [{"uri": uri, "mimeType": "image/png"} for uri in image_uris],
        "textures": [{"source": i} for i in range(len(image_uris))],
        "materials": materials or [
            {"pbrMetallicRoughness": {"baseColorTexture": {"index": i}}}
            for i in range(len(image_uris))
        ],
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(gltf, indent=2))
    return path


def fake_encode(cmd, *args, **kwargs):
    """
    Behave like the encoder: write a KTX2-looking file at -o.

    Sources whose name contains "broken" fail with exit status 1.
    """
    source = Path(cmd[cmd.index("-i") + 1])
    output = Path(cmd[cmd.index("-o") + 1])
    if "broken" in source.name:
        return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="kram: could not decode image")
    output.write_bytes(KTX2_MAGIC + source.read_bytes())
    return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")
