"""Integration tests for the sample scenes and the dump script.

Tests cover:
- Parsing the Cornell box scene with its Import and Include files
- JSON export of a complete scene
- The dump_scene command-line entry point
"""

import json

from src.pbrt.parser import parse_file


class TestCornellBox:
    """Tests for examples/scenes/cornell_box.pbrt."""

    def test_parse(self, example_scenes):
        """Test the scene parses with the expected contents."""
        scene = parse_file(example_scenes / "cornell_box.pbrt")

        assert scene.camera.type == "perspective"
        assert scene.camera.params.get_float("fov") == 40.0
        assert scene.film.params.get_int("xresolution") == 512
        assert scene.sampler.params.get_int("pixelsamples") == 100
        assert scene.warnings == ()

        # light quad, five walls, three spheres
        assert len(scene.shapes) == 9
        assert len(scene.area_lights) == 1
        assert set(scene.named_materials) == {"red", "green", "white", "silver", "glass"}

    def test_light_comes_first(self, example_scenes):
        """Test the included light is spliced in where it is included."""
        scene = parse_file(example_scenes / "cornell_box.pbrt")
        light = scene.shapes[0]
        assert light.area_light is not None
        assert light.location.source.endswith("lights.pbrt")
        assert all(shape.area_light is None for shape in scene.shapes[1:])

    def test_sphere_materials(self, example_scenes):
        """Test the spheres resolve their named materials."""
        scene = parse_file(example_scenes / "cornell_box.pbrt")
        spheres = [s for s in scene.shapes if s.type == "sphere"]
        assert [s.material.name for s in spheres] == ["white", "silver", "glass"]
        assert spheres[1].material.params.get("eta").first == "metal-Ag-eta"

    def test_json_export(self, example_scenes):
        """Test the whole scene serializes to JSON."""
        scene = parse_file(example_scenes / "cornell_box.pbrt")
        data = json.loads(json.dumps(scene.to_dict()))
        assert len(data["shapes"]) == 9
        assert data["camera"]["type"] == "perspective"


class TestDumpScene:
    """Tests for the dump_scene entry point."""

    def test_summary(self, example_scenes, capsys):
        """Test the default summary output."""
        from examples.dump_scene import main

        assert main([str(example_scenes / "cornell_box.pbrt")]) == 0
        out = capsys.readouterr().out
        assert "Camera: perspective" in out
        assert "shapes: 9" in out

    def test_json(self, example_scenes, capsys):
        """Test --json output."""
        from examples.dump_scene import main

        assert main([str(example_scenes / "cornell_box.pbrt"), "--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["film"]["type"] == "rgb"

    def test_error_exit_code(self, tmp_path, capsys):
        """Test a parse error is reported on stderr."""
        from examples.dump_scene import main

        scene = tmp_path / "bad.pbrt"
        scene.write_text('WorldBegin\nAttributeEnd\n', encoding="utf-8")

        assert main([str(scene)]) == 1
        assert "bad.pbrt:2" in capsys.readouterr().err
