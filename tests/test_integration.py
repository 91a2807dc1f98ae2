"""Integration tests for the full detection run and the CLI."""

import json
import os

import numpy as np
import pytest
import yaml


class TestRunDetection:
    """Tests for the end-to-end pipeline with a fake native binding."""

    def test_outputs_written(self, ring_pgm, temp_dir, two_circle_detector):
        """Test that overlay, matrix and summary all land on disk."""
        from elsdc.io.save_artifacts import load_matrix
        from elsdc.native.detector import Detector
        from elsdc.pipeline import run_detection

        output = os.path.join(temp_dir, "out", "rings.png")
        summary = run_detection(
            ring_pgm, output_path=output, detector=Detector(binding=two_circle_detector)
        )

        assert summary.primitive_count == 3
        assert summary.image_path == output
        assert summary.matrix_path == os.path.join(temp_dir, "out", "rings_matrix.txt")
        assert os.path.exists(output)

        matrix = load_matrix(summary.matrix_path)
        assert matrix.shape == (3, 3)
        assert np.all(np.diag(matrix) == 1.0)
        assert np.array_equal(matrix, matrix.T)
        assert matrix[0, 1] > 0.0
        assert matrix[0, 2] == 0.0

        with open(os.path.join(temp_dir, "out", "rings_summary.json")) as f:
            data = json.load(f)
        assert data["primitive_count"] == 3
        assert data["primitives"][2]["full"] is False

        assert two_circle_detector.frees == 1

    def test_config_output_paths(self, ring_png, temp_dir, default_config, fake_detector_factory):
        """Test that configured paths are used when no output is given."""
        from elsdc.native.detector import Detector
        from elsdc.pipeline import run_detection

        default_config.output.image_path = os.path.join(temp_dir, "overlay.png")
        default_config.output.matrix_path = os.path.join(temp_dir, "matrix.txt")
        default_config.output.write_summary = False

        summary = run_detection(
            ring_png,
            config=default_config,
            detector=Detector(binding=fake_detector_factory(records=[])),
        )

        assert summary.primitive_count == 0
        assert os.path.exists(default_config.output.image_path)
        with open(default_config.output.matrix_path) as f:
            assert f.read() == ""
        assert not os.path.exists(os.path.join(temp_dir, "matrix_summary.json"))

    def test_missing_image_never_reaches_detector(self, temp_dir, two_circle_detector):
        """Test that a bad input path fails before the native call."""
        from elsdc.errors import ImageReadError
        from elsdc.native.detector import Detector
        from elsdc.pipeline import run_detection

        with pytest.raises(ImageReadError):
            run_detection(
                os.path.join(temp_dir, "missing.pgm"),
                output_path=os.path.join(temp_dir, "o.png"),
                detector=Detector(binding=two_circle_detector),
            )

        assert two_circle_detector.calls == 0

    def test_summary_path(self):
        """Test summary naming beside the matrix file."""
        from elsdc.pipeline import summary_path_for

        assert summary_path_for("out/rings_matrix.txt") == "out/rings_summary.json"
        assert summary_path_for("out/m.txt") == "out/m_summary.json"


class TestCli:
    """Tests for the command-line entry point."""

    def test_missing_input_returns_error(self, temp_dir, capsys):
        """Test that detection errors map to exit status 1."""
        from elsdc.cli import main

        status = main(["detect", os.path.join(temp_dir, "missing.pgm"),
                       "-o", os.path.join(temp_dir, "o.png")])

        assert status == 1
        assert "image not found" in capsys.readouterr().err

    def test_missing_library_returns_error(self, ring_pgm, temp_dir):
        """Test that an unloadable detector library is reported, not raised."""
        from elsdc.cli import main

        status = main(["detect", ring_pgm, "-o", os.path.join(temp_dir, "o.png"),
                       "--library", os.path.join(temp_dir, "libnothing.so")])

        assert status == 1

    def test_bad_config_returns_error(self, ring_pgm, temp_dir, capsys):
        """Test that a config file that is not a mapping exits with status 1."""
        from elsdc.cli import main

        config_path = os.path.join(temp_dir, "list.yaml")
        with open(config_path, "w") as f:
            f.write("- tracing\n")

        status = main(["detect", ring_pgm, "-c", config_path])

        assert status == 1
        assert "expected a mapping" in capsys.readouterr().err

    def test_tracing_section_configures_tracer(self, temp_dir):
        """Test that config.tracing enables tracing and names the trace file."""
        from elsdc.cli import main

        trace_path = os.path.join(temp_dir, "trace.log")
        config_path = os.path.join(temp_dir, "cfg.yaml")
        with open(config_path, "w") as f:
            yaml.safe_dump({"tracing": {"enabled": True, "file_path": trace_path}}, f)

        status = main(["detect", os.path.join(temp_dir, "missing.pgm"), "-c", config_path])

        assert status == 1
        with open(trace_path) as f:
            assert "Detection failed" in f.read()

    def test_trace_file_flag_overrides_config(self, temp_dir):
        """Test that --trace-file wins over the configured trace file."""
        from elsdc.cli import main

        config_trace = os.path.join(temp_dir, "from_config.log")
        flag_trace = os.path.join(temp_dir, "from_flag.log")
        config_path = os.path.join(temp_dir, "cfg.yaml")
        with open(config_path, "w") as f:
            yaml.safe_dump({"tracing": {"enabled": True, "file_path": config_trace}}, f)

        main(["detect", os.path.join(temp_dir, "missing.pgm"), "-c", config_path,
              "--trace-file", flag_trace])

        assert os.path.exists(flag_trace)
        assert not os.path.exists(config_trace)

    def test_tracing_off_by_default(self, temp_dir, capsys):
        """Test that detect stays quiet on stderr apart from the error line."""
        from elsdc.cli import main

        main(["detect", os.path.join(temp_dir, "missing.pgm")])

        err = capsys.readouterr().err
        assert "Processing image" not in err
        assert "image not found" in err

    def test_init_config(self, temp_dir):
        """Test that init-config writes a loadable file."""
        from elsdc.cli import main
        from elsdc.config import load_config

        path = os.path.join(temp_dir, "elsdc.yaml")

        assert main(["init-config", "--out", path]) == 0
        assert load_config(path).output.precision == 4

    def test_no_command_prints_help(self, capsys):
        """Test that running without a subcommand shows usage."""
        from elsdc.cli import main

        assert main([]) == 0
        assert "usage" in capsys.readouterr().out
