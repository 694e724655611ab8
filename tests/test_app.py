import json

import pytest

from particle_sim2d.rendering.pyglet_renderer import RenderFrame
from particle_sim2d.ui.app import ParticleSim2DApp, main
from particle_sim2d.utils.benchmark import max_relative_error, run_benchmark


@pytest.fixture
def params_file(tmp_path):
    path = tmp_path / "params.json"
    path.write_text(json.dumps({"particle_count": 40, "seed": 3}), encoding="utf-8")
    return path


class TestHeadlessApp:
    def test_run_headless_reports(self, params_file, capsys):
        app = ParticleSim2DApp(params_file)
        issues = app.run_headless(20, report_every=10)

        assert issues == []
        assert app.sim.step_count == 20
        out = capsys.readouterr().out
        assert "[sim] step 10:" in out
        assert "[sim] step 20:" in out
        assert "20 steps" in out
        assert "E=" in out

    def test_keys(self, params_file):
        app = ParticleSim2DApp(params_file)
        app._on_key("space")
        app._step(0.016)
        assert app.sim.step_count == 0

        app._on_key("space")
        app._step(0.016)
        assert app.sim.step_count == 1

        app._on_key("r")
        assert app.sim.step_count == 0

        app._on_key("f")
        assert app.params.fps_report is True

    def test_frame_hook_feeds_fps(self, params_file):
        app = ParticleSim2DApp(params_file)
        assert app.fps() == 0.0
        app._on_frame(RenderFrame(dt=0.5))
        app._on_frame(RenderFrame(dt=0.5))
        assert app.fps() == pytest.approx(2.0)

    def test_frame_and_caption(self, params_file):
        app = ParticleSim2DApp(params_file)
        frame = app._get_frame()
        assert frame.shape == (512, 512, 4)
        assert "N=41" in app._get_caption()

    def test_point_size_enlarges_particles(self, tmp_path):
        lit = []
        for size in (1.0, 4.0):
            path = tmp_path / f"params_{int(size)}.json"
            path.write_text(json.dumps({"particle_count": 40, "seed": 3, "point_size": size}), encoding="utf-8")
            frame = ParticleSim2DApp(path)._get_frame()
            lit.append(int((frame[:, :, :3].sum(axis=2) > 0).sum()))
        assert lit[1] > lit[0]

    def test_bad_params_file_falls_back_to_defaults(self, tmp_path, capsys):
        path = tmp_path / "params.json"
        path.write_text("[]", encoding="utf-8")
        app = ParticleSim2DApp(path)

        assert app.params.particle_count == 5000
        assert "failed to load" in capsys.readouterr().err

    def test_main_headless(self, params_file, capsys):
        assert main(["--params", str(params_file), "--headless", "--steps", "3", "--report-every", "0"]) == 0
        assert "3 steps" in capsys.readouterr().out


class TestBenchmark:
    def test_max_relative_error(self):
        assert max_relative_error([1.0], [0.0], [1.0], [0.0]) == 0.0
        assert max_relative_error([1.1, 5.0], [0.0, 0.0], [1.0, 0.0], [0.0, 0.0]) == pytest.approx(0.1)

    def test_run_benchmark_small(self, capsys):
        results = run_benchmark(50, 1, thetas=(0.0, 0.6))
        assert results["barnes_hut_0.0_err"] < 1e-6
        assert results["barnes_hut_0.6_err"] >= 0.0
        assert "Summary" in capsys.readouterr().out
