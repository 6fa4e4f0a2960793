"""
Tests for the command-line entry point.

Tests cover:
1. A short run and a short stability search exit with 0
2. Configuration errors exit with 1 before any run starts
3. The used configuration and the log file are written next to the output
4. Wrongly typed configuration values and unusable output directories exit with 1
"""

import pytest
import yaml

from amrwave.app import build_parser, main
from amrwave.config import load_yaml

SMALL_RUN = ['--degree', '1', '--n-refinements', '2', '--n-adaptive', '1',
             '--adapt-interval', '2', '--cfl', '0.2', '--final-time', '0.1',
             '--output-interval', '0.05', '--log-level', 'WARNING']


class TestParser:

    def test_defaults_are_unset(self):
        args = build_parser().parse_args([])
        assert args.degree is None
        assert args.cfl is None
        assert not args.stability
        assert not args.no_output

    def test_integrator_choices(self):
        args = build_parser().parse_args(['--integrator', 'ssprk', '--ssp-stages', '3',
                                          '--ssp-order', '3'])
        assert args.integrator == 'ssprk'
        assert args.ssp_stages == 3


class TestMain:

    def test_short_run(self):
        assert main(SMALL_RUN + ['--no-output']) == 0

    def test_ssp_run(self):
        assert main(SMALL_RUN + ['--integrator', 'ssprk', '--ssp-stages', '4',
                                 '--ssp-order', '3', '--no-output']) == 0

    def test_writes_used_config(self, tmp_path):
        out = tmp_path / "run"
        assert main(SMALL_RUN + ['--output-dir', str(out)]) == 0
        used = load_yaml(out / "config_used.yaml")
        assert used.discretization.degree == 1
        assert used.mesh.n_refinements == 2
        assert list(out.glob("*.vtk"))
        assert (out / "amrwave.log").exists()

    def test_stability_search(self, tmp_path):
        config_file = tmp_path / "search.yaml"
        config_file.write_text(yaml.safe_dump({
            'discretization': {'degree': 1, 'dimension': 2},
            'time': {'cfl': 0.2, 'final_time': 0.05, 'output_interval': 0.025},
            'mesh': {'n_refinements': 2, 'n_adaptive_refinements': 0},
            'stability': {'iterations': 2},
            'output': {'enabled': True, 'directory': str(tmp_path / "out")},
            'logging': {'level': 'WARNING'},
        }))
        assert main(['--config', str(config_file), '--stability']) == 0
        assert (tmp_path / "out" / "cfl_search_deg1.pdf").exists()

    def test_missing_config_file(self, tmp_path):
        assert main(['--config', str(tmp_path / "missing.yaml")]) == 1

    def test_unsupported_degree(self):
        assert main(['--degree', '7', '--no-output']) == 1

    def test_unsupported_ssp_pair(self):
        assert main(['--integrator', 'ssprk', '--ssp-stages', '5', '--ssp-order', '3',
                     '--no-output']) == 1

    @pytest.mark.parametrize("content", [
        {'time': {'cfl': 'fast'}},
        {'time': 5},
        {'mesh': {'n_refinements': 2.5}},
        {'stability': {'decrement': 0.5}},
    ])
    def test_wrongly_typed_config(self, tmp_path, content):
        config_file = tmp_path / "bad.yaml"
        config_file.write_text(yaml.safe_dump(content))
        assert main(['--config', str(config_file), '--no-output']) == 1

    def test_scalar_section_with_cli_override(self, tmp_path):
        config_file = tmp_path / "bad.yaml"
        config_file.write_text("time: 5\n")
        assert main(['--config', str(config_file), '--cfl', '0.3', '--no-output']) == 1

    def test_unwritable_output_directory(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        assert main(SMALL_RUN + ['--output-dir', str(blocker / "run")]) == 1
