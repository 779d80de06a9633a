import json
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from contract_tools.build import (
    apply_config,
    create_parser,
    execute,
    execute_args,
    main,
    parse_options,
    print_result,
    project_root_for,
)
from contract_tools.shared.config import BuildConfig, BuildSection, SolangSection
from contract_tools.shared.errors import ConfigurationError, PathError
from contract_tools.shared.types import (
    DEFAULT_MAX_MEMORY_PAGES,
    BuildArtifacts,
    BuildMode,
    BuildResult,
    Network,
    OptimizationPasses,
    OutputType,
    Target,
    Verbosity,
)


def make_result(**overrides):
    values = dict(
        target_directory=Path("/project/target/ink"),
        build_mode=BuildMode.DEBUG,
        build_artifact=BuildArtifacts.ALL,
        verbosity=Verbosity.DEFAULT,
        output_type=OutputType.HUMAN_READABLE,
    )
    values.update(overrides)
    return BuildResult(**values)


@pytest.fixture
def project(tmp_path, monkeypatch):
    """An empty project directory used as the working directory."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


class TestParseOptions:
    def test_defaults(self, project):
        options = parse_options([], cwd=project)

        assert options.manifest_path is None
        assert options.build_release is False
        assert options.build_artifact is BuildArtifacts.ALL
        assert options.optimization_passes is None
        assert options.target is Target.WASM
        assert options.max_memory_pages == DEFAULT_MAX_MEMORY_PAGES
        assert options.solang is False
        assert options.solidity_filename == ()
        assert options.solang_binary == "solang"
        assert options.config_path is None

    def test_build_flags(self, project):
        options = parse_options(
            [
                "--release",
                "--offline",
                "--lint",
                "--generate", "code-only",
                "--optimization-passes", "3",
                "--keep-debug-symbols",
                "--skip-wasm-validation",
                "--target", "riscv",
                "--max-memory-pages", "32",
                "--features", "std,foo",
                "--features", "bar",
            ],
            cwd=project,
        )

        assert options.build_release is True
        assert options.build_offline is True
        assert options.lint is True
        assert options.build_artifact is BuildArtifacts.CODE_ONLY
        assert options.optimization_passes is OptimizationPasses.THREE
        assert options.keep_debug_symbols is True
        assert options.skip_wasm_validation is True
        assert options.target is Target.RISCV
        assert options.max_memory_pages == 32
        assert options.features.features == ("std", "foo", "bar")

    def test_solang_flags(self, project):
        options = parse_options(
            [
                "--solang",
                "--solidity-filename", "a.sol", "b.sol",
                "-O", "less",
                "-o", "out",
                "--output-meta", "meta",
                "-I", "lib",
                "--importpath", "vendor",
                "-m", "oz=node_modules/oz",
                "--address-length", "32",
                "--value-length", "16",
                "--no-cse",
                "--no-print",
            ],
            cwd=project,
        )

        assert options.solang is True
        assert options.solidity_filename == ("a.sol", "b.sol")
        assert options.optimizer_level == "less"
        assert options.output == "out"
        assert options.output_meta == "meta"
        assert options.import_path == ("lib", "vendor")
        assert options.import_map == ("oz=node_modules/oz",)
        assert options.address_length == 32
        assert options.value_length == 16
        assert options.no_cse is True
        assert options.no_print is True

    @pytest.mark.parametrize(
        "argv",
        [
            ["--optimization-passes", "5"],
            ["--generate", "everything"],
            ["--target", "evm"],
            ["--address-length", "256"],
            ["--max-memory-pages", "-1"],
        ],
    )
    def test_invalid_values_exit(self, project, argv):
        with pytest.raises(SystemExit):
            parse_options(argv, cwd=project)

    @pytest.mark.parametrize("verbosity_flag", [[], ["--verbose"], ["--quiet"]])
    def test_output_json_forces_quiet(self, project, verbosity_flag):
        options = parse_options(["--output-json", *verbosity_flag], cwd=project)

        assert options.resolved_verbosity() is Verbosity.QUIET

    def test_config_file_defaults(self, project):
        (project / "contract-build.yaml").write_text(
            "build:\n"
            "  optimization_passes: s\n"
            "  max_memory_pages: 8\n"
            "solang:\n"
            "  binary: /opt/solang/bin/solang\n"
            "  import_path: [lib]\n"
        )

        options = parse_options([], cwd=project)

        assert options.optimization_passes is OptimizationPasses.S
        assert options.max_memory_pages == 8
        assert options.import_path == ("lib",)
        assert options.solang_binary == "/opt/solang/bin/solang"
        assert options.config_path == project / "contract-build.yaml"

    def test_cli_overrides_config(self, project):
        (project / "contract-build.yaml").write_text(
            "build:\n  optimization_passes: s\nsolang:\n  import_path: [lib]\n"
        )

        options = parse_options(
            ["--optimization-passes", "1", "-I", "other"],
            cwd=project,
        )

        assert options.optimization_passes is OptimizationPasses.ONE
        assert options.import_path == ("other",)

    def test_config_found_next_to_manifest(self, project):
        crate = project / "contracts" / "flipper"
        crate.mkdir(parents=True)
        (crate / "contract-build.yaml").write_text("build:\n  target: riscv\n")

        options = parse_options(
            ["--manifest-path", "contracts/flipper/Cargo.toml"],
            cwd=project,
        )

        assert options.target is Target.RISCV


class TestProjectRootFor:
    def test_no_manifest(self, tmp_path):
        assert project_root_for(None, tmp_path) == tmp_path

    def test_relative_manifest(self, tmp_path):
        assert project_root_for(Path("a/Cargo.toml"), tmp_path) == tmp_path / "a"

    def test_absolute_manifest(self, tmp_path):
        assert project_root_for(Path("/x/Cargo.toml"), tmp_path) == Path("/x")


class TestApplyConfig:
    def test_fills_unset_values(self):
        namespace = create_parser().parse_args([])
        config = BuildConfig(
            build=BuildSection(features=["std"]),
            solang=SolangSection(optimizer_level="aggressive", output="out"),
        )

        merged = apply_config(namespace, config)

        assert merged.features == ["std"]
        assert merged.optimizer_level == "aggressive"
        assert merged.output == "out"
        assert namespace.optimizer_level is None


class TestExecuteArgs:
    def test_release_and_offline(self, project):
        options = parse_options(["--release", "--offline"], cwd=project)

        args = execute_args(options)

        assert args.build_mode is BuildMode.RELEASE
        assert args.network is Network.OFFLINE
        assert args.output_type is OutputType.HUMAN_READABLE

    def test_json_output(self, project):
        options = parse_options(["--output-json", "--verbose"], cwd=project)

        args = execute_args(options)

        assert args.output_type is OutputType.JSON
        assert args.verbosity is Verbosity.QUIET

    def test_quiet_and_verbose_conflict(self, project):
        options = parse_options(["--quiet", "--verbose"], cwd=project)

        with pytest.raises(ConfigurationError):
            execute_args(options)

    def test_manifest_must_be_cargo_toml(self, project):
        options = parse_options(["--manifest-path", "contract/package.json"], cwd=project)

        with pytest.raises(PathError):
            execute_args(options)

    def test_unknown_unstable_option(self, project):
        options = parse_options(["-Z", "bogus"], cwd=project)

        with pytest.raises(ConfigurationError):
            execute_args(options)

    def test_unstable_original_manifest(self, project):
        options = parse_options(["-Z", "original-manifest"], cwd=project)

        assert execute_args(options).unstable_flags.original_manifest is True

    def test_optimization_passes_from_manifest(self, project):
        (project / "Cargo.toml").write_text(
            '[package]\nname = "flipper"\n\n'
            '[package.metadata.contract]\noptimization-passes = "2"\n'
        )
        options = parse_options([], cwd=project)

        assert execute_args(options).optimization_passes is OptimizationPasses.TWO

    def test_cli_passes_win_over_manifest(self, project):
        (project / "Cargo.toml").write_text(
            '[package]\nname = "flipper"\n\n'
            '[package.metadata.contract]\noptimization-passes = "2"\n'
        )
        options = parse_options(["--optimization-passes", "z"], cwd=project)

        assert execute_args(options).optimization_passes is OptimizationPasses.Z


class TestExecute:
    @pytest.mark.parametrize("release", [True, False])
    @patch("contract_tools.pipeline.execute")
    def test_native_build_mode(self, mock_execute, project, release):
        mock_execute.return_value = make_result()
        argv = ["--release"] if release else []

        result = execute(parse_options(argv, cwd=project))

        assert result is mock_execute.return_value
        mock_execute.assert_called_once()
        (args,), _ = mock_execute.call_args
        expected = BuildMode.RELEASE if release else BuildMode.DEBUG
        assert args.build_mode is expected

    @patch("subprocess.run")
    @patch("contract_tools.pipeline.execute")
    def test_solang_without_filename(self, mock_execute, mock_run, project):
        options = parse_options(["--solang", "--release", "--no-cse"], cwd=project)

        with pytest.raises(ConfigurationError):
            execute(options, project_root=project)

        mock_execute.assert_not_called()
        mock_run.assert_not_called()

    @pytest.mark.parametrize("filename", ["contract.txt", "contract.rs", "contract"])
    @patch("subprocess.run")
    def test_solang_wrong_extension(self, mock_run, project, filename):
        (project / filename).write_text("contract C {}")
        options = parse_options(["--solang", "--solidity-filename", filename], cwd=project)

        with pytest.raises(PathError):
            execute(options, project_root=project)

        mock_run.assert_not_called()

    @patch("shutil.which", return_value="/usr/bin/solang")
    @patch("subprocess.run")
    @patch("contract_tools.pipeline.execute")
    def test_solang_skips_native_pipeline(self, mock_execute, mock_run, mock_which, project):
        (project / "flipper.sol").write_text("contract Flipper {}")
        mock_run.return_value = subprocess.CompletedProcess([], 0, stdout="", stderr="")
        options = parse_options(["--solang", "--solidity-filename", "flipper.sol"], cwd=project)

        result = execute(options, project_root=project)

        mock_execute.assert_not_called()
        mock_run.assert_called_once()
        assert result.target_directory == project.resolve()


class TestPrintResult:
    def test_json(self, capsys):
        print_result(make_result(output_type=OutputType.JSON, verbosity=Verbosity.QUIET))

        data = json.loads(capsys.readouterr().out)
        assert data["build_mode"] == "Debug"

    def test_human_readable(self, capsys):
        print_result(make_result())

        assert "Your contract artifacts are ready" in capsys.readouterr().out

    def test_quiet(self, capsys):
        print_result(make_result(verbosity=Verbosity.QUIET))

        assert capsys.readouterr().out == ""


class TestMain:
    @patch("contract_tools.pipeline.execute")
    def test_main_json(self, mock_execute, project, capsys):
        mock_execute.return_value = make_result(
            output_type=OutputType.JSON, verbosity=Verbosity.QUIET
        )

        assert main(["--output-json"]) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["target_directory"] == str(Path("/project/target/ink"))

    @patch("contract_tools.pipeline.execute")
    def test_main_error(self, mock_execute, project, capsys):
        assert main(["--solang"]) == 1

        captured = capsys.readouterr()
        assert "ERROR:" in captured.err
        mock_execute.assert_not_called()

    @patch("contract_tools.pipeline.execute")
    def test_main_keyboard_interrupt(self, mock_execute, project):
        mock_execute.side_effect = KeyboardInterrupt()

        assert main([]) == 130

    def test_main_bad_config(self, project, capsys):
        (project / "contract-build.yaml").write_text("- not\n- a mapping\n")

        assert main([]) == 1
        assert "Config root must be a mapping" in capsys.readouterr().err
