"""Tests for the npm, Python and Swift package scanners."""

import json

from archgraph.scanners.packages import (
    declared_version,
    detect_package_manager,
    detect_package_managers,
    scan_npm_packages,
    scan_pip_packages,
    scan_swift_packages,
)
from archgraph.types import ArchitectureLayer, ComponentType, WarningType


def by_name(result):
    return {c.name: c for c in result.components}


class TestNpmScanner:
    def test_known_and_unknown_packages(self, tmp_project, write_file):
        write_file(
            "package.json",
            json.dumps({
                "dependencies": {"pg": "^8.11.0", "left-pad": "1.3.0"},
                "devDependencies": {"vitest": "^1.0.0"},
            }),
        )

        comps = by_name(scan_npm_packages(tmp_project))

        assert comps["pg"].type is ComponentType.DATABASE
        assert comps["pg"].layer is ArchitectureLayer.DATABASE
        assert comps["pg"].version == "8.11.0"
        assert comps["left-pad"].type is ComponentType.NPM
        assert comps["left-pad"].layer is ArchitectureLayer.BACKEND
        assert comps["left-pad"].role.critical is True
        assert comps["vitest"].role.critical is False
        assert "dev" in comps["vitest"].tags
        assert comps["pg"].source.config_files == ("package.json",)

    def test_peer_dependencies_deduplicated(self, tmp_project, write_file):
        write_file(
            "package.json",
            json.dumps({"dependencies": {"react": "^18.0.0"}, "peerDependencies": {"react": "^18.0.0", "vue": "^3"}}),
        )

        result = scan_npm_packages(tmp_project)

        names = [c.name for c in result.components]
        assert names.count("react") == 1
        assert "vue" in names
        assert result.connections == []

    def test_malformed_manifest_becomes_warning(self, tmp_project, write_file):
        write_file("package.json", "{oops")

        result = scan_npm_packages(tmp_project)

        assert result.components == []
        assert result.warnings[0].type is WarningType.PARSE_ERROR
        assert result.warnings[0].file == "package.json"

    def test_missing_manifest(self, tmp_project):
        assert scan_npm_packages(tmp_project).components == []


class TestPipScanner:
    def test_requirements_and_pyproject(self, tmp_project, write_file):
        write_file("requirements.txt", "fastapi==0.110.0\nSQLAlchemy>=2.0\n")
        write_file(
            "pyproject.toml",
            '[project]\nname = "svc"\ndependencies = ["fastapi>=0.100", "celery"]\n'
            '[project.optional-dependencies]\ndev = ["pytest>=8"]\n',
        )

        comps = by_name(scan_pip_packages(tmp_project))

        # first file wins for duplicates
        assert comps["fastapi"].version == "0.110.0"
        assert comps["fastapi"].source.config_files == ("requirements.txt",)
        assert comps["SQLAlchemy"].type is ComponentType.DATABASE
        assert comps["celery"].layer is ArchitectureLayer.QUEUE
        assert "pytest" in comps

    def test_poetry_tables(self, tmp_project, write_file):
        write_file(
            "pyproject.toml",
            '[tool.poetry.dependencies]\npython = "^3.11"\nopenai = "^1.3.0"\n'
            'anthropic = {version = "^0.20.0", extras = ["bedrock"]}\n',
        )

        comps = by_name(scan_pip_packages(tmp_project))

        assert "python" not in comps
        assert comps["openai"].version == "1.3.0"
        assert comps["anthropic"].version == "0.20.0"

    def test_setup_cfg_install_requires(self, tmp_project, write_file):
        write_file("setup.cfg", "[options]\ninstall_requires =\n    flask>=3.0\n    boto3\n")

        comps = by_name(scan_pip_packages(tmp_project))

        assert comps["flask"].version == "3.0"
        assert comps["boto3"].layer is ArchitectureLayer.INFRA


class TestSwiftScanner:
    def test_package_swift_podfile_and_imports(self, tmp_project, write_file):
        write_file(
            "Package.swift",
            'dependencies: [\n'
            '    .package(url: "https://github.com/Alamofire/Alamofire.git", from: "5.8.0"),\n'
            '    .package(url: "https://github.com/onevcat/Kingfisher", exact: "7.10.0"),\n'
            ']\n',
        )
        write_file("Podfile", "pod 'RealmSwift', '~> 10.0'\n")
        write_file("App/ContentView.swift", "import SwiftUI\nimport Foundation\n")

        comps = by_name(scan_swift_packages(tmp_project))

        assert comps["Alamofire"].version == "5.8.0"
        assert comps["Kingfisher"].version == "7.10.0"
        assert comps["RealmSwift"].type is ComponentType.DATABASE
        assert comps["RealmSwift"].version == "10.0"
        assert comps["SwiftUI"].layer is ArchitectureLayer.FRONTEND
        assert comps["SwiftUI"].source.confidence == 0.9
        assert "Foundation" not in comps


class TestDetection:
    def test_detect_package_managers(self, tmp_project, write_file):
        assert detect_package_managers(tmp_project) == []
        write_file("package.json", "{}")
        write_file("requirements.txt", "")
        write_file("Podfile", "")

        assert detect_package_managers(tmp_project) == ["npm", "pip", "spm"]

    def test_detect_package_manager_by_lockfile(self, tmp_project, write_file):
        assert detect_package_manager(tmp_project) is None
        write_file("package.json", "{}")
        assert detect_package_manager(tmp_project) == "npm"
        write_file("yarn.lock", "")
        assert detect_package_manager(tmp_project) == "yarn"
        write_file("pnpm-lock.yaml", "")
        assert detect_package_manager(tmp_project) == "pnpm"


class TestDeclaredVersion:
    def test_from_package_json(self, tmp_project, write_file):
        write_file("package.json", json.dumps({"dependencies": {"@anthropic-ai/sdk": "^0.24.0"}}))

        assert declared_version(tmp_project, ["@anthropic-ai/sdk", "anthropic"]) == "0.24.0"

    def test_from_requirements(self, tmp_project, write_file):
        write_file("requirements.txt", "openai==1.30.1\n")

        assert declared_version(tmp_project, ["openai"]) == "1.30.1"

    def test_not_declared(self, tmp_project):
        assert declared_version(tmp_project, ["openai"]) is None
