"""Tests for infrastructure detection and docker-compose parsing."""

from archgraph.scanners.infrastructure import detect_infra, scan_infrastructure
from archgraph.signature_registry import INFRA_SIGNATURES
from archgraph.types import ArchitectureLayer, ComponentType, ConnectionType, WarningType

COMPOSE = """
services:
  api:
    build: .
    depends_on:
      - db
      - cache
  db:
    image: postgres:16
  cache:
    image: redis:7-alpine
  broker:
    image: rabbitmq:3-management
"""


def by_name(result):
    return {c.name: c for c in result.components}


class TestDetectInfra:
    def test_marker_file(self, tmp_project, write_file):
        write_file("vercel.json", "{}")

        assert detect_infra(tmp_project, INFRA_SIGNATURES["Vercel"], environ={}) == ["vercel.json"]

    def test_env_var_fallback(self, tmp_project):
        found = detect_infra(tmp_project, INFRA_SIGNATURES["Railway"], environ={"RAILWAY_ENVIRONMENT": "prod"})

        assert found == ["ENV:RAILWAY_ENVIRONMENT"]

    def test_suffix_marker(self, tmp_project):
        (tmp_project / "App.xcodeproj").mkdir()

        assert detect_infra(tmp_project, INFRA_SIGNATURES["Xcode"], environ={}) == ["App.xcodeproj"]

    def test_nothing_found(self, tmp_project):
        assert detect_infra(tmp_project, INFRA_SIGNATURES["Heroku"], environ={}) is None


class TestScanInfrastructure:
    def test_platform_components(self, tmp_project, write_file):
        write_file("Dockerfile", "FROM python:3.12\n")
        write_file(".github/workflows/ci.yml", "on: push\n")

        comps = by_name(scan_infrastructure(tmp_project, environ={}))

        assert set(comps) == {"Docker", "GitHub Actions"}
        docker = comps["Docker"]
        assert docker.type is ComponentType.INFRA
        assert docker.layer is ArchitectureLayer.INFRA
        assert docker.role.critical is True
        assert docker.source.config_files == ("Dockerfile",)
        assert docker.tags == ["infra", "docker"]

    def test_railway_metadata(self, tmp_project, write_file):
        write_file("railway.toml", '[build]\nbuilder = "nixpacks"\n[deploy]\nstartCommand = "npm start"\n')

        railway = by_name(scan_infrastructure(tmp_project, environ={}))["Railway"]

        assert railway.metadata == {"build": "nixpacks", "start": "npm start"}

    def test_compose_services(self, tmp_project, write_file):
        write_file("docker-compose.yml", COMPOSE)

        result = scan_infrastructure(tmp_project, environ={})
        comps = by_name(result)

        assert comps["db"].type is ComponentType.DATABASE
        assert comps["db"].version == "16"
        assert comps["cache"].layer is ArchitectureLayer.DATABASE
        assert comps["broker"].layer is ArchitectureLayer.QUEUE
        assert comps["api"].type is ComponentType.SERVICE
        assert comps["api"].version is None

        deploys = [c for c in result.connections if c.connection_type is ConnectionType.DEPLOYS_TO]
        assert len(deploys) == 4
        assert all(c.to_id == comps["Docker"].component_id for c in deploys)

        calls = {
            (c.from_id, c.to_id) for c in result.connections if c.connection_type is ConnectionType.SERVICE_CALL
        }
        assert calls == {
            (comps["api"].component_id, comps["db"].component_id),
            (comps["api"].component_id, comps["cache"].component_id),
        }

    def test_compose_without_docker_marker_has_no_deploys(self, tmp_project, write_file):
        write_file("compose.yaml", "services:\n  web:\n    image: nginx\n")

        result = scan_infrastructure(tmp_project, environ={})

        assert "web" in by_name(result)
        assert result.connections == []

    def test_broken_compose_becomes_warning(self, tmp_project, write_file):
        write_file("docker-compose.yml", "services: [unclosed\n")

        result = scan_infrastructure(tmp_project, environ={})

        assert "Docker" in by_name(result)
        assert result.warnings[0].type is WarningType.PARSE_ERROR
        assert result.warnings[0].file == "docker-compose.yml"

    def test_empty_project(self, tmp_project):
        result = scan_infrastructure(tmp_project, environ={})

        assert result.components == []
        assert result.warnings == []
