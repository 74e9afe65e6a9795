"""Pytest configuration and fixtures."""

import json
from pathlib import Path

import pytest

from archgraph.config import RuntimeConfig, load_runtime_config
from archgraph.types import (
    ArchitectureLayer,
    CodeLocation,
    CodeReference,
    Component,
    ComponentType,
    Connection,
    ConnectionType,
    Role,
    SemanticClassification,
    SemanticInfo,
    Source,
)


def make_component(
    name: str,
    layer: ArchitectureLayer = ArchitectureLayer.BACKEND,
    type: ComponentType = ComponentType.SERVICE,
    critical: bool = False,
    component_id: str | None = None,
    version: str | None = None,
    config_files: tuple[str, ...] = (),
    confidence: float = 1.0,
    **kwargs,
) -> Component:
    """Build a component with a readable, deterministic id."""
    return Component(
        component_id=component_id or f"COMP_{type.value}_{name}",
        name=name,
        type=type,
        role=Role(purpose=f"{name} purpose", layer=layer, critical=critical),
        source=Source(detection_method="test", config_files=config_files, confidence=confidence),
        version=version,
        timestamp=0,
        last_updated=0,
        **kwargs,
    )


def make_connection(
    from_id: str,
    to_id: str,
    connection_type: ConnectionType = ConnectionType.SERVICE_CALL,
    file: str = "src/app.ts",
    line: int = 1,
    symbol: str = "handler",
    classification: SemanticClassification | None = None,
    confidence: float = 0.9,
    connection_id: str | None = None,
) -> Connection:
    """Build a connection; ids default to ``CONN_<from>_<to>``."""
    return Connection(
        connection_id=connection_id or f"CONN_{from_id}_{to_id}",
        from_id=from_id,
        from_location=CodeLocation(file=file, line=line),
        to_id=to_id,
        connection_type=connection_type,
        code_reference=CodeReference(file=file, symbol=symbol, symbol_type="function", line_start=line),
        semantic=SemanticInfo(classification, 0.9) if classification else None,
        confidence=confidence,
        timestamp=0,
        last_verified=0,
    )


@pytest.fixture
def tmp_project(tmp_path) -> Path:
    """Empty project directory."""
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def write_file(tmp_project):
    """Write ``content`` to ``rel_path`` under the project, creating parents."""

    def _write(rel_path: str, content: str) -> Path:
        path = tmp_project / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def config(tmp_project) -> RuntimeConfig:
    return load_runtime_config(tmp_project)


@pytest.fixture
def sample_project(tmp_project, write_file) -> Path:
    """Small Node project that talks to OpenAI, Stripe and Postgres."""
    write_file(
        "package.json",
        json.dumps({
            "name": "sample",
            "dependencies": {"openai": "^4.20.0", "stripe": "^14.0.0", "pg": "^8.11.0", "react": "^18.2.0"},
            "devDependencies": {"typescript": "^5.3.0"},
        }),
    )
    write_file("package-lock.json", "{}")
    write_file(
        "src/api/chat.ts",
        "import OpenAI from 'openai';\n"
        "\n"
        "const openai = new OpenAI();\n"
        "\n"
        "export async function answer(question: string) {\n"
        "  const response = await openai.chat.completions.create({\n"
        "    model: 'gpt-4o',\n"
        "    messages: [\n"
        "      { role: 'system', content: 'You are a helpful assistant.' },\n"
        "      { role: 'user', content: question },\n"
        "    ],\n"
        "    temperature: 0.2,\n"
        "  });\n"
        "  return response.choices[0].message.content;\n"
        "}\n",
    )
    write_file(
        "src/billing/charge.ts",
        "import Stripe from 'stripe';\n"
        "\n"
        "const stripe = new Stripe(process.env.STRIPE_KEY);\n"
        "\n"
        "export async function charge(amount: number) {\n"
        "  return stripe.charges.create({ amount });\n"
        "}\n",
    )
    return tmp_project
