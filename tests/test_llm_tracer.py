"""Tests for the anchor-based AI provider call tracer."""

import pytest

from archgraph.scanners.base import FileSet, SourceFile
from archgraph.scanners.llm_tracer import (
    CallConfig,
    ModelInfo,
    PromptInfo,
    compute_confidence,
    detect_template_vars,
    extract_config,
    extract_model,
    extract_prompt,
    find_call_anchors,
    find_client_inits,
    find_sdk_imports,
    resolve_variable,
    trace_llm_calls,
)
from archgraph.types import ArchitectureLayer, ComponentType, ConnectionType

CHAT_TS = """import OpenAI from 'openai';

const openai = new OpenAI();

export async function answer(question: string) {
  const response = await openai.chat.completions.create({
    model: 'gpt-4o',
    messages: [
      { role: 'system', content: 'You are a helpful assistant.' },
      { role: 'user', content: question },
    ],
    temperature: 0.2,
  });
  return response.choices[0].message.content;
}
"""

ASSISTANT_PY = '''import anthropic

MODEL = "claude-3-5-sonnet"


class Assistant:
    def __init__(self):
        self.client = anthropic.Anthropic()

    def reply(self, text):
        return self.client.messages.create(
            model=MODEL,
            max_tokens=1024,
            messages=[{"role": "user", "content": text}],
        )
'''


def ts(path, content):
    return SourceFile(path, content)


class TestImports:
    def test_js_default_named_and_require(self):
        source = ts(
            "a.ts",
            "import OpenAI from 'openai';\n"
            "import { generateText, streamText as st } from 'ai';\n"
            "const Anthropic = require('@anthropic-ai/sdk');\n",
        )

        imports = find_sdk_imports(source)

        assert [(i.provider, i.imported_names, i.line) for i in imports] == [
            ("openai", ("OpenAI",), 1),
            ("vercel-ai-sdk", ("generateText", "st"), 2),
            ("anthropic", ("Anthropic",), 3),
        ]

    def test_package_subpath(self):
        imports = find_sdk_imports(ts("a.ts", "import { ChatOpenAI } from '@langchain/openai/chat_models';\n"))

        assert imports[0].provider == "langchain"
        assert imports[0].sdk == "@langchain/openai"

    def test_python_forms(self):
        source = ts(
            "a.py",
            "import anthropic\n"
            "from openai import OpenAI, AsyncOpenAI as Async\n"
            "import google.generativeai as genai\n",
        )

        imports = find_sdk_imports(source)

        assert [(i.provider, i.imported_names) for i in imports] == [
            ("anthropic", ("anthropic",)),
            ("openai", ("OpenAI", "Async")),
            ("google-genai", ("genai",)),
        ]

    def test_similar_package_names_do_not_match(self):
        assert find_sdk_imports(ts("a.ts", "import x from 'openai-edge';\n")) == []


class TestClientInits:
    def test_js_variable_and_field(self):
        source = ts(
            "a.ts",
            "import OpenAI from 'openai';\n"
            "const client = new OpenAI({ apiKey });\n"
            "class Svc {\n"
            "  private readonly llm = new OpenAI();\n"
            "  constructor() { this.other = new OpenAI(); }\n"
            "}\n",
        )

        inits = find_client_inits(source, find_sdk_imports(source))

        assert [(i.variable, i.class_name, i.line) for i in inits] == [
            ("client", "OpenAI", 2),
            ("this.llm", "OpenAI", 4),
            ("this.other", "OpenAI", 5),
        ]

    def test_registry_fallback_only_for_js_new(self):
        js = ts("a.ts", "const c = new Anthropic();\n")
        py = ts("a.py", "c = Anthropic()\n")

        assert find_client_inits(js, [])[0].provider == "anthropic"
        assert find_client_inits(py, []) == []

    def test_python_module_attribute_constructor(self):
        source = ts("a.py", ASSISTANT_PY)

        inits = find_client_inits(source, find_sdk_imports(source))

        assert len(inits) == 1
        assert inits[0].variable == "self.client"
        assert inits[0].provider == "anthropic"
        assert inits[0].class_name == "Anthropic"


class TestCallAnchors:
    def test_anchor_on_known_client(self):
        source = ts("src/chat.ts", CHAT_TS)
        imports = find_sdk_imports(source)

        anchors = find_call_anchors(source, imports, find_client_inits(source, imports))

        assert len(anchors) == 1
        anchor = anchors[0]
        assert anchor.line == 6
        assert anchor.provider == "openai"
        assert anchor.method == "chat.completions.create"
        assert anchor.client_variable == "openai"
        assert anchor.containing_function == "answer"

    def test_unknown_receiver_is_ignored(self):
        source = ts(
            "a.ts",
            "import OpenAI from 'openai';\n"
            "const result = await cache.chat.completions.create({});\n",
        )
        imports = find_sdk_imports(source)

        assert find_call_anchors(source, imports, find_client_inits(source, imports)) == []

    def test_comment_lines_are_skipped(self):
        source = ts(
            "a.ts",
            "import OpenAI from 'openai';\n"
            "const openai = new OpenAI();\n"
            "// openai.chat.completions.create({})\n",
        )
        imports = find_sdk_imports(source)

        assert find_call_anchors(source, imports, find_client_inits(source, imports)) == []

    def test_function_style_call_requires_import(self):
        imported = ts("a.ts", "import { generateText } from 'ai';\nawait generateText({ prompt: 'hi' });\n")
        local = ts("b.ts", "function generateText() {}\ngenerateText({ prompt: 'hi' });\n")

        anchors = find_call_anchors(imported, find_sdk_imports(imported), [])

        assert [(a.provider, a.sdk, a.client_variable) for a in anchors] == [
            ("vercel-ai-sdk", "ai", "generateText")
        ]
        assert find_call_anchors(local, find_sdk_imports(local), []) == []


class TestArgumentExtraction:
    def test_model_literal(self):
        lines = ["client.create({", "  model: 'gpt-4o',", "})"]

        model = extract_model("\n".join(lines), lines, 0)

        assert model == ModelInfo(value="gpt-4o", is_dynamic=False, line=2)

    def test_model_variable_resolved(self):
        lines = ['const MODEL = "gpt-4o-mini";', "", "client.create({ model: MODEL })"]

        model = extract_model(lines[2], lines, 2)

        assert model.value == "gpt-4o-mini"
        assert model.is_dynamic is False
        assert model.variable_name == "MODEL"

    def test_model_variable_unresolved(self):
        lines = ["client.create({ model: config.model })"]

        model = extract_model(lines[0], lines, 0)

        assert model.value is None
        assert model.is_dynamic is True
        assert model.variable_name == "config.model"

    def test_resolve_variable_object_property(self):
        lines = ["const settings = {", "  model: 'claude-3-haiku',", "};", "call(settings.model)"]

        assert resolve_variable(lines, 3, "settings.model") == "claude-3-haiku"

    def test_messages_array(self):
        context = (
            "messages: [\n"
            "  { role: 'system', content: 'Be brief.' },\n"
            "  { role: 'user', content: `Summarize ${doc}` },\n"
            "]"
        )

        prompt = extract_prompt(context, "{")

        assert prompt.type == "messages-array"
        assert prompt.system_prompt == "Be brief."
        assert prompt.content == "Summarize ${doc}"
        assert prompt.has_user_template is True
        assert prompt.variables == ["doc"]

    def test_messages_variable(self):
        assert extract_prompt("{ messages: history }", "{ messages: history })").type == "variable-ref"

    def test_template_prompt(self):
        prompt = extract_prompt("{ prompt: `Translate {{text}} to ${lang}` }", "{")

        assert prompt.type == "template"
        assert prompt.variables == ["text", "lang"]

    def test_positional_fstring(self):
        prompt = extract_prompt('llm.invoke(f"Answer {question}")', 'f"Answer {question}")')

        assert prompt.type == "template"
        assert prompt.variables == ["question"]

    def test_system_only(self):
        prompt = extract_prompt("{ system: 'You are a judge.', input }", "{")

        assert prompt == PromptInfo(type="string-prompt", system_prompt="You are a judge.")

    def test_positional_variable(self):
        assert extract_prompt("chain.invoke(inputs)", "inputs)").type == "variable-ref"

    def test_detect_template_vars_order_and_dedupe(self):
        text = "${a} {{b}} {{{c}}} ${a} {d}"

        assert detect_template_vars(text) == ["a", "b", "c"]
        assert detect_template_vars(text, fstring=True) == ["a", "b", "c", "d"]

    def test_extract_config(self):
        config = extract_config("temperature: 0.7,\nmaxTokens: 500,\nstream: true,\ntools: [search]")

        assert config == CallConfig(temperature=0.7, max_tokens=500, stream=True, tools=["detected"])
        assert extract_config("").is_empty()


class TestConfidence:
    def test_base_only(self):
        assert compute_confidence(False, ModelInfo(), PromptInfo(), CallConfig()) == pytest.approx(0.6)

    def test_all_bonuses_capped(self):
        confidence = compute_confidence(
            True,
            ModelInfo(value="gpt-4o", is_dynamic=False),
            PromptInfo(content="hi"),
            CallConfig(temperature=0.1),
        )

        assert confidence == 1.0


class TestTraceLLMCalls:
    def test_end_to_end_typescript(self, config):
        result = trace_llm_calls(FileSet([ts("src/api/chat.ts", CHAT_TS)]), config)

        assert len(result.calls) == 1
        call = result.calls[0]
        assert call.id == "TRACE_src_api_chat_ts_L6"
        assert call.name == "answer"
        assert call.import_line == 1
        assert call.model.value == "gpt-4o"
        assert call.prompt.system_prompt == "You are a helpful assistant."
        assert call.prompt.content == "question"
        assert call.config.temperature == 0.2
        assert call.confidence == 1.0

        [wrapper] = result.wrappers
        assert wrapper.function_name == "answer"
        assert wrapper.exported_as == "answer"

        [component] = result.scan_result.components
        assert component.name == "openai"
        assert component.type is ComponentType.LLM
        assert component.layer is ArchitectureLayer.EXTERNAL
        [connection] = result.scan_result.connections
        assert connection.connection_type is ConnectionType.SERVICE_CALL
        assert connection.from_id == "FILE:src/api/chat.ts"
        assert connection.to_id == component.component_id
        assert connection.description == "openai.chat.completions.create (gpt-4o)"

    def test_end_to_end_python_class(self, config):
        result = trace_llm_calls(FileSet([ts("app/assistant.py", ASSISTANT_PY)]), config)

        [call] = result.calls
        assert call.provider == "anthropic"
        assert call.name == "reply"
        assert call.anchor.client_variable == "self.client"
        assert call.model.value == "claude-3-5-sonnet"
        assert call.model.variable_name == "MODEL"
        assert call.config.max_tokens == 1024
        assert result.wrappers[0].class_name == "Assistant"

    def test_client_imported_from_another_file(self, config):
        files = FileSet([
            ts("src/lib/client.ts", "import OpenAI from 'openai';\nexport const client = new OpenAI();\n"),
            ts(
                "src/routes/chat.ts",
                "import { client } from '../lib/client';\n"
                "\n"
                "export async function handle(req) {\n"
                "  return client.chat.completions.create({ model: 'gpt-4o-mini', messages: req.body.messages });\n"
                "}\n",
            ),
        ])

        result = trace_llm_calls(files, config)

        [call] = result.calls
        assert call.anchor.file == "src/routes/chat.ts"
        assert call.import_line == 1
        assert call.model.value == "gpt-4o-mini"
        assert call.prompt.type == "variable-ref"

    def test_no_sdk_usage(self, config):
        result = trace_llm_calls(FileSet([ts("a.ts", "export const x = 1;\n")]), config)

        assert result.calls == []
        assert result.scan_result.components == []

    def test_to_dict_shape(self, config):
        call = trace_llm_calls(FileSet([ts("src/api/chat.ts", CHAT_TS)]), config).calls[0]

        data = call.to_dict()

        assert data["provider"] == {
            "name": "openai",
            "sdk": "openai",
            "import_line": 1,
            "client_variable": "openai",
        }
        assert data["config"] == {"temperature": 0.2}
        assert data["call_type"] == "chat"
