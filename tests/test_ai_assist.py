from __future__ import annotations

import json
import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock

from ai_assist import (
    FALLBACK_SERVICE_ANALYSIS,
    AIAssistClient,
    _extract_json_object,
    build_notes_prompt,
    build_service_prompt,
)
from quote_config import load_config
from quote_model import new_draft
from service_catalog import get_service


def _client_returning(text: str) -> MagicMock:
    client = MagicMock()
    client.responses.create.return_value = SimpleNamespace(output_text=text)
    return client


def _draft():
    d = new_draft()
    d.client_name = "Acme Corp"
    d.items = [get_service("web").to_line_item()]
    return d


class TestAIAssist(unittest.TestCase):
    def test_enhance_notes_uses_structured_response(self) -> None:
        client = _client_returning(json.dumps({"enhancedNotes": "Valid for 14 days.", "professionalSummary": "A plan."}))
        ai = AIAssistClient(api_key="sk-test", client=client)
        out = ai.enhance_notes(_draft())
        self.assertEqual(out.enhanced_notes, "Valid for 14 days.")
        self.assertEqual(out.professional_summary, "A plan.")

        kwargs = client.responses.create.call_args.kwargs
        fmt = kwargs["text"]["format"]
        self.assertEqual(fmt["type"], "json_schema")
        self.assertTrue(fmt["strict"])
        self.assertEqual(set(fmt["schema"]["required"]), {"enhancedNotes", "professionalSummary"})

    def test_enhance_notes_falls_back_on_error(self) -> None:
        client = MagicMock()
        client.responses.create.side_effect = RuntimeError("network down")
        d = _draft()
        out = AIAssistClient(api_key="sk-test", client=client).enhance_notes(d)
        self.assertEqual(out.enhanced_notes, d.notes)
        self.assertEqual(out.professional_summary, "Quotation prepared for Acme Corp")
        self.assertEqual(client.responses.create.call_count, 1)

    def test_enhance_notes_falls_back_on_schema_mismatch(self) -> None:
        client = _client_returning(json.dumps({"enhancedNotes": "only one key"}))
        d = _draft()
        out = AIAssistClient(api_key="sk-test", client=client).enhance_notes(d)
        self.assertEqual(out.enhanced_notes, d.notes)

    def test_analyze_custom_service(self) -> None:
        payload = {
            "name": "  Brand Photo Sprint ",
            "includes": ["Shot list", "", "Editing"],
            "excludes": ["Travel"],
        }
        client = _client_returning("Here you go:\n" + json.dumps(payload))
        out = AIAssistClient(api_key="sk-test", client=client).analyze_custom_service("photo shoot")
        self.assertEqual(out.name, "Brand Photo Sprint")
        self.assertEqual(out.includes, ("Shot list", "Editing"))
        self.assertEqual(out.excludes, ("Travel",))

    def test_analyze_custom_service_fallbacks(self) -> None:
        for text in ("not json", json.dumps({"name": " ", "includes": [], "excludes": []}), ""):
            with self.subTest(text=text):
                ai = AIAssistClient(api_key="sk-test", client=_client_returning(text))
                self.assertEqual(ai.analyze_custom_service("anything"), FALLBACK_SERVICE_ANALYSIS)

    def test_deeply_nested_response_falls_back(self) -> None:
        nested = '{"name": ' + "[" * 200000 + "]" * 200000 + "}"
        ai = AIAssistClient(api_key="sk-test", client=_client_returning(nested))
        self.assertEqual(ai.analyze_custom_service("anything"), FALLBACK_SERVICE_ANALYSIS)

        d = _draft()
        out = ai.enhance_notes(d)
        self.assertEqual(out.enhanced_notes, d.notes)
        self.assertEqual(out.professional_summary, "Quotation prepared for Acme Corp")

    def test_disabled_without_api_key(self) -> None:
        ai = AIAssistClient(api_key="  ")
        self.assertFalse(ai.enabled)
        self.assertEqual(ai.analyze_custom_service("anything"), FALLBACK_SERVICE_ANALYSIS)

    def test_from_config_respects_kill_switch(self) -> None:
        cfg = load_config({"OPENAI_API_KEY": "sk-test", "QUOTE_AI_ENABLED": "false"})
        self.assertFalse(AIAssistClient.from_config(cfg).enabled)
        cfg = load_config({"OPENAI_API_KEY": "sk-test", "QUOTE_AI_MODEL": "gpt-x"})
        ai = AIAssistClient.from_config(cfg)
        self.assertTrue(ai.enabled)
        self.assertEqual(ai.model, "gpt-x")

    def test_prompts_mention_inputs(self) -> None:
        d = _draft()
        prompt = build_notes_prompt(d)
        self.assertIn("Acme Corp", prompt)
        self.assertIn(get_service("web").name, prompt)
        self.assertIn('"photo shoot"', build_service_prompt("photo shoot"))

    def test_extract_json_object(self) -> None:
        self.assertEqual(_extract_json_object('{"a": 1}'), {"a": 1})
        self.assertEqual(_extract_json_object('noise {"a": 1} trailing'), {"a": 1})
        self.assertIsNone(_extract_json_object("[1, 2]"))
        self.assertIsNone(_extract_json_object(""))
        self.assertIsNone(_extract_json_object("{" + "[" * 200000 + "]" * 200000 + "}"))


if __name__ == "__main__":
    unittest.main()
