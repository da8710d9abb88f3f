#!/usr/bin/env python3
from __future__ import annotations

import importlib
import json
import os
import sys
import tempfile
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from fastapi.testclient import TestClient


@dataclass
class Step:
  method: str
  path: str
  body: dict[str, Any] | None = None


@dataclass
class Scenario:
  name: str
  steps: list[Step]
  check: Callable[[list[dict[str, Any]]], str | None]
  notes: list[str] = field(default_factory=list)


def _appended(response: dict[str, Any]) -> list[dict[str, Any]]:
  items = response.get("appended")
  return items if isinstance(items, list) else []


def check_symptom_offer(responses: list[dict[str, Any]]) -> str | None:
  turn = responses[-1]
  appended = _appended(turn)
  if turn.get("modes", {}).get("active") != "symptom-checker":
    return f"Expected symptom-checker mode, got {turn.get('modes')!r}"
  if not appended or "Headache" not in (appended[0].get("options") or []):
    return "Symptom offer did not list Headache."
  return None


def check_tips_mode(responses: list[dict[str, Any]]) -> str | None:
  turn = responses[-1]
  if turn.get("modes", {}).get("active") != "health-tips":
    return f"Expected health-tips mode, got {turn.get('modes')!r}"
  if _appended(turn):
    return "Literal menu option should not append a bot message."
  return None


def check_reminder(responses: list[dict[str, Any]]) -> str | None:
  appended = _appended(responses[-1])
  if len(appended) != 1:
    return f"Expected one confirmation, got {len(appended)}"
  content = appended[0].get("content", "")
  if "Metformin" not in content or "08:00" not in content:
    return "Confirmation does not mention the medication and time."
  return None


def check_stream(responses: list[dict[str, Any]]) -> str | None:
  names = [frame["event"] for frame in responses[-1].get("events") or []]
  if names != ["message", "mode"]:
    return f"Unexpected SSE events: {names}"
  return None


def run() -> int:
  repo_root = Path(__file__).resolve().parents[1]
  backend_dir = repo_root / "backend"
  for path in (backend_dir, backend_dir / "tests"):
    if str(path) not in sys.path:
      sys.path.insert(0, str(path))

  from sse_utils import read_chat_stream

  scratch = tempfile.mkdtemp(prefix="assistant-smoke-")
  os.environ.setdefault("ASSISTANT_DB_PATH", str(Path(scratch) / "smoke.sqlite"))
  os.environ.setdefault("ASSISTANT_DISABLE_EXTERNAL_WEB", "true")
  os.environ.setdefault("ASSISTANT_TYPING_DELAY_MS_MIN", "0")
  os.environ.setdefault("ASSISTANT_TYPING_DELAY_MS_MAX", "0")
  os.environ.setdefault("ASSISTANT_HISTORY_DEBOUNCE_SECONDS", "0.2")

  backend_module = importlib.import_module("main")
  backend_module = importlib.reload(backend_module)

  headers = {"Authorization": "Bearer smoke-user"}
  scenarios = [
    Scenario(
      name="Free text opens symptom checker",
      steps=[Step("POST", "/chat/message", {"message": "I have a headache"})],
      check=check_symptom_offer,
    ),
    Scenario(
      name="Menu option switches to health tips",
      steps=[
        Step("POST", "/modes/symptom-checker/cancel"),
        Step("POST", "/chat/option", {"option": "Get health tips"}),
      ],
      check=check_tips_mode,
    ),
    Scenario(
      name="Reminder form confirms once",
      steps=[
        Step("POST", "/modes/health-tips/cancel"),
        Step("POST", "/chat/option", {"option": "Set medication reminder"}),
        Step("POST", "/modes/reminder/complete", {"medication_name": "Metformin", "time": "08:00"}),
      ],
      check=check_reminder,
    ),
    Scenario(
      name="Streaming reply",
      steps=[Step("POST", "/chat/stream", {"message": "Tell me about staying hydrated"})],
      check=check_stream,
    ),
  ]

  results: list[dict[str, Any]] = []

  with TestClient(backend_module.app) as client:
    login = client.post("/session", headers=headers, json={"name": "Smoke Tester", "email": "smoke@example.com"})
    if login.status_code != 200:
      print(f"Login failed with {login.status_code}")
      return 1

    for scenario in scenarios:
      responses: list[dict[str, Any]] = []
      status_codes: list[int] = []
      for step in scenario.steps:
        response = client.request(step.method, step.path, headers=headers, json=step.body)
        status_codes.append(response.status_code)
        if "text/event-stream" in response.headers.get("content-type", ""):
          responses.append(
            {"events": [{"event": name, "data": data} for name, data in read_chat_stream(response.text)]}
          )
        else:
          try:
            responses.append(response.json())
          except ValueError:
            responses.append({"raw": response.text[:500]})

      error = None
      if any(code != 200 for code in status_codes):
        error = f"Non-200 status codes: {status_codes}"
      else:
        error = scenario.check(responses)
      results.append(
        {
          "name": scenario.name,
          "status_codes": status_codes,
          "last_response": responses[-1] if responses else None,
          "pass": error is None,
          "error": error,
        }
      )

    time.sleep(0.5)
    history = client.get("/history", headers=headers).json().get("items", [])
    results.append(
      {
        "name": "History saved after quiet period",
        "status_codes": [200],
        "last_response": {"items": [item.get("topic") for item in history]},
        "pass": len(history) >= 1,
        "error": None if history else "No chat history item was persisted.",
      }
    )
    client.delete("/session", headers=headers)

  passed = sum(1 for item in results if item.get("pass"))
  failed = len(results) - passed
  timestamp = datetime.now(timezone.utc).isoformat()

  report_lines = [
    "# Chatbot E2E Smoke Report",
    "",
    f"- Timestamp (UTC): `{timestamp}`",
    f"- ASSISTANT_DISABLE_EXTERNAL_WEB: `{os.getenv('ASSISTANT_DISABLE_EXTERNAL_WEB')}`",
    f"- Total scenarios: `{len(results)}`",
    f"- Passed: `{passed}`",
    f"- Failed: `{failed}`",
    "",
    "## Scenario Results",
    "",
  ]

  for item in results:
    status = "PASS" if item.get("pass") else "FAIL"
    report_lines.append(f"### {status} - {item['name']}")
    report_lines.append(f"- Status codes: `{item.get('status_codes')}`")
    if item.get("error"):
      report_lines.append(f"- Error: `{item['error']}`")
    report_lines.append("- Last response payload:")
    report_lines.append("```json")
    report_lines.append(json.dumps(item.get("last_response"), indent=2, ensure_ascii=True))
    report_lines.append("```")
    report_lines.append("")

  report_path = repo_root / "CHATBOT_E2E_SMOKE_REPORT.md"
  report_path.write_text("\n".join(report_lines), encoding="utf-8")
  print(f"Wrote report: {report_path}")
  print(f"Passed {passed}/{len(results)} scenarios.")

  return 0 if failed == 0 else 1


if __name__ == "__main__":
  raise SystemExit(run())
