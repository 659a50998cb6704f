import sys
from pathlib import Path
import json
from typing import Callable, List, Optional, Union

import pytest

# Ensure repo root is on sys.path so `import voicebrief...` works in tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from voicebrief.core.interfaces import TranscriptionResult  # noqa: E402
from voicebrief.extract.summarizer import Summarizer  # noqa: E402
from voicebrief.prompts.loader import load_summary_prompts  # noqa: E402


def pretty_json(obj) -> str:
    return json.dumps(obj, indent=2, ensure_ascii=False, sort_keys=True)


def summary_json(title="Groceries and family", summary="Errands for today.", action_items=None, key_points=None) -> str:
    """Model-style JSON response (camelCase keys, as the prompts request)."""
    return json.dumps(
        {
            "title": title,
            "summary": summary,
            "actionItems": action_items if action_items is not None else ["Buy milk", "Call mom"],
            "keyPoints": key_points if key_points is not None else ["Two errands"],
        }
    )


class FakeSummaryClient:
    """SummaryClient fake: handler(prompt) returns the raw model text or raises. Records every prompt."""

    def __init__(self, handler: Callable[[str], str]):
        self.handler = handler
        self.prompts: List[str] = []
        self.systems: List[Optional[str]] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def complete(self, prompt: str, system: Optional[str] = None) -> str:
        self.prompts.append(prompt)
        self.systems.append(system)
        return self.handler(prompt)


class FakeTranscriber:
    """TranscriptionClient fake returning a fixed result or raising a fixed exception."""

    def __init__(self, outcome: Union[TranscriptionResult, BaseException]):
        self.outcome = outcome
        self.urls: List[str] = []

    async def transcribe(self, audio_url: str) -> TranscriptionResult:
        self.urls.append(audio_url)
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


@pytest.fixture(scope="session")
def prompts():
    return load_summary_prompts("v1")


@pytest.fixture
def make_summarizer(prompts):
    def _make(client, **kwargs) -> Summarizer:
        kwargs.setdefault("retry_backoff_seconds", 0)
        return Summarizer(client, prompts=prompts, **kwargs)

    return _make


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    """
    Attach request/response payloads into pytest-html report.

    In tests, store payloads like:
      item._api_logs = [{"title": "...", "request": ..., "response": ...}, ...]
    """
    outcome = yield
    rep = outcome.get_result()

    if rep.when != "call":
        return

    api_logs = getattr(item, "_api_logs", None)
    if not api_logs:
        return

    # Only attach if pytest-html is installed/enabled
    extras = getattr(rep, "extras", [])

    try:
        from pytest_html import extras as html_extras
    except ImportError:
        return

    for entry in api_logs:
        title = entry.get("title", "API Call")
        html = f"""
        <div style="font-family: ui-monospace, Menlo, Consolas, monospace;">
          <h4 style="margin:8px 0;">{title}</h4>
          <details style="margin:6px 0;">
            <summary><b>Request</b></summary>
            <pre>{pretty_json(entry.get("request", {}))}</pre>
          </details>
          <details style="margin:6px 0;">
            <summary><b>Response</b></summary>
            <pre>{pretty_json(entry.get("response", {}))}</pre>
          </details>
        </div>
        """
        extras.append(html_extras.html(html))

    rep.extras = extras
