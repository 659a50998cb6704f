"""
Versioned prompt loader: reads prompts from voicebrief/prompts/{version}/{component}.yaml.
Use PROMPT_VERSION (default v1) to select version.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

# Base path: voicebrief/prompts/ (next to this file)
_PROMPTS_DIR = Path(__file__).resolve().parent

SUMMARY_COMPONENTS = ("summarize_full", "summarize_partial", "summarize_reduce")


def load_prompts(component: str, version: str | None = None) -> dict[str, str]:
    """Read prompts/{version}/{component}.yaml and return its non-empty "system" and "user" entries, stripped. Defaults to PROMPT_VERSION."""
    if version is None:
        from voicebrief.core.config import settings
        version = settings.prompt_version

    path = _PROMPTS_DIR / version / f"{component}.yaml"
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise FileNotFoundError(f"No prompt {component!r} for version {version!r} at {path}") from None
    if not isinstance(raw, dict):
        raise ValueError(f"Prompt file {path} must be a mapping with system/user keys")

    return {
        role: str(raw[role]).strip()
        for role in ("system", "user")
        if raw.get(role) is not None
    }


@dataclass(frozen=True)
class PromptTemplate:
    user: str
    system: Optional[str] = None

    def render(self, **values: str) -> str:
        """Fill <<NAME>> placeholders in the user template (NAME is the upper-cased keyword)."""
        msg = self.user
        for name, value in values.items():
            msg = msg.replace(f"<<{name.upper()}>>", value)
        return msg


@dataclass(frozen=True)
class SummaryPrompts:
    """The three prompt variants the summarizer needs: full (short transcript), partial (map step) and reduce."""

    full: PromptTemplate
    partial: PromptTemplate
    reduce: PromptTemplate


def load_summary_prompts(version: str | None = None) -> SummaryPrompts:
    """Load all summarization prompt variants for a version.
    Why available: Summarizer is constructed once per process with a fixed prompt set, so files are read at startup rather than on every model call."""
    templates = {}
    for component in SUMMARY_COMPONENTS:
        prompts = load_prompts(component, version=version)
        if "user" not in prompts:
            raise ValueError(f"Component {component} has no 'user' prompt in version {version}")
        templates[component] = PromptTemplate(user=prompts["user"], system=prompts.get("system"))
    return SummaryPrompts(
        full=templates["summarize_full"],
        partial=templates["summarize_partial"],
        reduce=templates["summarize_reduce"],
    )
