from __future__ import annotations
from typing import Any, List, Optional

from studiodesk.config import Settings
from studiodesk.schemas.chat import ContextData, Message

REVIEW_EXCERPT_CHARS = 50
EMPTY_SECTION = "None yet"

STYLE_RULES = """Answer style and rules (very important, always follow them):
- Answer the user's question directly. Do not open every reply with the same greeting or template.
- Do not repeat the studio introduction, service list, contact details or address in every reply.
- Only give that information when the user explicitly asks what services you offer, how to get in touch, where you are, or how to book.
- For questions about fees, prices or budgets:
  - First explain what drives the cost (floor area, style, complexity, soft furnishing, construction coordination, depth of deliverables).
  - Give a practical way to estimate it (by area, by phase or by package) and a rough range with an explanation. Never promise a fixed price.
  - Finish by asking one or two key questions to narrow the quote (area, city, layout, style, full-service or not).
- For questions about whether a kind of project can be done, how the process works or how long it takes: answer step by step, grounded in the user's situation.
- Keep replies short and clear. Markdown lists are fine. Never use the * character. Never include illegal or non-compliant content."""

RESTRICTIONS = """Restrictions:
- Never disclose back-office data such as the total number of projects, pending requests or appointments.
- Never disclose any customer's contact details.
- Only use the published project information and customer reviews."""


def _text(value: Any, fallback: str = "") -> str:
    if value is None or value == "":
        return fallback
    return str(value)


def render_context(context: ContextData) -> str:
    project_lines = [
        f"  - {_text(p.title, 'Untitled')} "
        f"({_text(p.category, 'Uncategorized')}, {_text(p.location, 'Unspecified location')})"
        for p in context.projects or []
    ]
    review_lines = [
        f"  - {_text(r.name, 'Anonymous')}: {_text(r.content)[:REVIEW_EXCERPT_CHARS]}"
        for r in context.reviews or []
    ]
    return "\n".join([
        "Published projects:",
        "\n".join(project_lines) or EMPTY_SECTION,
        "",
        "Customer reviews:",
        "\n".join(review_lines) or EMPTY_SECTION,
    ])


def _studio_facts(settings: Settings) -> str:
    facts = [f"- {settings.studio_name}, {settings.studio_summary}"]
    if settings.studio_services:
        facts.append("- Services: " + ", ".join(settings.studio_services))
    contact = []
    if settings.studio_phone:
        contact.append(f"phone {settings.studio_phone}")
    if settings.studio_email:
        contact.append(f"email {settings.studio_email}")
    if contact:
        facts.append("- Contact: " + ", ".join(contact))
    if settings.studio_address:
        facts.append(f"- Address: {settings.studio_address}")
    return "Studio information:\n" + "\n".join(facts)


def build_system_prompt(settings: Settings, context: Optional[ContextData] = None) -> str:
    parts = [
        f"You are the assistant on the website of {settings.studio_name}. "
        "Your goal is to give users a useful answer to the question they actually asked.",
        STYLE_RULES,
        "You can answer questions about the studio, its services, design philosophy and renovation "
        "process, and you may also answer any other question.",
        _studio_facts(settings),
    ]
    if context is not None:
        parts.append(render_context(context))
    parts.append(RESTRICTIONS)
    parts.append(
        f"Reply in {settings.reply_language}. Be accurate and helpful, keep the formatting clean "
        "(Markdown is fine) and never put the * character in a reply."
    )
    return "\n\n".join(parts)


def build_messages(message: str, settings: Settings, context: Optional[ContextData] = None) -> List[Message]:
    """System prompt plus the single user turn; no history is carried between requests."""
    return [
        Message(role="system", content=build_system_prompt(settings, context)),
        Message(role="user", content=message),
    ]
