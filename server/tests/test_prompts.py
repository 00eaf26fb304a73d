from conftest import make_settings
from studiodesk.prompts import build_messages, build_system_prompt, render_context
from studiodesk.schemas.chat import ContextData


def test_context_lists_projects_and_review_excerpts():
    context = ContextData.model_validate({
        "projects": [
            {"title": "Lakeside Villa", "category": "Residential", "location": "Hangzhou"},
            {"title": "Tea House"},
        ],
        "reviews": [
            {"name": "Ms. Li", "content": "x" * 80},
            {"content": "Lovely"},
        ],
    })
    text = render_context(context)
    assert "  - Lakeside Villa (Residential, Hangzhou)" in text
    assert "  - Tea House (Uncategorized, Unspecified location)" in text
    assert "  - Ms. Li: " + "x" * 50 + "\n" in text
    assert "x" * 51 not in text
    assert text.endswith("  - Anonymous: Lovely")


def test_context_rows_with_missing_or_odd_values():
    context = ContextData.model_validate({
        "projects": [{"category": "Office"}, {"title": "", "location": 310}],
        "reviews": [{"name": 7, "content": 12345}, {"name": None}],
    })
    text = render_context(context)
    assert "  - Untitled (Office, Unspecified location)" in text
    assert "  - Untitled (Uncategorized, 310)" in text
    assert "  - 7: 12345" in text
    assert text.endswith("  - Anonymous: ")


def test_empty_context_sections():
    text = render_context(ContextData())
    assert text == "Published projects:\nNone yet\n\nCustomer reviews:\nNone yet"


def test_prompt_without_context_has_no_context_sections():
    prompt = build_system_prompt(make_settings())
    assert "Published projects:" not in prompt
    assert "Restrictions:" in prompt
    assert "Reply in Chinese." in prompt


def test_contact_details_only_when_configured():
    assert "Contact:" not in build_system_prompt(make_settings())
    prompt = build_system_prompt(make_settings(studio_phone="177-0000-0000", studio_address="Yingbin Garden"))
    assert "- Contact: phone 177-0000-0000" in prompt
    assert "- Address: Yingbin Garden" in prompt


def test_messages_are_system_then_user():
    messages = build_messages("How much for 120 sqm?", make_settings(), ContextData())
    assert [m.role for m in messages] == ["system", "user"]
    assert messages[1].content == "How much for 120 sqm?"
    assert "Published projects:" in messages[0].content
