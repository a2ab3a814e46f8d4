"""
Unit tests for content templates, scoring and the content generator.
"""
import asyncio
import math
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest

from astroai.core.errors import AuthError, ValidationError
from astroai.models.content import ContentRequest
from astroai.services.ai.content_generator import (
    CONTENT_SYSTEM_PROMPT,
    LENGTH_MAX_TOKENS,
    ContentGenerator,
    extract_topics,
    generate_suggestions,
    generate_title,
    keyword_density,
    markdown_to_html,
    render,
    seo_score,
    summarize,
)
from astroai.services.ai.responses import TEMPLATE_MODEL


def _provider(complete_prompt):
    provider = MagicMock()
    provider.chat_model = "gpt-test"
    provider.complete_prompt = complete_prompt
    return provider


@pytest.mark.parametrize(
    "occurrences, words, expected",
    [(1, 100, 90), (3, 100, 90), (1, 200, 70), (4, 100, 60), (10, 100, 40), (0, 100, 40)],
)
def test_seo_score_follows_keyword_density(occurrences, words, expected):
    content = " ".join(["cloud"] * occurrences + ["word"] * (words - occurrences))

    assert seo_score(content, ["cloud"]) == expected


def test_seo_score_without_keywords_is_zero():
    assert seo_score("cloud " * 10, []) == 0


def test_keyword_density_counts_words_containing_keyword():
    density = keyword_density("cloud clouds data", ["cloud", "ml"])

    assert density == {"cloud": 66.67, "ml": 0.0}


def test_extract_topics_matches_whole_words():
    assert extract_topics("We use AI and machine learning for security.") == ["AI", "Machine Learning", "Security"]
    assert extract_topics("She said the email was sent.") == []


def test_summary_skips_headings_and_short_sentences():
    content = (
        "# Title\n\n"
        "This is the first sentence of the body. Short one. **Bold** second long sentence here! "
        "Third substantial sentence follows? Fourth substantial sentence is dropped."
    )

    assert summarize(content) == (
        "This is the first sentence of the body. Bold second long sentence here. "
        "Third substantial sentence follows."
    )


def test_markdown_to_html():
    content = "# Title\n\nSome **bold** and [link](https://x.io).\n\n- one\n- two\n\n1. first\n\n---\n\n```bash\necho <hi>\n```"

    rendered = markdown_to_html(content)

    assert rendered.startswith("<h1>Title</h1>")
    assert '<p>Some <strong>bold</strong> and <a href="https://x.io">link</a>.</p>' in rendered
    assert "<ul>\n<li>one</li>\n<li>two</li>\n</ul>" in rendered
    assert "<ol>\n<li>first</li>\n</ol>" in rendered
    assert "<hr>" in rendered
    assert "<pre><code>\necho &lt;hi&gt;\n</code></pre>" in rendered


def test_plain_render_strips_markup():
    assert render("# Title\n\n**Bold** [link](https://x.io)", "plain") == "Title\n\nBold link"
    assert render("# Title", "markdown") == "# Title"


@pytest.mark.parametrize(
    "content_type, title",
    [
        ("blog-post", "Edge AI: A Comprehensive Guide for Business Readers"),
        ("case-study", "Case Study: Edge AI Transformation Success"),
        ("technical-doc", "Technical Documentation: Edge AI"),
        ("email", "Re: Edge AI"),
        ("proposal", "Proposal: Edge AI Implementation"),
    ],
)
def test_title_per_type(content_type, title):
    assert generate_title(ContentRequest(type=content_type, topic="Edge AI")) == title


def test_suggestions_for_thin_content():
    request = ContentRequest(type="blog-post", topic="Edge AI", keywords=["kubernetes", "edge"])

    suggestions = generate_suggestions(request, "Edge computing in brief.")

    assert suggestions == [
        "Consider including these keywords: kubernetes",
        "Consider expanding the content for better SEO and reader engagement",
        "Add internal links to other relevant pages or resources",
        "Add more subheadings to improve readability and structure",
    ]


def test_email_skips_link_suggestion():
    request = ContentRequest(type="email", topic="Edge AI")

    assert generate_suggestions(request, "word " * 300) == []


class TestContentGenerator:

    @pytest.mark.asyncio
    async def test_template_blog_post(self):
        generator = ContentGenerator()
        request = ContentRequest(type="blog-post", topic="  <b>Edge AI</b> ", keywords=["edge", " "])

        result = await generator.generate(request)

        assert result.title == "Edge AI: A Comprehensive Guide for Business Readers"
        assert result.content.startswith("# Edge AI: A Comprehensive Guide")
        assert "**Keywords**: edge" in result.content
        assert result.metadata.model == TEMPLATE_MODEL
        assert result.metadata.fallback_reason is None
        assert list(result.metadata.keyword_density) == ["edge"]
        assert result.metadata.reading_time == math.ceil(result.metadata.word_count / 200)
        assert "AI" in result.metadata.topics
        assert result.summary

    @pytest.mark.asyncio
    async def test_length_controls_blog_sections(self):
        generator = ContentGenerator()

        short = await generator.generate(ContentRequest(type="blog-post", topic="Edge AI", length="short"))
        long = await generator.generate(ContentRequest(type="blog-post", topic="Edge AI", length="long"))

        assert "## Common Challenges" not in short.content
        assert "## Future Trends and Predictions" in long.content
        assert long.metadata.word_count > short.metadata.word_count

    @pytest.mark.asyncio
    async def test_proposal_dates(self):
        generator = ContentGenerator(today=lambda: date(2026, 1, 15))

        result = await generator.generate(ContentRequest(type="proposal", topic="Data Platform"))

        assert "**Date**: January 15, 2026" in result.content
        assert "**Valid until**: February 14, 2026" in result.content

    @pytest.mark.asyncio
    async def test_email_subject_follows_tone(self):
        result = await ContentGenerator().generate(
            ContentRequest(type="email", topic="Kubernetes", tone="casual", context="platform costs")
        )

        assert result.content.startswith("Subject: Let's talk about Kubernetes")
        assert "Based on our previous conversation about platform costs" in result.content

    @pytest.mark.asyncio
    async def test_technical_doc_html(self):
        result = await ContentGenerator().generate(
            ContentRequest(type="technical-doc", topic="Service Mesh", format="html")
        )

        assert result.format == "html"
        assert result.content.startswith("<h1>Service Mesh - Technical Documentation</h1>")
        assert "systemctl status service-mesh" in result.content

    @pytest.mark.asyncio
    async def test_empty_topic_after_sanitizing(self):
        with pytest.raises(ValidationError):
            await ContentGenerator().generate(ContentRequest(type="email", topic="<b></b>"))

    @pytest.mark.asyncio
    async def test_provider_writes_body_when_enabled(self):
        complete_prompt = AsyncMock(return_value="# Edge AI\n\nEdge AI moves inference closer to the data source.")
        generator = ContentGenerator(provider=_provider(complete_prompt), llm_enabled=True)

        result = await generator.generate(ContentRequest(type="blog-post", topic="Edge AI", tone="educational"))

        assert result.content.startswith("# Edge AI\n\nEdge AI moves inference")
        assert result.metadata.model == "gpt-test"
        system_prompt, prompt, max_tokens = complete_prompt.await_args.args
        assert system_prompt == CONTENT_SYSTEM_PROMPT
        assert "Write a blog post about: Edge AI" in prompt
        assert "Tone: educational" in prompt
        assert max_tokens == LENGTH_MAX_TOKENS["medium"]

    @pytest.mark.asyncio
    async def test_provider_not_called_when_disabled(self):
        complete_prompt = AsyncMock(return_value="text")
        generator = ContentGenerator(provider=_provider(complete_prompt), llm_enabled=False)

        result = await generator.generate(ContentRequest(type="email", topic="Edge AI"))

        assert result.metadata.model == TEMPLATE_MODEL
        complete_prompt.assert_not_called()

    @pytest.mark.asyncio
    async def test_falls_back_on_provider_error(self):
        complete_prompt = AsyncMock(side_effect=AuthError())
        generator = ContentGenerator(provider=_provider(complete_prompt), llm_enabled=True)

        result = await generator.generate(ContentRequest(type="case-study", topic="Edge AI"))

        assert result.content.startswith("# Case Study: Edge AI")
        assert result.metadata.model == TEMPLATE_MODEL
        assert result.metadata.fallback_reason == "auth"
        assert complete_prompt.await_count == 1

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self):
        async def hang(system_prompt, prompt, max_tokens):
            await asyncio.sleep(10)

        generator = ContentGenerator(provider=_provider(hang), llm_enabled=True, timeout_seconds=0.05)

        result = await generator.generate(ContentRequest(type="email", topic="Edge AI"))

        assert result.metadata.fallback_reason == "timeout"
        assert result.content.startswith("Subject:")
