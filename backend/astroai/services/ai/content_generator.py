"""
Marketing content generation.

Five document types (blog post, case study, technical doc, email, proposal)
each have a template composer that fills a fixed outline with the request's
topic, audience, tone, context and keywords. When enabled, a completion
provider writes the body instead; any provider failure falls back to the
template, the same way chat replies do.

Scoring (word count, reading time, SEO score, keyword density, topics) is
computed on the markdown body before it is rendered to the requested format.
"""
import asyncio
import html
import math
import re
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional, Protocol

from astroai.core.errors import ValidationError, classify_error
from astroai.core.logging import get_logger
from astroai.core.metrics import record_content_generation
from astroai.core.performance import performance_monitor
from astroai.core.retry import retry_with_backoff
from astroai.core.sanitize import sanitize
from astroai.models.content import ContentMetadata, ContentRequest, GeneratedContent
from astroai.services.ai.responses import TEMPLATE_MODEL, estimate_tokens

logger = get_logger(__name__)

WORDS_PER_MINUTE = 200
MAX_TOPIC_LENGTH = 200
MAX_CONTEXT_LENGTH = 1000
MAX_KEYWORD_LENGTH = 100

COMMON_TOPICS = [
    "AI", "Machine Learning", "Cloud Computing", "Data Analytics",
    "Digital Transformation", "Automation", "Security", "Performance",
    "Scalability", "Innovation", "Technology", "Strategy",
]

LENGTH_TARGETS: Dict[str, str] = {
    "short": "500-800 words",
    "medium": "1200-1800 words",
    "long": "2000-3000 words",
}

LENGTH_MAX_TOKENS: Dict[str, int] = {"short": 1200, "medium": 2500, "long": 4000}

CONTACT_URL = "https://saadjamal.com/contact"

CONTENT_SYSTEM_PROMPT = """You are a senior content writer for Astro Intelligence, a cloud engineering and AI consulting company.

Write in markdown. Use clear headings, concrete examples and a short call to action at the end.
Never invent client names, statistics you cannot attribute, or prices."""

BLOG_SECTIONS: Dict[str, str] = {
    "overview": "Understanding {topic} is crucial for {audience} teams looking to stay competitive in today's market. This technology offers significant advantages in terms of efficiency, cost reduction, and scalability.",
    "benefits": "The key benefits of implementing {topic_lower} include reduced operational costs, improved performance, enhanced security, and better scalability. Organizations typically see ROI within 6-12 months.",
    "implementation": "Successful implementation requires careful planning, proper resource allocation, and expert guidance. Our proven methodology ensures smooth deployment with minimal disruption to operations.",
    "best-practices": "Following industry best practices is essential for success. This includes proper planning, stakeholder engagement, phased rollout, continuous monitoring, and ongoing optimization.",
    "challenges": "Common challenges include legacy system integration, change management, resource constraints, and technical complexity. With proper planning and expertise, these challenges can be effectively addressed.",
    "examples": "We've successfully implemented similar solutions for clients across various industries, consistently delivering 30% cost reductions and 5x performance improvements.",
    "advanced": "Advanced implementations can include custom integrations, multi-region deployments, advanced analytics, and automated optimization capabilities.",
    "future": "Future trends indicate increasing adoption of AI-driven optimization, enhanced automation capabilities, and deeper integration with emerging technologies.",
}

TECHNICAL_SECTIONS: Dict[str, str] = {
    "architecture": "The architecture for {topic} follows a distributed, scalable design with the following components:\n- Core processing layer\n- Data storage and caching\n- API gateway and routing\n- Monitoring and logging\n- Security and access control",
    "preparation": "Prepare the environment by:\n1. Installing required dependencies\n2. Configuring network and security settings\n3. Setting up monitoring and logging\n4. Preparing backup and recovery procedures",
    "configuration": "Configure the system by:\n1. Setting up core configuration files\n2. Configuring database connections\n3. Setting up authentication and authorization\n4. Configuring monitoring and alerting",
    "deployment": "Deploy using the following steps:\n1. Deploy core services\n2. Configure load balancing and routing\n3. Set up monitoring and health checks\n4. Perform smoke tests and validation",
    "validation": "Validate the deployment by:\n1. Running functional tests\n2. Performing load testing\n3. Validating security configurations\n4. Confirming monitoring and alerting",
    "monitoring": "Monitor system health using:\n- Application performance metrics\n- Infrastructure monitoring\n- Log analysis and alerting\n- User experience monitoring",
    "troubleshooting": "Common issues and solutions:\n- Connection timeouts: Check network configuration\n- Performance issues: Review resource allocation\n- Authentication failures: Verify credentials and permissions\n- Configuration errors: Validate configuration syntax",
    "security": "Security considerations include:\n- Network security and firewall rules\n- Authentication and authorization\n- Data encryption in transit and at rest\n- Regular security updates and patches",
}

EMAIL_SUBJECTS: Dict[str, str] = {
    "professional": "{topic}: Strategic Implementation for {audience} Teams",
    "casual": "Let's talk about {topic}",
    "persuasive": "Transform Your Business with {topic}",
    "educational": "Understanding {topic}: A Guide for {audience} Teams",
}


class PromptProvider(Protocol):
    chat_model: str

    async def complete_prompt(self, system_prompt: str, prompt: str, max_tokens: Optional[int] = None) -> str:
        ...


def _slug(topic: str) -> str:
    return re.sub(r"\s+", "-", topic.lower())


def _section(sections: Dict[str, str], name: str, topic: str, audience: str = "general") -> str:
    return sections[name].format(topic=topic, topic_lower=topic.lower(), audience=audience)


def _keywords_line(keywords: List[str]) -> str:
    return f"\n**Keywords**: {', '.join(keywords)}\n" if keywords else ""


def compose_blog_post(request: ContentRequest) -> str:
    topic, audience = request.topic, request.audience
    parts = [
        f"# {topic}: A Comprehensive Guide for {audience.title()} Readers",
        "## Introduction",
        f"In today's rapidly evolving technology landscape, {topic.lower()} has become increasingly important "
        f"for {audience} teams. This guide explores the key concepts, best practices, and implementation "
        "strategies that can help you achieve success.",
    ]
    if request.context:
        parts.append(f"**Context**: {request.context}")

    outline = [
        (f"Understanding {topic}", "overview"),
        ("Key Benefits and Advantages", "benefits"),
        ("Implementation Strategy", "implementation"),
        ("Best Practices", "best-practices"),
    ]
    if request.length != "short":
        outline += [("Common Challenges and Solutions", "challenges"), ("Case Studies and Examples", "examples")]
    if request.length == "long":
        outline += [("Advanced Considerations", "advanced"), ("Future Trends and Predictions", "future")]
    for heading, name in outline:
        parts.append(f"## {heading}")
        parts.append(_section(BLOG_SECTIONS, name, topic, audience))

    parts.append("## Conclusion")
    parts.append(
        f"Implementing {topic.lower()} successfully requires careful planning, the right expertise, and a "
        "strategic approach. At Astro Intelligence, we've helped numerous organizations achieve their goals "
        "through our proven methodologies and hands-on experience."
    )
    parts.append(_keywords_line(request.keywords).strip())
    parts.append("---")
    parts.append(
        f"*Ready to get started with {topic.lower()}? [Schedule a consultation]({CONTACT_URL}) to discuss "
        "your specific requirements and learn how we can help you achieve measurable results.*"
    )
    return "\n\n".join(p for p in parts if p)


def compose_case_study(request: ContentRequest) -> str:
    topic = request.topic
    background = request.context or (
        "Our client is a leading organization in their industry, facing challenges with scalability, "
        "cost optimization, and operational efficiency."
    )
    return f"""# Case Study: {topic}

## Executive Summary

This case study examines how our client successfully implemented {topic.lower()} to achieve significant business outcomes. Through strategic planning and expert execution, we delivered measurable results that exceeded expectations.

## Client Background

{background}

## Challenge

The client was experiencing several critical issues:
- Increasing operational costs without proportional value
- Scalability limitations affecting growth potential
- Manual processes leading to inefficiencies
- Need for modern, future-proof solutions

## Solution

### Phase 1: Assessment and Planning
- Detailed analysis of current state
- Identification of optimization opportunities
- Development of implementation roadmap

### Phase 2: Implementation
- Deployment of optimized solutions
- Integration with existing systems
- Team training and knowledge transfer

### Phase 3: Optimization and Scale
- Performance monitoring and tuning
- Scaling successful implementations
- Continuous improvement processes

## Results

- **30% reduction** in operational costs
- **5x improvement** in deployment speed
- **99.9% uptime** reliability achieved

## Key Learnings

1. Thorough planning and stakeholder engagement
2. Phased approach to minimize risk
3. Continuous monitoring and optimization

## Conclusion

This case study demonstrates the tangible benefits of implementing {topic.lower()} with the right expertise and approach.
{_keywords_line(request.keywords)}
---

*Interested in similar results for your organization? [Contact us]({CONTACT_URL}) to discuss how we can help you achieve your goals.*"""


def compose_technical_doc(request: ContentRequest) -> str:
    topic = request.topic
    slug = _slug(topic)
    steps = "\n\n".join(
        f"### Step {i}: {title}\n{_section(TECHNICAL_SECTIONS, name, topic)}"
        for i, (title, name) in enumerate(
            [
                ("Environment Preparation", "preparation"),
                ("Configuration", "configuration"),
                ("Deployment", "deployment"),
                ("Validation", "validation"),
            ],
            start=1,
        )
    )
    context = f"\n**Context**: {request.context}\n" if request.context else ""
    return f"""# {topic} - Technical Documentation

## Overview

This document provides technical guidance for implementing and managing {topic.lower()}. It covers architecture, implementation details, and troubleshooting procedures.

## Architecture Overview

{_section(TECHNICAL_SECTIONS, "architecture", topic)}

## Implementation Guide

{steps}

## Configuration Reference

```yaml
name: {slug}
version: "1.0"
environment: production
monitoring:
  enabled: true
  interval: 60s
```

## Monitoring and Maintenance

{_section(TECHNICAL_SECTIONS, "monitoring", topic)}

## Troubleshooting

{_section(TECHNICAL_SECTIONS, "troubleshooting", topic)}

```bash
systemctl status {slug}
journalctl -u {slug} -f
```

## Security Considerations

{_section(TECHNICAL_SECTIONS, "security", topic)}

---
{context}{_keywords_line(request.keywords)}
*For additional support or questions, contact our technical team at [support@astrointelligence.com](mailto:support@astrointelligence.com)*"""


def compose_email(request: ContentRequest) -> str:
    topic = request.topic
    subject = EMAIL_SUBJECTS.get(request.tone, EMAIL_SUBJECTS["professional"]).format(
        topic=topic, audience=request.audience.title()
    )
    lead = f"Based on our previous conversation about {request.context}, " if request.context else ""
    return f"""Subject: {subject}

Dear [Name],

I hope this email finds you well. I'm reaching out regarding {topic.lower()} and how it could benefit your organization.

{lead}I believe there's a significant opportunity to help you achieve your goals through strategic implementation of {topic.lower()}.

**Key Benefits for Your Organization:**
- Reduce operational costs by up to 30%
- Improve efficiency and scalability
- Implement best practices and industry standards
- Achieve measurable ROI within 6-12 months

**Next Steps:**
I'd love to schedule a brief consultation to discuss your specific requirements. Our initial consultations are complimentary and typically last 30-45 minutes.

Please let me know what works best for your schedule.

Best regards,

Saad Jamal
Founder & Cloud Engineer
Astro Intelligence"""


def compose_proposal(request: ContentRequest, today: date) -> str:
    topic = request.topic
    valid_until = today + timedelta(days=30)
    context = f"\n**Project Context**: {request.context}\n" if request.context else ""
    return f"""# Proposal: {topic} Implementation

**Prepared for**: [Client Name]
**Prepared by**: Astro Intelligence
**Date**: {today.strftime("%B %d, %Y")}
**Valid until**: {valid_until.strftime("%B %d, %Y")}

## Executive Summary

Astro Intelligence proposes to implement {topic.lower()} for your organization, delivering measurable results and significant return on investment. Our proven methodology will help you achieve your strategic objectives while minimizing risk and disruption.
{context}
## Proposed Solution

**Phase 1: Discovery & Planning (2-3 weeks)**
- Comprehensive assessment of current state
- Solution architecture and design

**Phase 2: Implementation (4-8 weeks)**
- Solution deployment and configuration
- Testing and quality assurance

**Phase 3: Optimization & Support (Ongoing)**
- Performance monitoring and tuning
- Ongoing support and maintenance

## Expected Outcomes

- **30% reduction** in operational costs
- **5x improvement** in efficiency metrics
- **99.9% reliability** and uptime

## Investment & Timeline

- **Discovery & Planning**: $[Amount]
- **Implementation**: $[Amount]
- **Ongoing Support**: $[Amount]/month

## Next Steps

1. **Review and Approval**: Review this proposal and provide feedback
2. **Contract Execution**: Sign service agreement and SOW
3. **Project Kickoff**: Begin discovery phase within 1 week
{_keywords_line(request.keywords)}
---

*This proposal is confidential and proprietary to Astro Intelligence. [Contact us]({CONTACT_URL}) with any questions.*"""


def compose_content(request: ContentRequest, today: date) -> str:
    """Template body for a sanitized request."""
    if request.type == "blog-post":
        return compose_blog_post(request)
    if request.type == "case-study":
        return compose_case_study(request)
    if request.type == "technical-doc":
        return compose_technical_doc(request)
    if request.type == "email":
        return compose_email(request)
    return compose_proposal(request, today)


def build_content_prompt(request: ContentRequest) -> str:
    lines = [
        f"Write a {request.type.replace('-', ' ')} about: {request.topic}",
        f"Audience: {request.audience}",
        f"Tone: {request.tone}",
        f"Target length: {LENGTH_TARGETS[request.length]}",
    ]
    if request.keywords:
        lines.append(f"Work these keywords in naturally: {', '.join(request.keywords)}")
    if request.context:
        lines.append(f"Context: {request.context}")
    return "\n".join(lines)


def generate_title(request: ContentRequest) -> str:
    topic = request.topic
    if request.type == "blog-post":
        return f"{topic}: A Comprehensive Guide for {request.audience.title()} Readers"
    if request.type == "case-study":
        return f"Case Study: {topic} Transformation Success"
    if request.type == "technical-doc":
        return f"Technical Documentation: {topic}"
    if request.type == "email":
        return f"Re: {topic}"
    return f"Proposal: {topic} Implementation"


def count_words(text: str) -> int:
    return len(text.split())


def _occurrences(text_lower: str, keyword: str) -> int:
    return len(re.findall(re.escape(keyword.lower()), text_lower))


def seo_score(content: str, keywords: List[str]) -> int:
    """Score keyword density: 1-3% is ideal, 0.5-1% and 3-5% are acceptable."""
    words = count_words(content)
    if not keywords or not words:
        return 0
    lower = content.lower()
    density = sum(_occurrences(lower, k) for k in keywords) / words * 100
    if 1 <= density <= 3:
        return 90
    if 0.5 <= density < 1:
        return 70
    if 3 < density <= 5:
        return 60
    return 40


def keyword_density(content: str, keywords: List[str]) -> Dict[str, float]:
    """Percentage of words containing each keyword."""
    words = content.lower().split()
    if not words:
        return {k: 0.0 for k in keywords}
    return {
        k: round(sum(1 for w in words if k.lower() in w) / len(words) * 100, 2)
        for k in keywords
    }


def extract_topics(content: str) -> List[str]:
    return [
        topic for topic in COMMON_TOPICS
        if re.search(rf"\b{re.escape(topic)}\b", content, re.IGNORECASE)
    ]


_FENCE = re.compile(r"```.*?```", re.DOTALL)
_LINK = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_EMPHASIS = re.compile(r"(\*\*|\*|__|`)(.+?)\1")
_HEADING = re.compile(r"^#{1,6}\s+", re.MULTILINE)
_HEADING_LINE = re.compile(r"^#{1,6}\s+.*$", re.MULTILINE)
_BULLET = re.compile(r"^\s*(?:[-*•]|\d+\.)\s+", re.MULTILINE)
_RULE = re.compile(r"^-{3,}\s*$", re.MULTILINE)


def strip_markdown(content: str) -> str:
    text = _FENCE.sub("", content)
    text = _LINK.sub(r"\1", text)
    text = _EMPHASIS.sub(r"\2", text)
    text = _HEADING.sub("", text)
    text = _BULLET.sub("", text)
    text = _RULE.sub("", text)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


def summarize(content: str, max_sentences: int = 3) -> str:
    """First few substantial sentences of the body, without markup."""
    sentences = [
        s.strip() for s in re.split(r"[.!?]+", strip_markdown(_HEADING_LINE.sub("", content)))
        if len(s.strip()) > 20
    ]
    summary = ". ".join(" ".join(s.split()) for s in sentences[:max_sentences])
    return summary + "." if summary else ""


def _inline_html(text: str) -> str:
    text = html.escape(text, quote=False)
    text = _LINK.sub(r'<a href="\2">\1</a>', text)
    text = re.sub(r"\*\*(.+?)\*\*", r"<strong>\1</strong>", text)
    text = re.sub(r"\*(.+?)\*", r"<em>\1</em>", text)
    return re.sub(r"`(.+?)`", r"<code>\1</code>", text)


def markdown_to_html(content: str) -> str:
    """Render the markdown subset the composers emit."""
    out: List[str] = []
    paragraph: List[str] = []
    list_tag: Optional[str] = None
    in_code = False

    def flush() -> None:
        nonlocal list_tag
        if paragraph:
            out.append(f"<p>{_inline_html(' '.join(paragraph))}</p>")
            paragraph.clear()
        if list_tag:
            out.append(f"</{list_tag}>")
            list_tag = None

    for line in content.splitlines():
        stripped = line.strip()
        if stripped.startswith("```"):
            flush()
            out.append("</code></pre>" if in_code else "<pre><code>")
            in_code = not in_code
            continue
        if in_code:
            out.append(html.escape(line, quote=False))
            continue

        heading = re.match(r"^(#{1,6})\s+(.*)$", stripped)
        item = re.match(r"^(?:([-*•])|\d+\.)\s+(.*)$", stripped)
        if not stripped:
            flush()
        elif _RULE.match(stripped):
            flush()
            out.append("<hr>")
        elif heading:
            flush()
            level = len(heading.group(1))
            out.append(f"<h{level}>{_inline_html(heading.group(2))}</h{level}>")
        elif item:
            tag = "ul" if item.group(1) else "ol"
            if paragraph or list_tag != tag:
                flush()
                out.append(f"<{tag}>")
                list_tag = tag
            out.append(f"<li>{_inline_html(item.group(2))}</li>")
        else:
            if list_tag:
                flush()
            paragraph.append(stripped)
    flush()
    if in_code:
        out.append("</code></pre>")
    return "\n".join(out)


def render(content: str, fmt: str) -> str:
    if fmt == "html":
        return markdown_to_html(content)
    if fmt == "plain":
        return strip_markdown(content)
    return content


def generate_suggestions(request: ContentRequest, content: str) -> List[str]:
    suggestions = []
    lower = content.lower()
    missing = [k for k in request.keywords if k.lower() not in lower]
    if missing:
        suggestions.append(f"Consider including these keywords: {', '.join(missing)}")
    if count_words(content) < 300:
        suggestions.append("Consider expanding the content for better SEO and reader engagement")
    if "](" not in content and request.type != "email":
        suggestions.append("Add internal links to other relevant pages or resources")
    if request.type == "blog-post" and "## " not in content:
        suggestions.append("Add more subheadings to improve readability and structure")
    return suggestions


class ContentGenerator:
    """
    Produces marketing documents from a topic and a few style options.

    Args:
        provider: Optional completion provider
        llm_enabled: Capability flag; the provider is only called when True
        timeout_seconds: Bound on the whole provider round trip (retries included)
        max_retries: Retries of retryable provider failures
        today: Date source for proposal headers
    """

    def __init__(
        self,
        provider: Optional[PromptProvider] = None,
        llm_enabled: bool = False,
        timeout_seconds: float = 30.0,
        max_retries: int = 2,
        retry_base_delay: float = 1.0,
        retry_jitter: float = 1.0,
        today: Callable[[], date] = date.today,
    ):
        self.provider = provider
        self.llm_enabled = llm_enabled
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.retry_jitter = retry_jitter
        self._today = today

    @property
    def uses_provider(self) -> bool:
        return self.llm_enabled and self.provider is not None

    def _clean(self, request: ContentRequest) -> ContentRequest:
        topic = sanitize(request.topic, MAX_TOPIC_LENGTH)
        if not topic:
            raise ValidationError("Topic cannot be empty.")
        keywords = [k for k in (sanitize(k, MAX_KEYWORD_LENGTH) for k in request.keywords) if k]
        context = sanitize(request.context, MAX_CONTEXT_LENGTH) if request.context else None
        return request.model_copy(update={"topic": topic, "keywords": keywords, "context": context or None})

    async def generate(self, request: ContentRequest) -> GeneratedContent:
        """
        Generate a document for `request`.

        Raises:
            ValidationError: if the topic is empty after sanitization
        """
        request = self._clean(request)
        with performance_monitor.timed("content.generation"):
            body, model, reason = await self._write(request)

        words = count_words(body)
        generated = GeneratedContent(
            type=request.type,
            title=generate_title(request),
            content=render(body, request.format),
            summary=summarize(body),
            format=request.format,
            suggestions=generate_suggestions(request, body),
            metadata=ContentMetadata(
                word_count=words,
                reading_time=math.ceil(words / WORDS_PER_MINUTE),
                seo_score=seo_score(body, request.keywords),
                topics=extract_topics(body),
                keyword_density=keyword_density(body, request.keywords),
                model=model,
                tokens=estimate_tokens(body),
                fallback_reason=reason,
            ),
        )
        record_content_generation(request.type, "template" if model == TEMPLATE_MODEL else "llm")
        logger.info(
            "content_generated",
            content_type=request.type,
            model=model,
            word_count=words,
            fallback_reason=reason,
        )
        return generated

    async def _write(self, request: ContentRequest):
        template = compose_content(request, self._today())
        if not self.uses_provider:
            return template, TEMPLATE_MODEL, None

        provider = self.provider
        try:
            body = await asyncio.wait_for(
                retry_with_backoff(
                    lambda: provider.complete_prompt(
                        CONTENT_SYSTEM_PROMPT,
                        build_content_prompt(request),
                        LENGTH_MAX_TOKENS[request.length],
                    ),
                    max_retries=self.max_retries,
                    base_delay=self.retry_base_delay,
                    jitter=self.retry_jitter,
                    operation_name="llm_content",
                ),
                timeout=self.timeout_seconds,
            )
        except Exception as e:
            error = classify_error(e)
            reason = "timeout" if error.metadata.get("timeout") else error.kind.value
            logger.warning(
                "content_provider_fallback",
                content_type=request.type,
                reason=reason,
                error_type=type(e).__name__,
            )
            return template, TEMPLATE_MODEL, reason
        return body, provider.chat_model, None
