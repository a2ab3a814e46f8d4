"""
Static content used when no live vector search is available.

FALLBACK_CORPUS answers search queries in Offline mode (and whenever the live
path returns nothing). Each entry carries a fixed heuristic similarity.
SAMPLE_CONTENT is the seed set written through `store_content`.
"""
import time
from typing import List, Optional

from astroai.models.search import EmbeddingRecord, SearchOptions, SearchResult

FALLBACK_SOURCE = "fallback"

FALLBACK_CORPUS = [
    {
        "id": "service-ai-consulting",
        "content": "AI & ML Consulting: We help organizations develop comprehensive AI strategies, implement machine learning solutions, and ensure ethical AI practices.",
        "title": "AI & ML Consulting",
        "category": "services",
        "type": "service",
        "score": 0.8,
    },
    {
        "id": "service-cloud-architecture",
        "content": "Cloud Architecture: Design and implement scalable, secure cloud infrastructures on AWS, Azure, and GCP.",
        "title": "Cloud Architecture",
        "category": "services",
        "type": "service",
        "score": 0.7,
    },
    {
        "id": "service-ml-engineering",
        "content": "ML Engineering: Production-ready machine learning systems, from data pipelines to model deployment and monitoring.",
        "title": "ML Engineering",
        "category": "services",
        "type": "service",
        "score": 0.65,
    },
    {
        "id": "service-platform-engineering",
        "content": "Platform Engineering: DevOps, infrastructure automation, monitoring, and CI/CD pipeline implementation.",
        "title": "Platform Engineering",
        "category": "services",
        "type": "service",
        "score": 0.6,
    },
    {
        "id": "case-study-fintech",
        "content": "Fintech Transformation Case Study: AI-powered trading platform on scalable cloud infrastructure that reduced processing time by 75%.",
        "title": "Fintech AI Trading Platform",
        "category": "case-studies",
        "type": "case-study",
        "score": 0.55,
    },
    {
        "id": "case-study-enterprise-cloud",
        "content": "Enterprise Cloud Case Study: Multi-cloud architecture migration that achieved 99.9% uptime and cut infrastructure spend.",
        "title": "Enterprise Multi-Cloud Platform",
        "category": "case-studies",
        "type": "case-study",
        "score": 0.5,
    },
]

SAMPLE_CONTENT = [
    EmbeddingRecord(
        id="service-ai-consulting",
        type="service",
        source="website",
        title="AI & ML Consulting",
        category="services",
        content=(
            "AI & ML Consulting: We help organizations develop comprehensive AI strategies, implement "
            "machine learning solutions, and ensure ethical AI practices. Our team of experts guides you "
            "through the entire AI transformation journey, from initial assessment to production deployment."
        ),
    ),
    EmbeddingRecord(
        id="service-cloud-architecture",
        type="service",
        source="website",
        title="Cloud Architecture",
        category="services",
        content=(
            "Cloud Architecture: Design and implement scalable, secure cloud infrastructures on AWS, Azure, "
            "and GCP. We provide cloud migration services, multi-cloud strategies, and ongoing optimization "
            "to ensure your infrastructure meets your business needs."
        ),
    ),
    EmbeddingRecord(
        id="case-study-fintech",
        type="case-study",
        source="portfolio",
        title="Fintech AI Trading Platform",
        category="case-studies",
        content=(
            "Fintech Transformation Case Study: Implemented AI-powered trading platform that reduced "
            "processing time by 75% and improved accuracy by 40%. The solution included real-time data "
            "processing, machine learning models for prediction, and scalable cloud infrastructure."
        ),
    ),
]


def _matches_query(item: dict, query: str) -> bool:
    if not query:
        return True
    haystack = f"{item['title']} {item['content']}".lower()
    if query in haystack:
        return True
    return any(term in haystack for term in query.split() if len(term) >= 3)


def fallback_search(query: str, options: Optional[SearchOptions] = None, corpus: Optional[List[dict]] = None) -> List[SearchResult]:
    """
    Search the static corpus.

    Filters by category/type, keeps entries containing the whole query or any
    query term of three or more characters, orders by the fixed score and
    truncates to `options.limit`. Never raises.
    """
    options = options or SearchOptions()
    corpus = FALLBACK_CORPUS if corpus is None else corpus
    normalized = (query or "").strip().lower()

    hits = [
        item for item in corpus
        if (not options.category or item["category"] == options.category)
        and (not options.type or item["type"] == options.type)
        and _matches_query(item, normalized)
    ]
    hits.sort(key=lambda item: item["score"], reverse=True)

    now = time.time()
    return [
        SearchResult(
            id=item["id"],
            content=item["content"],
            similarity=item["score"],
            metadata={
                "type": item["type"],
                "source": FALLBACK_SOURCE,
                "title": item["title"],
                "category": item["category"],
                "timestamp": now,
            },
        )
        for item in hits[: options.limit]
    ]
