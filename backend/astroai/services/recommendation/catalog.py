"""
Static service catalog and the lookup tables used to score and describe it.

The catalog itself is read-only `CatalogService` data. Scoring tables
(keyword sets, profile affinities) and presentation tables (cost buckets,
timelines, tags, benefits, reasoning) are keyed by slug. A catalog entry with
an unknown slug still scores on keywords derived from its title and features
and gets the default presentation values.
"""
import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Sequence

from astroai.models.recommendation import CatalogService

DEFAULT_COST = "Custom pricing based on requirements"
DEFAULT_TIMELINE = "4-8 weeks typical project timeline"
DEFAULT_TAGS = ["consulting", "technology"]
DEFAULT_BENEFITS = [
    "Proven results and ROI",
    "Expert consultation included",
    "Ongoing support and maintenance",
]
DEFAULT_REASONING = "This service aligns with your stated requirements and objectives."

_STOPWORDS = {"and", "the", "for", "with", "your", "from", "that", "into"}


@dataclass(frozen=True)
class ServiceProfile:
    """Scoring and presentation data for one catalog slug."""
    keywords: FrozenSet[str]
    industries: FrozenSet[str] = frozenset()
    company_sizes: FrozenSet[str] = frozenset()
    challenge_terms: FrozenSet[str] = frozenset()
    budgets: Dict[str, str] = field(default_factory=dict)
    timeline: str = DEFAULT_TIMELINE
    tags: List[str] = field(default_factory=lambda: list(DEFAULT_TAGS))
    benefits: List[str] = field(default_factory=lambda: list(DEFAULT_BENEFITS))
    reasoning: str = DEFAULT_REASONING


DEFAULT_CATALOG: List[CatalogService] = [
    CatalogService(
        id="cloud-cost-optimization",
        slug="cloud-cost-optimization",
        title="Cloud Cost Optimization",
        description="Cut cloud spend without sacrificing performance through right-sizing, reserved capacity and FinOps practices.",
        features=["Cost audit", "Right-sizing", "Reserved capacity planning", "Automated cost monitoring"],
    ),
    CatalogService(
        id="ai-ml-implementation",
        slug="ai-ml-implementation",
        title="AI/ML Implementation",
        description="Design, build and deploy production machine learning systems tailored to your data.",
        features=["Use case identification", "Custom model development", "MLOps pipeline setup", "Model monitoring"],
    ),
    CatalogService(
        id="devops-automation",
        slug="devops-automation",
        title="DevOps Automation",
        description="Automated CI/CD pipelines and infrastructure as code for faster, safer releases.",
        features=["CI/CD pipelines", "Infrastructure as Code", "Container orchestration", "Observability"],
    ),
    CatalogService(
        id="vdi-solutions",
        slug="vdi-solutions",
        title="VDI Solutions",
        description="Secure virtual desktop infrastructure for distributed and remote teams.",
        features=["Virtual desktop deployment", "Secure remote access", "User management", "Licensing optimization"],
    ),
    CatalogService(
        id="ethical-ai",
        slug="ethical-ai",
        title="Ethical AI",
        description="Responsible AI assessments, bias mitigation and governance frameworks.",
        features=["Bias detection", "AI governance", "Regulatory compliance", "Model transparency"],
    ),
]

SERVICE_PROFILES: Dict[str, ServiceProfile] = {
    "cloud-cost-optimization": ServiceProfile(
        keywords=frozenset({
            "aws", "azure", "gcp", "cloud", "cloud cost", "cost", "bill", "billing",
            "spend", "spending", "reduce", "reducing", "savings", "finops", "expenses",
            "optimization",
        }),
        industries=frozenset({"technology", "fintech", "saas"}),
        challenge_terms=frozenset({"cost"}),
        budgets={
            "startup": "$5K-$15K",
            "small": "$10K-$25K",
            "medium": "$20K-$50K",
            "enterprise": "$40K-$100K+",
        },
        timeline="2-4 weeks initial optimization, ongoing monitoring",
        tags=["cloud", "cost-reduction", "optimization", "aws", "azure"],
        benefits=[
            "Average 30% reduction in cloud costs",
            "Improved resource utilization",
            "Automated cost monitoring",
            "Performance optimization included",
        ],
        reasoning=(
            "Your query indicates interest in reducing cloud expenses. "
            "Our cost optimization service typically achieves 30% savings."
        ),
    ),
    "ai-ml-implementation": ServiceProfile(
        keywords=frozenset({
            "ai", "artificial intelligence", "machine learning", "ml", "model",
            "prediction", "predictive", "llm", "data science", "neural network",
            "deep learning", "recommendation engine",
        }),
        industries=frozenset({"healthcare", "fintech", "retail"}),
        budgets={
            "startup": "$15K-$50K",
            "small": "$25K-$75K",
            "medium": "$50K-$150K",
            "enterprise": "$100K-$500K+",
        },
        timeline="6-12 weeks depending on complexity",
        tags=["ai", "machine-learning", "automation", "innovation"],
        benefits=[
            "5x faster deployment than traditional methods",
            "Custom ML models for your use case",
            "Scalable cloud infrastructure",
            "Ongoing model optimization",
        ],
        reasoning=(
            "Based on your inquiry about AI solutions, our ML implementation service can "
            "deploy models 5x faster than traditional approaches."
        ),
    ),
    "devops-automation": ServiceProfile(
        keywords=frozenset({
            "devops", "ci/cd", "pipeline", "deployment", "deploy", "automation",
            "automate", "infrastructure", "infrastructure as code", "kubernetes",
            "terraform", "release",
        }),
        company_sizes=frozenset({"medium", "enterprise"}),
        challenge_terms=frozenset({"automation"}),
        budgets={
            "startup": "$10K-$30K",
            "small": "$20K-$50K",
            "medium": "$40K-$100K",
            "enterprise": "$75K-$200K+",
        },
        timeline="4-8 weeks for full pipeline setup",
        tags=["devops", "ci-cd", "automation", "infrastructure"],
        benefits=[
            "Automated CI/CD pipelines",
            "Reduced deployment time by 80%",
            "Infrastructure as Code",
            "Enhanced security and compliance",
        ],
        reasoning=(
            "Your interest in automation aligns with our DevOps services that streamline "
            "deployment and infrastructure management."
        ),
    ),
    "vdi-solutions": ServiceProfile(
        keywords=frozenset({
            "vdi", "virtual desktop", "desktop", "remote", "remote work",
            "hybrid work", "citrix", "workspace", "work from home",
        }),
        company_sizes=frozenset({"enterprise"}),
        challenge_terms=frozenset({"remote"}),
        budgets={
            "startup": "$8K-$25K",
            "small": "$15K-$40K",
            "medium": "$30K-$80K",
            "enterprise": "$60K-$150K+",
        },
        timeline="3-6 weeks for complete deployment",
        tags=["virtual-desktop", "remote-work", "security", "productivity"],
        benefits=[
            "Secure remote access",
            "99.9% uptime guarantee",
            "Scalable user management",
            "Cost-effective licensing",
        ],
        reasoning=(
            "Virtual desktop solutions can address remote work challenges while maintaining "
            "security and performance."
        ),
    ),
    "ethical-ai": ServiceProfile(
        keywords=frozenset({
            "ethics", "ethical", "bias", "fairness", "responsible ai", "governance",
            "compliance", "transparency", "regulation", "explainability",
        }),
        budgets={
            "startup": "$5K-$20K",
            "small": "$10K-$35K",
            "medium": "$25K-$75K",
            "enterprise": "$50K-$150K+",
        },
        timeline="4-8 weeks for assessment and implementation",
        tags=["ethics", "ai", "compliance", "responsible-ai"],
        benefits=[
            "Responsible AI implementation",
            "Bias detection and mitigation",
            "Regulatory compliance",
            "Transparent decision-making",
        ],
        reasoning="Our ethical AI consulting ensures responsible implementation while maximizing business value.",
    ),
}


def derive_keywords(service: CatalogService) -> FrozenSet[str]:
    """Keyword set for a slug without a curated profile: words of title and features."""
    text = " ".join([service.title] + list(service.features)).lower()
    words = re.findall(r"[a-z0-9][a-z0-9/+-]*", text)
    return frozenset(w for w in words if len(w) > 2 and w not in _STOPWORDS)


def get_service_profile(service: CatalogService) -> ServiceProfile:
    profile = SERVICE_PROFILES.get(service.slug)
    if profile is not None:
        return profile
    return ServiceProfile(keywords=derive_keywords(service))


def estimated_cost(slug: str, company_size: Optional[str]) -> str:
    profile = SERVICE_PROFILES.get(slug)
    if profile is None or not company_size:
        return DEFAULT_COST
    return profile.budgets.get(company_size, DEFAULT_COST)


def find_service(catalog: Sequence[CatalogService], slug: str) -> Optional[CatalogService]:
    for service in catalog:
        if service.slug == slug:
            return service
    return None
