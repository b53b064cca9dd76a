"""Research depth profiles and report layouts."""

from dataclasses import dataclass

# Single source of truth for the default Claude model across all modules.
DEFAULT_MODEL = "claude-sonnet-4-20250514"

# Lightweight model for short classification/rating calls.
SCORING_MODEL = "claude-haiku-4-5-20251001"

QUICK_SECTIONS = ("Executive Summary", "Key Findings", "Recommendations")

DEEP_SECTIONS = (
    "Executive Summary",
    "Background",
    "Key Findings",
    "Analysis",
    "Recommendations",
    "Limitations & Gaps",
)

COMPREHENSIVE_SECTIONS = (
    "Executive Summary",
    "Background",
    "Methodology",
    "Key Findings",
    "Analysis",
    "Recommendations",
    "Limitations & Gaps",
    "Conclusion",
)


@dataclass(frozen=True)
class DepthProfile:
    """Configuration resolved from a research depth."""
    name: str
    max_queries: int  # Expanded queries searched (original included)
    max_sources_per_query: int  # Result cap per provider call
    total_sources: int  # Sources kept after ranking
    content_slice: int  # Characters of content kept per source
    min_words: int  # Target report length range
    max_words: int
    sections: tuple[str, ...]  # Required report sections, in order
    findings_count: int
    recommendations_count: int
    gaps_count: int  # 0 = gaps not requested
    summary_hint: str  # Summary instruction for the analysis prompt
    max_tokens: int  # Output cap for report drafting

    @property
    def requests_gaps(self) -> bool:
        return self.gaps_count > 0

    def __post_init__(self) -> None:
        """Validate profile configuration."""
        errors = []

        if not self.name:
            errors.append("name cannot be empty")
        if self.max_queries < 1:
            errors.append(f"max_queries must be >= 1, got {self.max_queries}")
        if self.max_sources_per_query < 1:
            errors.append(
                f"max_sources_per_query must be >= 1, got {self.max_sources_per_query}"
            )
        if self.total_sources < 1:
            errors.append(f"total_sources must be >= 1, got {self.total_sources}")
        if self.content_slice < 100:
            errors.append(f"content_slice must be >= 100, got {self.content_slice}")
        if self.min_words < 50:
            errors.append(f"min_words must be >= 50, got {self.min_words}")
        if self.max_words < self.min_words:
            errors.append(
                f"max_words ({self.max_words}) must be >= min_words ({self.min_words})"
            )
        if not self.sections:
            errors.append("sections cannot be empty")
        if self.findings_count < 1:
            errors.append(f"findings_count must be >= 1, got {self.findings_count}")
        if self.recommendations_count < 1:
            errors.append(
                f"recommendations_count must be >= 1, got {self.recommendations_count}"
            )
        if self.gaps_count < 0:
            errors.append(f"gaps_count must be >= 0, got {self.gaps_count}")
        if self.max_tokens < 100:
            errors.append(f"max_tokens must be >= 100, got {self.max_tokens}")

        if errors:
            raise ValueError(f"Invalid DepthProfile: {'; '.join(errors)}")

    @classmethod
    def quick(cls) -> "DepthProfile":
        return cls(
            name="quick",
            max_queries=2,
            max_sources_per_query=3,
            total_sources=3,
            content_slice=1500,
            min_words=300,
            max_words=500,
            sections=QUICK_SECTIONS,
            findings_count=3,
            recommendations_count=2,
            gaps_count=0,
            summary_hint="Brief 2-sentence summary",
            max_tokens=1000,
        )

    @classmethod
    def deep(cls) -> "DepthProfile":
        return cls(
            name="deep",
            max_queries=3,
            max_sources_per_query=4,
            total_sources=5,
            content_slice=2000,
            min_words=800,
            max_words=1200,
            sections=DEEP_SECTIONS,
            findings_count=4,
            recommendations_count=3,
            gaps_count=2,
            summary_hint="Comprehensive 3-4 sentence summary",
            max_tokens=2500,
        )

    @classmethod
    def comprehensive(cls) -> "DepthProfile":
        return cls(
            name="comprehensive",
            max_queries=3,
            max_sources_per_query=5,
            total_sources=8,
            content_slice=3000,
            min_words=1500,
            max_words=2500,
            sections=COMPREHENSIVE_SECTIONS,
            findings_count=5,
            recommendations_count=3,
            gaps_count=3,
            summary_hint="Thorough 4-5 sentence summary with context",
            max_tokens=4500,
        )

    @classmethod
    def from_name(cls, name: str) -> "DepthProfile":
        """Get a profile by depth name."""
        profiles = {
            "quick": cls.quick,
            "deep": cls.deep,
            "comprehensive": cls.comprehensive,
        }
        if name not in profiles:
            raise ValueError(
                f"Unknown depth: {name}. Valid depths: {list(profiles.keys())}"
            )
        return profiles[name]()


DEPTH_NAMES = ("quick", "deep", "comprehensive")


@dataclass(frozen=True)
class ReportLayout:
    """Length and section requirements for a drafted report."""
    name: str
    min_words: int
    max_words: int
    sections: tuple[str, ...]
    tone: str

    @classmethod
    def from_profile(cls, profile: DepthProfile) -> "ReportLayout":
        return cls(
            name=profile.name,
            min_words=profile.min_words,
            max_words=profile.max_words,
            sections=profile.sections,
            tone="clear, evidence-based and professional",
        )


REPORT_FORMATS: dict[str, ReportLayout] = {
    "executive": ReportLayout(
        name="executive",
        min_words=300,
        max_words=500,
        sections=QUICK_SECTIONS,
        tone="concise executive-summary style for decision makers",
    ),
    "detailed": ReportLayout(
        name="detailed",
        min_words=500,
        max_words=1000,
        sections=("Summary", "Key Findings", "Analysis", "Recommendations"),
        tone="comprehensive analytical style",
    ),
    "academic": ReportLayout(
        name="academic",
        min_words=800,
        max_words=1200,
        sections=(
            "Abstract",
            "Introduction",
            "Findings",
            "Discussion",
            "Recommendations",
            "Conclusion",
        ),
        tone="formal academic paper style",
    ),
}


def resolve_layout(profile: DepthProfile, report_format: str | None = None) -> ReportLayout:
    """Pick the report layout: an explicit format wins over the depth profile."""
    if report_format is None:
        return ReportLayout.from_profile(profile)
    if report_format not in REPORT_FORMATS:
        raise ValueError(
            f"Unknown report format: {report_format}. "
            f"Valid formats: {list(REPORT_FORMATS.keys())}"
        )
    return REPORT_FORMATS[report_format]
