"""Configuration management with Pydantic models."""

from pathlib import Path

from pydantic import BaseModel, Field, model_validator

MAX_CHAPTER_LIMIT = 200

DEFAULT_USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:132.0) Gecko/20100101 Firefox/132.0",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1",
]


class DiscoveryConfig(BaseModel):
    """Configuration for chapter discovery."""

    max_chapters: int = Field(default=25, ge=1, le=MAX_CHAPTER_LIMIT)
    min_chapters: int = Field(default=5, ge=1)
    reported_total: int | None = Field(default=None, ge=1)
    container_selectors: list[str] = Field(
        default_factory=lambda: [
            ".chapter-list",
            "#chapterlist",
            "#chapters",
            ".chapter-list-all",
            "ul.list-chapter",
            ".list-chapter",
            ".ul-list5",
            ".ul-list",
            ".m-newest2",
            "div.m-chapter-list",
            ".novel-detail-chapters",
            "div.novel-chapters",
            ".content-list",
            ".chapters",
            "#accordion .card-body",
        ]
    )
    sub_listing_paths: list[str] = Field(
        default_factory=lambda: [
            "/novel/{slug}/",
            "/novel-chapters/{slug}.html",
            "/chapters/{slug}.html",
            "/novel/{slug}/all-chapters.html",
        ]
    )
    listing_cache_ttl_seconds: float = Field(default=3600.0, ge=0.0)


class FetcherConfig(BaseModel):
    """Configuration for page fetching."""

    use_js: bool = True
    timeout_ms: int = Field(default=20000, ge=1000, le=120000)
    max_redirects: int = Field(default=5, ge=0, le=20)
    user_agents: list[str] = Field(default_factory=lambda: list(DEFAULT_USER_AGENTS))
    render_timeout_ms: int = Field(default=60000, ge=1000, le=180000)
    render_settle_ms: int = Field(default=8000, ge=0, le=30000)
    page_pool_size: int = Field(default=3, ge=1, le=20)
    min_body_length: int = Field(default=5000, ge=0)
    block_signatures: list[str] = Field(
        default_factory=lambda: [
            "Just a moment...",
            "Checking your browser",
            "cf-browser-verification",
            "cf-chl-",
            "Attention Required! | Cloudflare",
            "DDoS protection by",
            "Enable JavaScript and cookies to continue",
        ]
    )


class ExtractorConfig(BaseModel):
    """Configuration for content extraction."""

    strategies: list[str] = Field(
        default_factory=lambda: [
            "selector",
            "paragraph-density",
            "readability",
            "trafilatura",
            "brute-force",
        ]
    )
    content_selectors: list[str] = Field(
        default_factory=lambda: [
            "#chapter-content",
            "#chr-content",
            ".chapter-content",
            ".chapter-text",
            ".chapter-body",
            ".chr-c",
            ".cha-words",
            ".reading-content",
            ".entry-content",
            ".post-content",
            ".novel-content",
            ".text-content",
            "div.text",
            "article",
            "main",
        ]
    )
    remove_selectors: list[str] = Field(
        default_factory=lambda: [
            "script",
            "style",
            "noscript",
            "iframe",
            "form",
            "button",
            "header",
            "footer",
            "nav",
            "aside",
            ".ad",
            ".ads",
            ".advertisement",
            ".comment",
            ".comments",
            ".navigation",
            ".sidebar",
            '[role="navigation"]',
            '[class*="adsbygoogle"]',
        ]
    )
    # Matched against whole paragraphs; each pattern describes a prompt's shape
    boilerplate_patterns: list[str] = Field(
        default_factory=lambda: [
            r"^\W*use\s+arrow\s+keys\b",
            r"^\W*(?:previous|prev|next)\s+chapter\W*$",
            r"^\W*previous\s+chapter\b.{0,60}\bnext\s+chapter\W*$",
            r"^\W*advertisements?\W*$",
            r"^\W*report\s+(?:an\s+)?error\b",
            r"^\W*(?:please\s+)?(?:donate|subscribe|support\s+us)\b",
            r"^\W*(?:please\s+)?bookmark\s+(?:this|us|our)\b",
            r"^\W*(?:become\s+a\s+)?(?:vip|premium)\s+(?:members?|chapters?|access)\b",
            r"^\W*tip\s+(?:the\s+)?(?:author|translator)\b",
        ]
    )
    unavailable_sentinels: list[str] = Field(
        default_factory=lambda: [
            "[Content unavailable",
            "No readable content",
            "content extraction failed",
        ]
    )
    min_content_length: int = Field(default=200, ge=0)
    min_paragraph_length: int = Field(default=20, ge=0)
    min_selector_text: int = Field(default=300, ge=0)
    min_density_text: int = Field(default=500, ge=0)
    min_brute_force_line: int = Field(default=30, ge=0)
    min_brute_force_lines: int = Field(default=5, ge=1)


class RetryConfig(BaseModel):
    """Configuration for the two retry passes."""

    pass1_budget: int = Field(default=3, ge=1, le=20)
    pass2_budget: int = Field(default=10, ge=0, le=50)
    sanity_ceiling: int = Field(default=50, ge=0)
    base_delay: float = Field(default=1.0, ge=0.0, le=30.0)
    max_delay: float = Field(default=10.0, ge=0.0, le=120.0)
    jitter: float = Field(default=2.0, ge=0.0, le=30.0)
    second_pass_delay_min: float = Field(default=2.0, ge=0.0)
    second_pass_delay_max: float = Field(default=5.0, ge=0.0)

    @model_validator(mode="after")
    def _check_delay_range(self) -> "RetryConfig":
        if self.second_pass_delay_max < self.second_pass_delay_min:
            raise ValueError("second_pass_delay_max must be >= second_pass_delay_min")
        return self


class RateLimitConfig(BaseModel):
    """Configuration for batching and rate limiting."""

    batch_size: int = Field(default=8, ge=1, le=32)
    max_concurrent: int = Field(default=5, ge=1, le=32)
    delay_seconds: float = Field(default=0.05, ge=0.0, le=60.0)
    batch_pause_seconds: float = Field(default=1.0, ge=0.0, le=60.0)


class ProgressConfig(BaseModel):
    """Configuration for progress reporting."""

    interval_seconds: float = Field(default=2.0, ge=0.0, le=60.0)
    bar_width: int = Field(default=15, ge=1, le=100)


class OutputConfig(BaseModel):
    """Configuration for output."""

    path: Path = Path("./output/novel.md")
    include_toc: bool = True
    write_failed_list: bool = True


class AppConfig(BaseModel):
    """Main application configuration."""

    listing_url: str = ""
    title: str | None = None
    author: str | None = None
    cover_url: str | None = None
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    fetcher: FetcherConfig = Field(default_factory=FetcherConfig)
    extractor: ExtractorConfig = Field(default_factory=ExtractorConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    progress: ProgressConfig = Field(default_factory=ProgressConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    verbose: bool = False

    @classmethod
    def from_toml(cls, path: Path, **overrides: object) -> "AppConfig":
        """Load config from a TOML file, with top-level overrides applied."""
        try:
            import tomllib  # type: ignore[import-not-found]
        except ModuleNotFoundError:
            import tomli as tomllib  # type: ignore[import-not-found]
        with open(path, "rb") as f:
            data = tomllib.load(f)
        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(data)

    def to_toml(self, include_defaults: bool = False) -> str:
        """Serialize config to TOML format."""
        data = self.model_dump(mode="json", exclude_defaults=not include_defaults)
        return _dict_to_toml(data)


def _toml_value(v: object) -> str:
    """Format a Python value as a TOML literal."""
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, int):
        return str(v)
    if isinstance(v, float):
        return f"{v}"
    if isinstance(v, str):
        escaped = v.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    if isinstance(v, list):
        items = ", ".join(_toml_value(i) for i in v)
        return f"[{items}]"
    return f'"{v}"'


def _dict_to_toml(data: dict, prefix: str = "") -> str:
    """Convert a nested dict to TOML string (2 levels deep max)."""
    lines: list[str] = []
    for k, v in data.items():
        if v is not None and not isinstance(v, dict):
            lines.append(f"{k} = {_toml_value(v)}")
    for k, v in data.items():
        if isinstance(v, dict):
            section = f"{prefix}{k}" if not prefix else f"{prefix}.{k}"
            lines.append(f"\n[{section}]")
            for sk, sv in v.items():
                if sv is None:
                    continue
                lines.append(f"{sk} = {_toml_value(sv)}")
    return "\n".join(lines) + "\n"
