from datetime import datetime, timezone
from typing import List, NamedTuple, Optional
from xml.sax.saxutils import escape


class SitemapEntry(NamedTuple):
    path: str
    priority: str
    changefreq: str
    lastmod: Optional[str] = None


class BlogPost(NamedTuple):
    slug: str
    title: str
    date: str
    featured: bool


STATIC_PAGES = [
    SitemapEntry("", "1.0", "daily"),
    # Core features
    SitemapEntry("/upload", "0.9", "weekly"),
    SitemapEntry("/live-transcription", "0.9", "weekly"),
    SitemapEntry("/video-captions", "0.8", "weekly"),
    SitemapEntry("/features", "0.8", "monthly"),
    SitemapEntry("/pricing", "0.8", "monthly"),
    SitemapEntry("/blog", "0.8", "weekly"),
    SitemapEntry("/transcribe-audio", "0.9", "monthly"),
    # User features
    SitemapEntry("/audio-chat", "0.7", "weekly"),
    SitemapEntry("/dashboard", "0.7", "weekly"),
    SitemapEntry("/pdf-dialogue", "0.6", "monthly"),
    # Support
    SitemapEntry("/integrations", "0.6", "monthly"),
    SitemapEntry("/help", "0.6", "monthly"),
    SitemapEntry("/contact", "0.5", "monthly"),
    # Account
    SitemapEntry("/ai-settings", "0.5", "monthly"),
    SitemapEntry("/profile", "0.4", "monthly"),
    SitemapEntry("/storage", "0.4", "monthly"),
    # Legal
    SitemapEntry("/privacy", "0.3", "yearly"),
    SitemapEntry("/terms", "0.3", "yearly"),
    SitemapEntry("/cookies", "0.3", "yearly"),
    # Authentication
    SitemapEntry("/login", "0.2", "monthly"),
    SitemapEntry("/signup", "0.2", "monthly"),
]

BLOG_POSTS = [
    BlogPost("how-to-transcribe-audio-files", "How to Transcribe Audio Files: Complete Guide for 2025", "2025-09-13", True),
    BlogPost("best-transcription-software", "Best Free Transcription Software in 2025: AI vs Human Comparison", "2025-09-12", True),
    BlogPost("transcription-vs-translation", "Transcription vs Translation: Key Differences and When to Use Each", "2025-09-11", False),
]


def sitemap_entries(posts: List[BlogPost] = None) -> List[SitemapEntry]:
    posts = BLOG_POSTS if posts is None else posts
    blog = [
        SitemapEntry(f"/blog/{post.slug}", "0.8" if post.featured else "0.7", "monthly", post.date)
        for post in posts
    ]
    return STATIC_PAGES + blog


def render_sitemap(base_url: str, now: Optional[datetime] = None, posts: List[BlogPost] = None) -> str:
    current = (now or datetime.now(timezone.utc)).isoformat()
    urls = []
    for entry in sitemap_entries(posts):
        urls.append(
            "  <url>\n"
            f"    <loc>{escape(base_url + entry.path)}</loc>\n"
            f"    <lastmod>{escape(entry.lastmod or current)}</lastmod>\n"
            f"    <changefreq>{entry.changefreq}</changefreq>\n"
            f"    <priority>{entry.priority}</priority>\n"
            "  </url>"
        )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">\n'
        + "\n".join(urls)
        + "\n</urlset>\n"
    )
