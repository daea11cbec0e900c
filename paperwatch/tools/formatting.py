import re
from typing import List, Optional
from telegram.helpers import escape_markdown
from paperwatch.arxiv_config import get_category_description
from paperwatch.models.items import Paper

_ABS_LINK = re.compile(r"arxiv\.org/abs/(\S+)")
_VERSION_SUFFIX = re.compile(r"v\d+$")
_ARXIV_ID_PATTERNS = (
    re.compile(r"^\d{4}\.\d{4,5}(v\d+)?$"),  # 2301.00001, 2301.00001v2
    re.compile(r"^[a-z-]+(\.[A-Z]{2})?/\d{7}(v\d+)?$"),  # hep-th/9901001
)
MAX_QUERY_LENGTH = 200

def extract_arxiv_id(link: str) -> str:
    """http://arxiv.org/abs/2301.00001v1 -> 2301.00001. Non-arXiv links are returned as is."""
    match = _ABS_LINK.search(link)
    if not match:
        return link
    return _VERSION_SUFFIX.sub("", match.group(1))

def is_valid_arxiv_id(arxiv_id: str) -> bool:
    return any(p.match(arxiv_id) for p in _ARXIV_ID_PATTERNS)

def format_summary(text: str, max_length: int = 200) -> str:
    cleaned = " ".join(text.split())
    if len(cleaned) <= max_length:
        return cleaned
    return cleaned[:max_length] + "..."

def sanitize_search_query(query: str) -> str:
    cleaned = re.sub(r"[<>'\"]", "", query.strip())
    cleaned = re.sub(r"\s+", " ", cleaned)
    return cleaned[:MAX_QUERY_LENGTH]

def _md(text: str) -> str:
    return escape_markdown(text, version=2)

def format_paper_for_notification(paper: Paper, index: int) -> str:
    authors = ", ".join(paper.authors[:3]) or "Unknown"
    more = f" +{len(paper.authors) - 3} more" if len(paper.authors) > 3 else ""
    link = escape_markdown(paper.link, version=2, entity_type="text_link")
    return (
        f"*{index}\\. {_md(paper.title)}*\n"
        f"👤 {_md(authors + more)}\n"
        f"📅 {_md(paper.published)}\n"
        f"📝 {_md(format_summary(paper.summary, 150))}\n"
        f"🔗 [arXiv:{_md(paper.id)}]({link})"
    )

def format_subscription_message(
    topic: str, papers: List[Paper], total_new: int, category: Optional[str] = None
) -> str:
    header = f"📬 *New papers for: {_md(topic)}*"
    if category:
        header += f"\n🏷 {_md(get_category_description(category))}"
    lines = [header, ""]
    lines.append("\n\n".join(format_paper_for_notification(p, i) for i, p in enumerate(papers, 1)))
    if total_new > len(papers):
        lines.append("")
        lines.append(f"_Showing {len(papers)} of {total_new} new papers_")
    return "\n".join(lines)
