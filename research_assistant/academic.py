"""Academic metadata providers (arXiv, Crossref, Semantic Scholar, PubMed, Wikipedia).

Each provider returns normalized records: title, url, content (abstract or
extract), source_type, and optionally doi. AcademicSearchProvider queries
them concurrently and merges whatever succeeds round-robin, capped at the
requested limit; one provider failing never blocks the others. Merged records
are marked prefetched so the collector uses their text without loading pages.
"""

import asyncio
import logging
import re
import xml.etree.ElementTree as ET
from collections.abc import Awaitable, Callable

import httpx

from .normalize import clean_text

logger = logging.getLogger(__name__)

USER_AGENT = "research-assistant/1.0 (academic metadata lookup)"

# Timeout for metadata API calls (seconds)
ACADEMIC_TIMEOUT = 15.0

_ATOM_NS = {"atom": "http://www.w3.org/2005/Atom"}
_WHITESPACE_RE = re.compile(r"\s+")

Record = dict[str, object]
ProviderFn = Callable[[httpx.AsyncClient, str, int], Awaitable[list[Record]]]


def _squash(text: str | None) -> str:
    return _WHITESPACE_RE.sub(" ", text or "").strip()


def parse_arxiv_feed(xml_text: str) -> list[Record]:
    """Parse an arXiv Atom feed into normalized records."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        logger.warning("arXiv feed could not be parsed: %s", e)
        return []

    records = []
    for entry in root.findall("atom:entry", _ATOM_NS):
        title = _squash(entry.findtext("atom:title", default="", namespaces=_ATOM_NS))
        summary = _squash(entry.findtext("atom:summary", default="", namespaces=_ATOM_NS))
        url = _squash(entry.findtext("atom:id", default="", namespaces=_ATOM_NS))
        pdf_url = None
        for link in entry.findall("atom:link", _ATOM_NS):
            if link.get("title") == "pdf" or link.get("type") == "application/pdf":
                pdf_url = link.get("href")
                break
        records.append({
            "title": title or "Untitled",
            "url": url,
            "content": summary,
            "source_type": "arxiv",
            "pdf_url": pdf_url,
        })
    return records


async def search_arxiv(client: httpx.AsyncClient, query: str, limit: int) -> list[Record]:
    response = await client.get(
        "https://export.arxiv.org/api/query",
        params={"search_query": f"all:{query}", "start": 0, "max_results": limit},
    )
    response.raise_for_status()
    return parse_arxiv_feed(response.text)[:limit]


def parse_crossref_items(data: dict) -> list[Record]:
    """Normalize a Crossref /works response body."""
    items = (data.get("message") or {}).get("items") or []
    records = []
    for item in items:
        doi = item.get("DOI")
        title = item.get("title")
        if isinstance(title, list):
            title = title[0] if title else None
        records.append({
            "title": title or "Untitled",
            "url": f"https://doi.org/{doi}" if doi else item.get("URL", ""),
            "content": clean_text(str(item.get("abstract") or "")),
            "source_type": "crossref",
            "doi": doi,
        })
    return records


async def search_crossref(client: httpx.AsyncClient, query: str, limit: int) -> list[Record]:
    response = await client.get(
        "https://api.crossref.org/works",
        params={"query": query, "rows": limit},
    )
    response.raise_for_status()
    return parse_crossref_items(response.json())[:limit]


def parse_semantic_scholar_papers(data: dict) -> list[Record]:
    """Normalize a Semantic Scholar paper search response body."""
    records = []
    for paper in data.get("data") or []:
        doi = (paper.get("externalIds") or {}).get("DOI")
        url = paper.get("url") or (f"https://doi.org/{doi}" if doi else "")
        records.append({
            "title": paper.get("title") or "Untitled",
            "url": url,
            "content": str(paper.get("abstract") or ""),
            "source_type": "semantic_scholar",
            "doi": doi,
        })
    return records


async def search_semantic_scholar(
    client: httpx.AsyncClient, query: str, limit: int,
) -> list[Record]:
    response = await client.get(
        "https://api.semanticscholar.org/graph/v1/paper/search",
        params={
            "query": query,
            "limit": limit,
            "fields": "title,abstract,year,authors,url,citationCount,externalIds",
        },
    )
    response.raise_for_status()
    return parse_semantic_scholar_papers(response.json())[:limit]


def parse_pubmed_abstract(xml_text: str) -> str:
    """Join the AbstractText sections of a PubMed efetch XML document."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError:
        return ""
    parts = ["".join(node.itertext()) for node in root.iter("AbstractText")]
    return _squash(" ".join(parts))


async def search_pubmed(client: httpx.AsyncClient, query: str, limit: int) -> list[Record]:
    eutils = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils"
    ids_response = await client.get(
        f"{eutils}/esearch.fcgi",
        params={"db": "pubmed", "retmode": "json", "retmax": limit, "term": query},
    )
    ids_response.raise_for_status()
    ids = (ids_response.json().get("esearchresult") or {}).get("idlist") or []
    if not ids:
        return []

    summary_response = await client.get(
        f"{eutils}/esummary.fcgi",
        params={"db": "pubmed", "retmode": "json", "id": ",".join(ids)},
    )
    summary_response.raise_for_status()
    summaries = summary_response.json().get("result") or {}

    records = []
    for pmid in ids:
        item = summaries.get(pmid)
        if not item:
            continue
        abstract = ""
        try:
            fetch_response = await client.get(
                f"{eutils}/efetch.fcgi",
                params={"db": "pubmed", "retmode": "xml", "id": pmid},
            )
            fetch_response.raise_for_status()
            abstract = parse_pubmed_abstract(fetch_response.text)
        except httpx.HTTPError as e:
            logger.debug("PubMed abstract fetch failed for %s: %s", pmid, e)
        doi = None
        for article_id in item.get("articleids") or []:
            if article_id.get("idtype") == "doi":
                doi = article_id.get("value")
        records.append({
            "title": item.get("title") or "Untitled",
            "url": f"https://pubmed.ncbi.nlm.nih.gov/{pmid}/",
            "content": abstract,
            "source_type": "pubmed",
            "doi": doi,
        })
    return records


async def search_wikipedia(client: httpx.AsyncClient, query: str, limit: int) -> list[Record]:
    api = "https://en.wikipedia.org/w/api.php"
    response = await client.get(api, params={
        "action": "query", "list": "search", "srsearch": query,
        "format": "json", "srlimit": limit,
    })
    response.raise_for_status()
    hits = (response.json().get("query") or {}).get("search") or []

    records = []
    for hit in hits[:limit]:
        page_response = await client.get(api, params={
            "action": "query", "prop": "extracts|info", "inprop": "url",
            "explaintext": 1, "format": "json", "titles": hit.get("title", ""),
        })
        page_response.raise_for_status()
        pages = (page_response.json().get("query") or {}).get("pages") or {}
        page = next(iter(pages.values()), None)
        if not page:
            continue
        records.append({
            "title": page.get("title", ""),
            "url": page.get("fullurl"),
            "content": str(page.get("extract") or ""),
            "source_type": "wikipedia",
        })
    return records


PROVIDERS: dict[str, ProviderFn] = {
    "arxiv": search_arxiv,
    "crossref": search_crossref,
    "semantic_scholar": search_semantic_scholar,
    "pubmed": search_pubmed,
    "wikipedia": search_wikipedia,
}


async def resolve_open_access_pdf(
    client: httpx.AsyncClient, doi: str, contact_email: str,
) -> str | None:
    """Look up a direct open-access link for a DOI via Unpaywall.

    Returns None on any failure; never raises for lookup problems.
    """
    try:
        response = await client.get(
            f"https://api.unpaywall.org/v2/{doi}",
            params={"email": contact_email},
        )
        if response.status_code != 200:
            return None
        location = response.json().get("best_oa_location") or {}
        return location.get("url_for_pdf") or location.get("url") or None
    except (httpx.HTTPError, ValueError) as e:
        logger.debug("Unpaywall lookup failed for %s: %s", doi, e)
        return None


def interleave_records(batches: list[list[Record]], limit: int) -> list[Record]:
    """Merge per-provider batches round-robin, keeping at most limit records."""
    merged: list[Record] = []
    for position in range(max((len(b) for b in batches), default=0)):
        for batch in batches:
            if position < len(batch):
                merged.append(batch[position])
    return merged[:limit]


class AcademicSearchProvider:
    """Fan-out over academic metadata APIs with independent failure isolation.

    Args:
        sources: Provider names from PROVIDERS to query.
        unpaywall_email: Contact email for Unpaywall; when set, records with
            a DOI and no direct PDF link get one resolved.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (e.g. httpx.MockTransport in tests).
    """

    name = "academic"

    def __init__(
        self,
        sources: tuple[str, ...] = tuple(PROVIDERS),
        unpaywall_email: str | None = None,
        timeout: float = ACADEMIC_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        unknown = [s for s in sources if s not in PROVIDERS]
        if unknown:
            raise ValueError(f"Unknown academic sources: {unknown}. Valid: {list(PROVIDERS)}")
        self.sources = sources
        self.unpaywall_email = unpaywall_email
        self.timeout = timeout
        self.transport = transport

    async def search(self, query: str, limit: int) -> list[Record]:
        async with httpx.AsyncClient(
            timeout=self.timeout,
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
            transport=self.transport,
        ) as client:
            outcomes = await asyncio.gather(
                *[PROVIDERS[name](client, query, limit) for name in self.sources],
                return_exceptions=True,
            )

            batches: list[list[Record]] = []
            for name, outcome in zip(self.sources, outcomes):
                if isinstance(outcome, BaseException):
                    logger.warning("Academic provider %s failed: %s", name, outcome)
                    continue
                logger.info("Academic provider %s returned %d records", name, len(outcome))
                batches.append(outcome)

            merged = interleave_records(batches, limit)
            for record in merged:
                record["prefetched"] = True

            if self.unpaywall_email:
                for record in merged:
                    doi = record.get("doi")
                    if doi and not record.get("pdf_url"):
                        record["pdf_url"] = await resolve_open_access_pdf(
                            client, str(doi), self.unpaywall_email,
                        )
        return merged
