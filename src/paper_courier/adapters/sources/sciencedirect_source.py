"""ScienceDirect search source for journal articles."""

import asyncio
import logging
from urllib.parse import quote, urljoin, urlsplit

import httpx
from bs4 import BeautifulSoup

from paper_courier.core import ContentFetcher, FetchError, Item, KeywordSet

logger = logging.getLogger(__name__)


class ScienceDirectSource(ContentFetcher):
    """Search ScienceDirect once per keyword and merge the result lists."""

    emoji = "📚"
    name = "ScienceDirect"

    BASE_URL = "https://www.sciencedirect.com/"
    SEARCH_PATH = "search?qs="
    ARTICLE_PATH = "/science/article/"

    def __init__(
        self,
        max_items_per_keyword: int = 25,
        request_delay: float = 1.0,
        user_agent: str = "Mozilla/5.0 (X11; Linux x86_64) paper-courier",
    ) -> None:
        self.max_items_per_keyword = max_items_per_keyword
        self.request_delay = request_delay
        self.headers = {
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml",
        }

    def query_from_keyword(self, keyword: str) -> str:
        """Build the search URL; keyword tokens are joined with ``%20``."""
        tokens = [quote(token, safe="") for token in keyword.split()]
        return f"{self.BASE_URL}{self.SEARCH_PATH}{'%20'.join(tokens)}&show={self.max_items_per_keyword}"

    async def fetch(self, keywords: KeywordSet, timeout: float) -> list[Item]:
        """Fetch articles for every keyword, best-ranked first.

        An article found by several keywords is returned once, at its
        first position, carrying all the keywords that found it.
        """
        if not keywords.terms:
            raise FetchError("ScienceDirect search needs at least one concrete keyword")

        found: dict[str, dict] = {}

        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True, headers=self.headers) as client:
            for index, keyword in enumerate(keywords):
                if index and self.request_delay:
                    await asyncio.sleep(self.request_delay)

                url = self.query_from_keyword(keyword)
                try:
                    response = await client.get(url)
                except httpx.HTTPError as e:
                    raise FetchError(f"'{keyword}': request failed: {e}") from e

                if response.status_code != 200:
                    raise FetchError(f"'{keyword}': HTTP {response.status_code}")

                results = self.parse_results(response.text)[: self.max_items_per_keyword]
                logger.info("%s '%s': %d results", self.name, keyword, len(results))

                for result in results:
                    entry = found.setdefault(result["identifier"], {**result, "keywords": []})
                    if keyword not in entry["keywords"]:
                        entry["keywords"].append(keyword)

        return [
            Item(
                identifier=entry["identifier"],
                title=entry["title"],
                link=entry["link"],
                matched_keywords=tuple(entry["keywords"]),
                journal=entry["journal"],
            )
            for entry in found.values()
        ]

    def parse_results(self, html_text: str) -> list[dict]:
        """Parse a search result page into identifier/title/link/journal dicts."""
        soup = BeautifulSoup(html_text, "html.parser")
        result_list = soup.select_one("#srp-results-list")
        if result_list is None:
            return []

        # Nested lists inside a result hold authors and download links.
        entries = result_list.select("li.ResultItem") or result_list.select("ol > li")

        results = []
        for li in entries:
            title_anchor = li.select_one("a.result-list-title-link")
            if title_anchor is None:
                anchors = li.find_all("a", href=True)
                title_anchor = next(
                    (a for a in anchors if self.ARTICLE_PATH in a["href"]), None
                )
            if title_anchor is None or not title_anchor.get("href"):
                continue

            href = title_anchor["href"]
            if self.ARTICLE_PATH not in href or href.rstrip("/").endswith("pdfft"):
                continue

            title = " ".join(title_anchor.get_text(" ", strip=True).split())
            if not title:
                continue

            journal_anchor = li.select_one("a.subtype-srctitle-link")
            if journal_anchor is None:
                others = [a for a in li.find_all("a", href=True) if a is not title_anchor]
                journal_anchor = others[0] if others else None
            journal = journal_anchor.get_text(" ", strip=True) if journal_anchor else ""

            results.append({
                "identifier": urlsplit(href).path,
                "title": title,
                "link": urljoin(self.BASE_URL, href),
                "journal": journal,
            })

        return results
