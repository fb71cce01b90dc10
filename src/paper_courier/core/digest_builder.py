"""Plain-text digest rendering."""

from datetime import datetime
from typing import Sequence

from paper_courier.core.entities import DigestMessage, Item
from paper_courier.core.keywords import KeywordSet

NO_MATCHES_BODY = "No matches this period."


class DigestBuilder:
    """Turn fetched items into the digest mailed to the recipient.

    Rendering is deterministic: the same items, keywords and period
    always produce byte-identical subject and body, so a retried send
    never delivers a different digest.
    """

    def __init__(self, recipient: str, title: str = "Paper digest") -> None:
        self.recipient = recipient
        self.title = title

    def select(self, items: Sequence[Item], keywords: KeywordSet) -> list[Item]:
        """Drop unmatched items and duplicates, keeping first-seen order."""
        selected: list[Item] = []
        seen_ids: set[str] = set()

        for item in items:
            if not item.matched_keywords:
                continue
            if not any(keywords.matches(keyword) for keyword in item.matched_keywords):
                continue
            if item.identifier in seen_ids:
                continue
            seen_ids.add(item.identifier)
            selected.append(item)

        return selected

    def render(
        self,
        items: Sequence[Item],
        keywords: KeywordSet,
        period_key: str,
        built_at: datetime,
    ) -> DigestMessage:
        """Render the digest message for one period."""
        selected = self.select(items, keywords)

        if not selected:
            return DigestMessage(
                recipient=self.recipient,
                subject=f"{self.title} {period_key}: no matches",
                body=NO_MATCHES_BODY,
                built_at=built_at,
                period_key=period_key,
            )

        noun = "item" if len(selected) == 1 else "items"
        lines = [
            f"{self.title} for {period_key}",
            f"Keywords: {keywords.describe()}",
            "",
        ]
        for position, item in enumerate(selected, 1):
            lines.append(self._format_entry(position, item))

        return DigestMessage(
            recipient=self.recipient,
            subject=f"{self.title} {period_key}: {len(selected)} {noun}",
            body="\n".join(lines) + "\n",
            built_at=built_at,
            period_key=period_key,
        )

    def _format_entry(self, position: int, item: Item) -> str:
        title = " ".join(item.title.split())
        if item.journal:
            title = f"{title} ({item.journal})"
        if item.link:
            return f"{position}. {title} - {item.link}"
        return f"{position}. {title}"
