"""Emote renderer - resolves message text into render spans."""

from ..models import ChatBadge, ChatEmote, MessageSpan, SpanKind
from .resolver import AssetTable


def learn_twitch_emotes(
    text: str,
    positions: list[tuple[int, int, ChatEmote]],
    assets: AssetTable,
) -> None:
    """Fill emote names from the message text and record them in the asset table.

    Twitch only sends emote ids and character ranges, so the word for each id
    is learned from the first message that uses it. Known words are never
    overwritten.
    """
    for start, end, emote in positions:
        if 0 <= start < end <= len(text):
            emote.name = text[start:end]
            assets.learn(emote.name, emote.url)


def build_badge_spans(badges: list[ChatBadge], assets: AssetTable) -> list[MessageSpan]:
    """Badge spans for badges that have an image; unknown badges are skipped."""
    spans: list[MessageSpan] = []
    for badge in badges:
        url = badge.image_url or assets.get(badge.id)
        if url:
            badge.image_url = url
            spans.append(MessageSpan(kind=SpanKind.BADGE, text=badge.name, url=url))
    return spans


def resolve_text_spans(
    text: str,
    assets: AssetTable,
    positions: list[tuple[int, int, ChatEmote]] | None = None,
    color: str | None = None,
) -> list[MessageSpan]:
    """Resolve a message's text into text and emote spans.

    Twitch-native emote positions (from IRC tags) are used first, then the
    remaining words are looked up in the asset table.
    """
    spans: list[MessageSpan] = []
    emote_ranges: list[tuple[int, int, str]] = [
        (start, end, emote.url)
        for start, end, emote in positions or []
        if 0 <= start < end <= len(text)
    ]

    for word, start, end in _split_with_positions(text):
        url = assets.get(word)
        if not url:
            continue
        # Check no overlap with existing positions
        if any(start < e and end > s for s, e, _ in emote_ranges):
            continue
        emote_ranges.append((start, end, url))

    emote_ranges.sort(key=lambda x: x[0])

    last_end = 0
    for start, end, url in emote_ranges:
        if start < last_end:
            continue
        # Text before this emote
        if start > last_end:
            spans.append(MessageSpan(kind=SpanKind.TEXT, text=text[last_end:start], color=color))
        spans.append(MessageSpan(kind=SpanKind.EMOTE, text=text[start:end], url=url))
        last_end = end

    # Remaining text
    if last_end < len(text):
        spans.append(MessageSpan(kind=SpanKind.TEXT, text=text[last_end:], color=color))

    return spans


def _split_with_positions(text: str) -> list[tuple[str, int, int]]:
    """Split text into words with their start/end positions."""
    words: list[tuple[str, int, int]] = []
    i = 0
    n = len(text)
    while i < n:
        # Skip whitespace
        while i < n and text[i] == " ":
            i += 1
        if i >= n:
            break
        # Find word end
        start = i
        while i < n and text[i] != " ":
            i += 1
        words.append((text[start:i], start, i))
    return words
