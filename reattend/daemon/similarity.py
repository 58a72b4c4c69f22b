"""Change detection between consecutive screen captures."""


def word_set(text: str) -> frozenset:
    return frozenset(text.split())


def text_similarity(a: str, b: str) -> float:
    """
    Jaccard similarity of the unique whitespace-separated words of a and b.

    Case-sensitive, no stemming. Two empty texts are identical (1.0).
    """
    words_a = word_set(a)
    words_b = word_set(b)
    union = words_a | words_b
    if not union:
        return 1.0
    return len(words_a & words_b) / len(union)


def is_material_change(
    previous: str,
    current: str,
    app_switched: bool = False,
    threshold: float = 0.75
) -> bool:
    """False when current is near-identical to previous and the app did not change."""
    if app_switched:
        return True
    return text_similarity(previous, current) <= threshold
