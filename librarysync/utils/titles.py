"""Title cleanup and fuzzy matching helpers shared by the metadata providers."""

import re


def clean_title(title: str) -> str:
    """Clean title for searching - removes trademark symbols."""
    title = re.sub(r'[™®©]', '', title)  # Remove ™, ® and ©
    return re.sub(r'\s+', ' ', title).strip()


def normalize_title(title: str) -> str:
    """Lowercase and strip everything that is not a-z or 0-9.

    Examples:
        "The Witcher® 3: Wild Hunt" -> "thewitcher3wildhunt"
    """
    return re.sub(r'[^a-z0-9]', '', title.lower())


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance between two strings (insert, delete, substitute)."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(
                previous[j] + 1,         # deletion
                current[j - 1] + 1,      # insertion
                previous[j - 1] + cost,  # substitution
            ))
        previous = current
    return previous[-1]


def title_similarity(a: str, b: str) -> float:
    """Similarity in [0, 1] between two titles after normalization.

    Computed as (longer - distance) / longer on the normalized strings.
    Two titles that both normalize to empty are considered identical.
    """
    na, nb = normalize_title(a), normalize_title(b)
    longer = max(len(na), len(nb))
    if longer == 0:
        return 1.0
    return (longer - levenshtein_distance(na, nb)) / longer
