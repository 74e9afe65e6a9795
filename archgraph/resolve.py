"""Resolve user queries (ids, names, file paths) to components."""

from archgraph.types import Component

EXACT_MATCH_BONUS = 1000.0
CONTAINMENT_BONUS = 3.0
LENGTH_PENALTY = 0.5


def normalize_path(path: str) -> str:
    """Forward slashes, no leading ``./``, lowercase."""
    return path.replace("\\", "/").removeprefix("./").lower()


def resolve_component(
    query: str, components: list[Component], file_map: dict[str, str] | None = None
) -> Component | None:
    """First match wins:

    1. exact component id
    2. exact name, case-insensitive
    3. file path through ``file_map`` (path -> component id)
    4. name substring, either direction, case-insensitive
    5. path substring, in ``file_map`` and then in source config files
    """
    if not query or not components:
        return None

    by_id = {c.component_id: c for c in components}
    if query in by_id:
        return by_id[query]

    lowered = query.lower()
    for comp in components:
        if comp.name.lower() == lowered:
            return comp

    normalized = normalize_path(query)
    if file_map:
        component_id = file_map.get(query) or file_map.get(normalized)
        if component_id in by_id:
            return by_id[component_id]
        for path, component_id in file_map.items():
            if normalize_path(path) == normalized and component_id in by_id:
                return by_id[component_id]

    for comp in components:
        name = comp.name.lower()
        if lowered in name or (name and name in lowered):
            return comp

    if file_map:
        for path, component_id in file_map.items():
            if normalized in normalize_path(path) and component_id in by_id:
                return by_id[component_id]

    for comp in components:
        for config_file in comp.source.config_files:
            if normalized in normalize_path(config_file):
                return comp

    return None


def _common_prefix(a: str, b: str) -> int:
    count = 0
    for x, y in zip(a, b):
        if x != y:
            break
        count += 1
    return count


def score_candidate(query: str, name: str) -> float:
    q, n = query.lower(), name.lower()
    score = 0.0
    if q == n:
        score += EXACT_MATCH_BONUS
    if q in n or n in q:
        score += CONTAINMENT_BONUS
    score += _common_prefix(q, n)
    score -= abs(len(n) - len(q)) * LENGTH_PENALTY
    return score


def find_candidates(query: str, components: list[Component], max_results: int = 5) -> list[str]:
    """Closest component names for "did you mean" hints, best first."""
    scored = [(score_candidate(query, c.name), c.name) for c in components]
    ranked = sorted((s for s in scored if s[0] > 0), key=lambda s: s[0], reverse=True)
    return [name for _, name in ranked[:max_results]]
