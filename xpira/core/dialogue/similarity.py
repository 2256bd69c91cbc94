"""String similarity for the free-tier evaluator.

Pure functions, no configuration.
"""


def normalize(text: str) -> str:
    return text.lower().strip()


def levenshtein_distance(a: str, b: str) -> int:
    """Classic DP edit distance with unit insert/delete/substitute costs."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            if char_a == char_b:
                current.append(previous[j - 1])
            else:
                current.append(
                    min(
                        previous[j - 1] + 1,  # substitute
                        current[j - 1] + 1,  # insert
                        previous[j] + 1,  # delete
                    )
                )
        previous = current
    return previous[-1]


def calculate_similarity(a: str, b: str) -> float:
    """Similarity of two already-normalized strings, in [0, 1].

    1. identical -> 1.0
    2. either empty -> 0.0
    3. one contains the other -> len(shorter) / len(longer)
    4. otherwise -> 1 - distance / max(len)
    """
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0

    if a in b or b in a:
        shorter, longer = sorted((a, b), key=len)
        return len(shorter) / len(longer)

    distance = levenshtein_distance(a, b)
    return 1.0 - distance / max(len(a), len(b))
