def count_hits(seq, exclusions):
    """Occurrences of every exclusion pattern in seq, overlapping ones included."""
    return len(exclusions.find_all(seq)) if exclusions else 0
