import math
from collections import Counter, defaultdict


def shannon_entropy(values):
    entropy = 0.0
    for v in values:
        if v > 0:
            entropy -= v * math.log2(v)
    return entropy


def codon_entropy(dna, protein):
    """
    Mean Shannon entropy (bits) of codon choice per amino acid, weighted by
    residue count. 0 means every residue always uses the same codon.
    """
    usage = defaultdict(Counter)
    for i, aa in enumerate(protein):
        usage[aa][dna[i * 3:i * 3 + 3]] += 1

    total = 0.0
    for aa, counts in usage.items():
        n = sum(counts.values())
        total += n * shannon_entropy(c / n for c in counts.values())
    return total / len(protein) if protein else 0.0
