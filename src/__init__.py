"""Human-in-the-loop annotation platform core.

Reviewers vote on machine-generated source/target pairs to build
gold-standard validation datasets; this package selects which pair each
reviewer sees next and computes agreement analytics over the vote ledger.
"""

__version__ = "0.1.0"
