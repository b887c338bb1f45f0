"""Versioned moderation lexicon: the policy table behind the classifier.

The lexicon is a data asset, not code: tiered word lists, bullying patterns,
context exceptions and simplification rules live in YAML and are validated
before any traffic is served.
"""

LEXICON_FORMAT_VERSION = "1"
