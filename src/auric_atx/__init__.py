"""Auric ATX: behavioural reliability scoring and epoch detection.

Scores a trading account's behaviour over a window (the ATX score and its
five subscores), watches the daily stream of scores for behavioural
regime shifts (epochs), classifies how much history exists (maturity),
and assembles trend series and digests for the dashboard client.
"""

__version__ = "0.1.0"
