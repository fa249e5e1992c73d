# sourcing/filters/query_optimizer.py

"""Pre-search query optimisation: drop filler words, keep key terms."""

import logging

from sourcing.config.settings import Settings

logger = logging.getLogger("sourcing.filters")


class QueryOptimizer:
    """Reduce conversational queries to a few searchable key terms."""

    @staticmethod
    def optimize(query: str) -> str:
        """Strip filler words and keep at most ``QUERY_MAX_TERMS`` terms.

        Single-character words are dropped too.  If nothing survives,
        the original query is returned unchanged.
        """
        words = [
            w for w in query.lower().split()
            if len(w) > 1 and w not in Settings.QUERY_FILLER_WORDS
        ][: Settings.QUERY_MAX_TERMS]
        if not words:
            return query
        optimized = " ".join(words)
        if optimized != query:
            logger.debug("Optimised query '%s' -> '%s'", query, optimized)
        return optimized
