"""
Synthetic query service for RAG chunk analysis.

Given the chunks a retriever returned, this service identifies the topics they
cover and generates natural-language queries that plausibly could have
retrieved them. Everything here is deterministic string work: heading
extraction, keyword membership, template filling and slicing.
"""
import math
import re
from typing import Dict, Any, Iterable, List, Mapping, Optional, Sequence

from fabrik_mcp.config import Settings, DEFAULT_QUERY_TRIGGERS, DEFAULT_TOPIC_KEYWORDS
from fabrik_mcp.models import (
    ChunkAnalysis, PageRange, RagChunk, SourceAnalysis, SyntheticQueries, utc_timestamp
)

HEADING_PATTERN = re.compile(r"#\s*([^#\n]+)")


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


class SyntheticQueryService:
    """
    Service for topic extraction and synthetic query generation.

    The keyword vocabulary and the specific-query trigger table are injected so
    deployments outside mortgage lending can supply their own.
    """

    def __init__(
        self,
        topic_keywords: Optional[Iterable[str]] = None,
        query_triggers: Optional[Mapping[str, str]] = None,
        default_topic: str = "lending",
        max_topics: int = 10,
        max_broad: int = 4,
        max_specific: int = 6,
        max_question_based: int = 5
    ):
        """
        Initialize the service.

        Args:
            topic_keywords: Vocabulary tested against each lower-cased preview
            query_triggers: Literal preview substring -> specific query it produces
            default_topic: Substituted in templates when too few topics were found
            max_topics: Cap on the number of topics returned
            max_broad: Cap on the broad query bucket
            max_specific: Cap on the specific query bucket
            max_question_based: Cap on the question-based bucket
        """
        self.topic_keywords = [k.lower() for k in (topic_keywords if topic_keywords is not None else DEFAULT_TOPIC_KEYWORDS)]
        self.query_triggers = dict(query_triggers if query_triggers is not None else DEFAULT_QUERY_TRIGGERS)
        self.default_topic = default_topic
        self.max_topics = max_topics
        self.max_broad = max_broad
        self.max_specific = max_specific
        self.max_question_based = max_question_based

    @classmethod
    def from_settings(cls, settings: Settings) -> "SyntheticQueryService":
        return cls(
            topic_keywords=settings.topic_keywords,
            query_triggers=settings.specific_query_triggers,
            default_topic=settings.default_topic,
        )

    def extract_topics(self, chunks: Sequence[RagChunk]) -> List[str]:
        """
        Extract topic labels from chunk previews.

        Headings come first for each chunk, then vocabulary keywords, all
        lower-cased. Duplicates are dropped while keeping first-seen order.

        Args:
            chunks: Chunks to analyze

        Returns:
            At most max_topics topic strings
        """
        topics: Dict[str, None] = {}

        for chunk in chunks:
            text = chunk.text_preview.lower()

            for match in HEADING_PATTERN.finditer(text):
                heading = match.group(1).strip()
                if len(heading) > 3:
                    topics.setdefault(heading, None)

            for keyword in self.topic_keywords:
                if keyword in text:
                    topics.setdefault(keyword, None)

        return list(topics)[:self.max_topics]

    def calculate_average_score(self, chunks: Sequence[RagChunk]) -> float:
        """
        Mean relevance score rounded to 3 decimal places.

        The rounded value is clamped to the lowest and highest score, so it
        always lies within the range of the input scores.

        Raises:
            ValueError: If chunks is empty
        """
        if not chunks:
            raise ValueError("Cannot average the scores of an empty chunk list")
        scores = [chunk.score for chunk in chunks]
        average = _round_half_up(sum(scores) / len(scores), 3)
        return min(max(average, min(scores)), max(scores))

    def analyze_sources(self, chunks: Sequence[RagChunk]) -> SourceAnalysis:
        """
        Summarize files, pages and text lengths of the chunks.

        Raises:
            ValueError: If chunks is empty
        """
        if not chunks:
            raise ValueError("Cannot analyze sources of an empty chunk list")

        unique_files = list(dict.fromkeys(chunk.file_name for chunk in chunks))
        pages = [chunk.page_label for chunk in chunks]
        average_length = sum(chunk.text_length for chunk in chunks) / len(chunks)

        return SourceAnalysis(
            unique_files=unique_files,
            page_range=PageRange(min=min(pages), max=max(pages)),
            average_text_length=int(_round_half_up(average_length)),
        )

    def generate_synthetic_queries(
        self,
        chunks: Sequence[RagChunk],
        context: str = "",
        topics: Optional[List[str]] = None
    ) -> SyntheticQueries:
        """
        Generate broad, specific and question-based queries for the chunks.

        Args:
            chunks: Chunks the queries should target
            context: Optional free-text description of the query domain
            topics: Precomputed topics; extracted from chunks when omitted

        Returns:
            SyntheticQueries with each bucket capped to its configured size
        """
        if topics is None:
            topics = self.extract_topics(chunks)

        first = topics[0] if topics else self.default_topic
        second = topics[1] if len(topics) > 1 else first
        third = topics[2] if len(topics) > 2 else first

        broad = [
            f"What are the requirements for {' and '.join(topics[:2]) or self.default_topic}?",
            f"How do {', '.join(topics[:3]) or self.default_topic} work together?",
            f"Guidelines for {first} in mortgage lending",
            f"{topics[0] if topics else 'Eligibility'} eligibility criteria",
        ]
        if context:
            broad.append(f"{context} requirements and guidelines")

        specific: Dict[str, None] = {}
        for chunk in chunks:
            for trigger, query in self.query_triggers.items():
                if trigger in chunk.text_preview:
                    specific.setdefault(query, None)

        question_based = [
            f"What information is needed for {first}?",
            f"How are {second} calculated or determined?",
            f"What are the limits for {third}?",
            f"When do {first} requirements apply?",
            f"Who qualifies for {second} programs?",
        ]

        return SyntheticQueries(
            broad=broad[:self.max_broad],
            specific=list(specific)[:self.max_specific],
            question_based=question_based[:self.max_question_based],
        )

    def analyze(self, chunks: Sequence[RagChunk]) -> ChunkAnalysis:
        return ChunkAnalysis(
            topics_identified=self.extract_topics(chunks),
            average_score=self.calculate_average_score(chunks),
            sources=self.analyze_sources(chunks),
        )

    def process(self, chunks: Sequence[RagChunk], context: str = "") -> Dict[str, Any]:
        """
        Build the full process_rag_chunks result.

        Args:
            chunks: Validated, non-empty chunk list
            context: Optional domain context

        Returns:
            Dictionary with the echoed input and the analysis/query output
        """
        analysis = self.analyze(chunks)
        queries = self.generate_synthetic_queries(chunks, context, topics=analysis.topics_identified)

        return {
            "input": {
                "chunks": [chunk.to_wire() for chunk in chunks],
                "context": context,
                "metadata": {
                    "chunksProcessed": len(chunks),
                    "timestamp": utc_timestamp(),
                },
            },
            "output": {
                "analysis": analysis.to_wire(),
                "syntheticQueries": queries.to_wire(),
            },
        }
