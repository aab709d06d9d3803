"""Budget-aware chunk planning.

Packs formatted files into sequential chunks with a single greedy pass.
Input order is preserved and the output is deterministic; minimizing the
number of chunks is not attempted.
"""

from collections.abc import Callable, Iterable, Mapping

import structlog

from .budget import TOKEN_LIMIT
from .formatter import ContentFormatter
from .models import Chunk, FetchedFileContent, FormattedFile, IngestionResult

logger = structlog.get_logger(__name__)


CHUNK_SEPARATOR = "\n---\n\n"

LanguageLookup = Mapping[str, str | None] | Callable[[str], str | None]


def build_chunk(files: list[FormattedFile], chunk_index: int) -> Chunk:
    """Join formatted files into a Chunk."""
    return Chunk(
        files=files,
        concatenated_text=CHUNK_SEPARATOR.join(f.rendered_text for f in files),
        total_tokens=sum(f.token_estimate for f in files),
        chunk_index=chunk_index,
    )


class ChunkPlanner:
    """Greedily packs files into budget-bounded chunks.

    Attributes:
        budget: Maximum tokens per chunk.
        formatter: Formatter used to render each file.
    """

    def __init__(
        self,
        budget: int = TOKEN_LIMIT,
        formatter: ContentFormatter | None = None,
    ) -> None:
        """Initialize the ChunkPlanner.

        Args:
            budget: Maximum tokens per chunk. Must be at least 1.
            formatter: Formatter instance. Creates a default one if not given.

        Raises:
            ValueError: If budget is less than 1.
        """
        if budget < 1:
            raise ValueError(f"budget must be at least 1, got {budget}")
        self.budget = budget
        self.formatter = formatter or ContentFormatter()
        self._logger = logger.bind(component="chunk_planner")

    def plan(
        self,
        files: Iterable[FetchedFileContent],
        language_of: LanguageLookup,
    ) -> IngestionResult:
        """Plan chunks for the given files.

        Files whose rendered form alone exceeds the budget are skipped and
        listed in ``skipped_files``; they never appear in a chunk.

        Args:
            files: Fetched files in the order they should appear.
            language_of: Mapping or callable from path to language.

        Returns:
            IngestionResult with chunks in order.
        """
        lookup = language_of.get if isinstance(language_of, Mapping) else language_of

        chunks: list[Chunk] = []
        skipped: list[str] = []
        current: list[FormattedFile] = []
        current_tokens = 0

        for file in files:
            formatted = self.formatter.render(file, lookup(file.path))

            if formatted.token_estimate > self.budget:
                skipped.append(file.path)
                self._logger.debug(
                    "file_skipped_oversized",
                    path=file.path,
                    tokens=formatted.token_estimate,
                    budget=self.budget,
                )
                continue

            if current and current_tokens + formatted.token_estimate > self.budget:
                chunks.append(build_chunk(current, len(chunks)))
                current = []
                current_tokens = 0

            current.append(formatted)
            current_tokens += formatted.token_estimate

        if current:
            chunks.append(build_chunk(current, len(chunks)))

        result = IngestionResult(
            chunks=chunks,
            total_files_included=sum(len(chunk.files) for chunk in chunks),
            total_tokens=sum(chunk.total_tokens for chunk in chunks),
            skipped_files=skipped,
        )
        self._logger.info(
            "chunks_planned",
            chunk_count=len(chunks),
            files=result.total_files_included,
            skipped=len(skipped),
            total_tokens=result.total_tokens,
        )
        return result


def plan_chunks(
    files: Iterable[FetchedFileContent],
    language_of: LanguageLookup,
    budget: int = TOKEN_LIMIT,
) -> IngestionResult:
    """Plan chunks with a default ChunkPlanner."""
    return ChunkPlanner(budget).plan(files, language_of)
