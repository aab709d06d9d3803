"""Content formatting for LLM context.

Renders a fetched file into a markdown block with a path header, a
language label and a fenced body, and estimates its token cost.
"""

import re

from .budget import estimate_tokens
from .models import FetchedFileContent, FormattedFile

PLAIN_TEXT_LABEL = "text"

_BACKTICK_RUN = re.compile(r"`{3,}")


def fence_for(body: str) -> str:
    """Pick a backtick fence longer than any backtick run in the body."""
    longest = max((len(match) for match in _BACKTICK_RUN.findall(body)), default=0)
    return "`" * max(3, longest + 1)


class ContentFormatter:
    """Renders fetched files into canonical text blocks.

    The rendered layout is::

        ## File: <path>
        Language: <language>

        ```<language>
        <body>
        ```
    """

    def render(self, file: FetchedFileContent, language: str | None) -> FormattedFile:
        """Render a file.

        Args:
            file: Fetched file content.
            language: Detected language, or None for plain text.

        Returns:
            FormattedFile with rendered text and token estimate.
        """
        label = language or PLAIN_TEXT_LABEL
        fence = fence_for(file.body)
        rendered = (
            f"## File: {file.path}\n"
            f"Language: {label}\n"
            "\n"
            f"{fence}{label}\n"
            f"{file.body}\n"
            f"{fence}\n"
        )
        return FormattedFile(
            path=file.path,
            language=language,
            raw_body=file.body,
            rendered_text=rendered,
            token_estimate=estimate_tokens(len(rendered)),
        )


_default_formatter = ContentFormatter()


def format_file(file: FetchedFileContent, language: str | None) -> FormattedFile:
    """Render a file with the default formatter."""
    return _default_formatter.render(file, language)
