from enum import Enum
from typing import Optional


class Genre(str, Enum):
    CODE_SNIPPET = "code_snippet"
    TUTORIAL = "tutorial"
    RESEARCH_NOTE = "research_note"
    AFFILIATE_POST = "affiliate_post"
    BLOG_POST = "blog_post"

    @property
    def template_id(self) -> str:
        """Catalog id of the template named after this genre (``code_snippet`` → ``code-snippet``)."""
        return self.value.replace("_", "-")


# ``None`` means the voter abstained.
GenreVote = Optional[Genre]

DEFAULT_GENRE = Genre.BLOG_POST
