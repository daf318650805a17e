from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Camel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ModerationCheckRequest(BaseModel):
    # type is checked by ModerationCache.check so non-strings get InvalidInput
    text: Any = Field(default=None)


class FlaggedPosition(_Camel):
    word: str
    start: int
    end: int


class ModerationStatistics(_Camel):
    total_words: int
    bad_words_count: int
    unique_bad_words: int
    text_length: int


class ModerationResult(_Camel):
    is_clean: bool
    errors: Optional[List[str]] = None
    positions: Optional[List[FlaggedPosition]] = None
    suggestions: Optional[List[str]] = None
    statistics: ModerationStatistics
