"""
Search Routes

Ranked lexical search over the corpus index.
"""

from typing import Annotated, List

from fastapi import APIRouter, Depends, status

from .dependencies import get_engine
from .models import SearchRequest, SearchResult
from ..engine import CorpusSearchEngine

router = APIRouter(prefix="/search", tags=["search"])


@router.post(
    "/",
    response_model=List[SearchResult],
    summary="Ranked corpus search",
    status_code=status.HTTP_200_OK,
)
def search(
    req: SearchRequest,
    engine: Annotated[CorpusSearchEngine, Depends(get_engine)],
) -> List[SearchResult]:
    """
    Rank indexed files against a free-text query.

    Parameters
    ----------
    req : SearchRequest
        Contains:
        - query: Search query string
        - limit: Maximum number of results (engine default when omitted)
        - topical_tag: Optional tag that boosts matching documents
        - min_score: Optional score threshold (engine default when omitted)

    Returns
    -------
    List[SearchResult]
        Ranked results with exact-match highlights.
    """
    hits = engine.search(
        req.query,
        limit=req.limit,
        topical_tag=req.topical_tag,
        min_score=req.min_score,
    )
    return [SearchResult.from_hit(hit) for hit in hits]
