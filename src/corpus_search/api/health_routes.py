from typing import Annotated

from fastapi import APIRouter, Depends

from .dependencies import get_engine
from ..engine import CorpusSearchEngine

router = APIRouter(tags=["health"])


@router.get("/health")
def health(engine: Annotated[CorpusSearchEngine, Depends(get_engine)]):
    return {"status": "ok", "initialized": engine.initialized}
