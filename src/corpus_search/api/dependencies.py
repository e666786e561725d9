from fastapi import Request

from ..engine import CorpusSearchEngine


def get_engine(request: Request) -> CorpusSearchEngine:
    return request.app.state.engine
