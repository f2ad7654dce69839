"""
Article API Endpoints

- GET /api/v0/article/index        - persisted index document, verbatim
- GET /api/v0/article/cid/{cid}    - article located through the index by content id
- GET /api/v0/article/{name}       - article body plus record

Infrastructure failures surface as 500 "internal server error" with the
details kept in the log.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from curator.api.dependencies import get_index_builder, get_store
from curator.errors import ArticleNotFoundError, CuratorError
from curator.models.article import ArticleCollection, is_valid_article_name
from curator.services.content_store import ContentStore
from curator.services.index_builder import IndexBuilder

logger = logging.getLogger(__name__)

router = APIRouter()

NOT_FOUND = "article not found"
INTERNAL_ERROR = "internal server error"


@router.get("/article/index")
async def article_index(index_builder: IndexBuilder = Depends(get_index_builder)):
    """Both lists as last written by the curator (empty before the first rebuild)."""
    try:
        return await index_builder.load_document()
    except (CuratorError, ValueError) as e:
        logger.error(f"Failed to load article index: {e}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


@router.get("/article/cid/{cid}")
async def article_by_cid(
    cid: str,
    load_record: bool = False,
    store: ContentStore = Depends(get_store),
    index_builder: IndexBuilder = Depends(get_index_builder),
):
    try:
        index = await index_builder.load()
        record = index.find_by_cid(cid)
        if record is None:
            raise ArticleNotFoundError(f"no indexed article with cid {cid}")
        article = await store.load_article(record.name, record.collection)
    except ArticleNotFoundError as e:
        logger.info(f"Article lookup by cid failed: {e}")
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    except (CuratorError, KeyError, ValueError) as e:
        logger.error(f"Failed to load article {cid}: {e}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)

    document = article.to_dict()
    if not load_record:
        document.pop("record")
    return document


@router.get("/article/{name}")
async def article_by_name(
    name: str,
    collection: Optional[ArticleCollection] = None,
    store: ContentStore = Depends(get_store),
):
    """
    Published articles are looked up before curated ones unless a
    collection is requested explicitly.
    """
    if not is_valid_article_name(name):
        raise HTTPException(status_code=404, detail=NOT_FOUND)

    if collection is not None:
        collections = [collection]
    else:
        collections = [ArticleCollection.PUBLISHED, ArticleCollection.CURATED]

    for candidate in collections:
        try:
            article = await store.load_article(name, candidate)
        except ArticleNotFoundError:
            continue
        except CuratorError as e:
            logger.error(f"Failed to load article {candidate.value}/{name}: {e}")
            raise HTTPException(status_code=500, detail=INTERNAL_ERROR)
        return article.to_dict()

    raise HTTPException(status_code=404, detail=NOT_FOUND)
